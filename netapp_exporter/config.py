"""Configuration management module for the NetApp quota exporter."""

import os
import yaml
from typing import Any, List, Optional, Tuple
from dataclasses import dataclass, field
from pathlib import Path

from netapp_exporter.data_models import SearchCondition
from netapp_exporter.exceptions import ConfigurationError


DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
VALUE_UNITS = ('kbytes', 'bytes')
SEARCH_CONDITION_KEYS = ('qtree', 'volume', 'vserver')


@dataclass
class OntapConfig:
    """ONTAP API configuration."""
    endpoint: str
    user: str
    password: str
    api_version: str = "1.20"
    ssl_verify: bool = True
    timeout_seconds: int = 10
    search_conditions: List[SearchCondition] = field(default_factory=list)


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 9797
    metrics_path: str = "/metrics"
    request_timeout: int = 60


@dataclass
class CollectionConfig:
    """Data collection configuration."""
    max_retries: int = 3
    retry_delay: int = 1
    timeout_seconds: int = 50
    page_size: int = 1000
    max_pages: int = 10000
    value_unit: str = "kbytes"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = DEFAULT_LOG_FORMAT


def parse_search_conditions(raw_conditions: Any, source: str = "configuration") -> List[SearchCondition]:
    """
    Build SearchCondition objects from a ``quota_search_condition`` list.

    Args:
        raw_conditions: List of mappings with optional qtree/volume/vserver keys
        source: Where the list came from, for error messages

    Returns:
        List of SearchCondition (may be empty)

    Raises:
        ConfigurationError: If the list or one of its entries is malformed
    """
    if raw_conditions is None:
        return []

    if not isinstance(raw_conditions, list):
        raise ConfigurationError(f"quota_search_condition in {source} must be a list")

    conditions = []
    for i, raw in enumerate(raw_conditions):
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Search condition {i} in {source} must be a mapping")

        unknown = set(raw) - set(SEARCH_CONDITION_KEYS)
        if unknown:
            raise ConfigurationError(
                f"Search condition {i} in {source} has unknown keys: {', '.join(sorted(unknown))}"
            )

        values = {}
        for key in SEARCH_CONDITION_KEYS:
            value = raw.get(key)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ConfigurationError(f"Search condition {i} in {source}: {key} must be a string")
            values[key] = value.strip()

        conditions.append(SearchCondition(**values))

    return conditions


def _env_int(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer, got {value!r}")


def parse_listen_address(address: str) -> Tuple[str, int]:
    """
    Split a ``host:port`` listen address. An empty host (``:9797``) listens
    on all interfaces.

    Raises:
        ConfigurationError: If the port is missing or not a number
    """
    host, sep, port = address.rpartition(':')
    if not sep or not port.isdigit():
        raise ConfigurationError(f"Listen address must be host:port, got {address!r}")
    return host.strip('[]') or "0.0.0.0", int(port)


class Config:
    """Configuration manager for the NetApp quota exporter."""

    def __init__(self, config_file: Optional[str] = None, search_config_file: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_file: Optional path to YAML configuration file
            search_config_file: Optional path to a YAML file holding only
                ``quota_search_condition``; skipped when it does not exist
        """
        self.ontap: Optional[OntapConfig] = None
        self.server: ServerConfig = ServerConfig()
        self.collection: CollectionConfig = CollectionConfig()
        self.logging: LoggingConfig = LoggingConfig()

        # Environment first, file values override
        self.load_from_env()

        if config_file:
            self.load_from_file(config_file)
        elif os.path.exists("config.yaml"):
            self.load_from_file("config.yaml")

        if search_config_file:
            self.load_search_config(search_config_file)

    def load_from_env(self) -> None:
        """Load configuration from environment variables."""
        endpoint = os.getenv("ONTAP_ENDPOINT")
        if endpoint:
            self.ontap = OntapConfig(
                endpoint=endpoint,
                user=os.getenv("ONTAP_USER", ""),
                password=os.getenv("ONTAP_PASSWORD", ""),
                api_version=os.getenv("ONTAP_API_VERSION", "1.20"),
                ssl_verify=os.getenv("ONTAP_SSL_VERIFY", "true").lower() not in ('0', 'false', 'no'),
                timeout_seconds=_env_int("ONTAP_TIMEOUT", "10")
            )

        self.server = ServerConfig(
            host=os.getenv("SERVER_HOST", "0.0.0.0"),
            port=_env_int("SERVER_PORT", "9797"),
            metrics_path=os.getenv("METRICS_PATH", "/metrics"),
            request_timeout=_env_int("REQUEST_TIMEOUT", "60")
        )

        self.collection = CollectionConfig(
            max_retries=_env_int("MAX_RETRIES", "3"),
            retry_delay=_env_int("RETRY_DELAY", "1"),
            timeout_seconds=_env_int("COLLECTION_TIMEOUT", "50"),
            page_size=_env_int("PAGE_SIZE", "1000"),
            max_pages=_env_int("MAX_PAGES", "10000"),
            value_unit=os.getenv("VALUE_UNIT", "kbytes")
        )

        self.logging = LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO"),
            format=os.getenv("LOG_FORMAT", DEFAULT_LOG_FORMAT)
        )

    def _read_yaml(self, config_path: str) -> Any:
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file {config_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error reading configuration file {config_path}: {e}")

    def load_from_file(self, config_path: str) -> None:
        """Load configuration from YAML file.

        Args:
            config_path: Path to YAML configuration file

        Raises:
            ConfigurationError: If file cannot be read or parsed
        """
        config_data = self._read_yaml(config_path)

        if not config_data:
            raise ConfigurationError(f"Configuration file is empty: {config_path}")
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")

        try:
            if 'ontap' in config_data:
                ontap_config = config_data['ontap'] or {}
                conditions = parse_search_conditions(
                    ontap_config.get('quota_search_condition'), config_path
                )
                self.ontap = OntapConfig(
                    endpoint=ontap_config.get('endpoint', ''),
                    user=ontap_config.get('user', ''),
                    password=ontap_config.get('password', ''),
                    api_version=str(ontap_config.get('api_version', '1.20')),
                    ssl_verify=ontap_config.get('ssl_verify', True),
                    timeout_seconds=ontap_config.get('timeout_seconds', 10),
                    search_conditions=conditions
                )

            if 'quota_search_condition' in config_data:
                conditions = parse_search_conditions(config_data['quota_search_condition'], config_path)
                if self.ontap is None:
                    raise ConfigurationError(
                        f"quota_search_condition in {config_path} requires ONTAP connection settings"
                    )
                self.ontap.search_conditions.extend(conditions)

            if 'server' in config_data:
                server_config = config_data['server'] or {}
                self.server = ServerConfig(
                    host=server_config.get('host', '0.0.0.0'),
                    port=server_config.get('port', 9797),
                    metrics_path=server_config.get('metrics_path', '/metrics'),
                    request_timeout=server_config.get('request_timeout', 60)
                )

            if 'collection' in config_data:
                collection_config = config_data['collection'] or {}
                self.collection = CollectionConfig(
                    max_retries=collection_config.get('max_retries', 3),
                    retry_delay=collection_config.get('retry_delay', 1),
                    timeout_seconds=collection_config.get('timeout_seconds', 50),
                    page_size=collection_config.get('page_size', 1000),
                    max_pages=collection_config.get('max_pages', 10000),
                    value_unit=collection_config.get('value_unit', 'kbytes')
                )

            if 'logging' in config_data:
                logging_config = config_data['logging'] or {}
                self.logging = LoggingConfig(
                    level=logging_config.get('level', 'INFO'),
                    format=logging_config.get('format', DEFAULT_LOG_FORMAT)
                )

        except ConfigurationError:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration structure in {config_path}: {e}")

    def load_search_config(self, config_path: str) -> None:
        """Add the ``quota_search_condition`` entries of a dedicated file.

        They extend the conditions already loaded from the main file. A
        missing file is not an error.

        Raises:
            ConfigurationError: If the file exists but is invalid
        """
        if not Path(config_path).exists():
            return

        config_data = self._read_yaml(config_path)
        if not config_data:
            return
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Search configuration {config_path} must contain a mapping")

        conditions = parse_search_conditions(config_data.get('quota_search_condition'), config_path)
        if self.ontap is None:
            raise ConfigurationError("ONTAP connection settings are required before search conditions")
        self.ontap.search_conditions.extend(conditions)

    def apply_overrides(self, endpoint: Optional[str] = None, user: Optional[str] = None,
                        password: Optional[str] = None, listen_address: Optional[str] = None,
                        metrics_path: Optional[str] = None) -> None:
        """Apply command line values on top of environment and file settings.

        Raises:
            ConfigurationError: If the listen address cannot be parsed
        """
        if endpoint or user or password:
            if self.ontap is None:
                self.ontap = OntapConfig(endpoint="", user="", password="")
            if endpoint:
                self.ontap.endpoint = endpoint
            if user:
                self.ontap.user = user
            if password:
                self.ontap.password = password

        if listen_address:
            self.server.host, self.server.port = parse_listen_address(listen_address)

        if metrics_path:
            self.server.metrics_path = metrics_path

    def get_ontap_config(self) -> OntapConfig:
        """Get ONTAP configuration.

        Raises:
            ConfigurationError: If ONTAP configuration is not available
        """
        if not self.ontap:
            raise ConfigurationError("ONTAP configuration is not available")
        return self.ontap

    def get_server_config(self) -> ServerConfig:
        return self.server

    def get_collection_config(self) -> CollectionConfig:
        return self.collection

    def get_logging_config(self) -> LoggingConfig:
        return self.logging

    def validate(self) -> bool:
        """Validate the complete configuration.

        Returns:
            True if configuration is valid

        Raises:
            ConfigurationError: If configuration is invalid
        """
        self._validate_ontap_config()
        self._validate_server_config()
        self._validate_collection_config()
        self._validate_logging_config()
        return True

    def _validate_ontap_config(self) -> None:
        if not self.ontap:
            raise ConfigurationError("ONTAP configuration is required")

        if not self.ontap.endpoint or not isinstance(self.ontap.endpoint, str):
            raise ConfigurationError("ONTAP endpoint is required and must be a non-empty string")

        if not self.ontap.endpoint.startswith(('http://', 'https://')):
            raise ConfigurationError("ONTAP endpoint must start with http:// or https://")

        if not isinstance(self.ontap.user, str) or not self.ontap.user.strip():
            raise ConfigurationError("ONTAP user is required and must be a non-empty string")

        if not isinstance(self.ontap.password, str) or not self.ontap.password:
            raise ConfigurationError("ONTAP password is required and must be a non-empty string")

        if not isinstance(self.ontap.ssl_verify, bool):
            raise ConfigurationError("ONTAP ssl_verify must be a boolean")

        if not isinstance(self.ontap.timeout_seconds, int) or self.ontap.timeout_seconds <= 0:
            raise ConfigurationError("ONTAP timeout_seconds must be a positive integer")

    def _validate_server_config(self) -> None:
        if not isinstance(self.server.host, str) or len(self.server.host.strip()) == 0:
            raise ConfigurationError("Server host must be a non-empty string")

        if not isinstance(self.server.port, int) or self.server.port <= 0 or self.server.port > 65535:
            raise ConfigurationError("Server port must be an integer between 1 and 65535")

        if not isinstance(self.server.metrics_path, str) or not self.server.metrics_path.startswith('/'):
            raise ConfigurationError("Server metrics_path must start with /")

        if not isinstance(self.server.request_timeout, int) or self.server.request_timeout <= 0:
            raise ConfigurationError("Server request_timeout must be a positive integer")

    def _validate_collection_config(self) -> None:
        if not isinstance(self.collection.max_retries, int) or self.collection.max_retries < 1:
            raise ConfigurationError("Collection max_retries must be a positive integer")

        if not isinstance(self.collection.retry_delay, int) or self.collection.retry_delay < 0:
            raise ConfigurationError("Collection retry_delay must be a non-negative integer")

        if not isinstance(self.collection.timeout_seconds, int) or self.collection.timeout_seconds <= 0:
            raise ConfigurationError("Collection timeout_seconds must be a positive integer")

        if not isinstance(self.collection.page_size, int) or self.collection.page_size <= 0:
            raise ConfigurationError("Collection page_size must be a positive integer")

        if not isinstance(self.collection.max_pages, int) or self.collection.max_pages <= 0:
            raise ConfigurationError("Collection max_pages must be a positive integer")

        if self.collection.value_unit not in VALUE_UNITS:
            raise ConfigurationError(f"Collection value_unit must be one of: {', '.join(VALUE_UNITS)}")

        if self.collection.timeout_seconds >= self.server.request_timeout:
            raise ConfigurationError("Collection timeout_seconds must be less than server request_timeout")

    def _validate_logging_config(self) -> None:
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

        if not isinstance(self.logging.level, str):
            raise ConfigurationError("Logging level must be a string")

        if self.logging.level.upper() not in valid_levels:
            raise ConfigurationError(f"Logging level must be one of: {', '.join(valid_levels)}")

        if not isinstance(self.logging.format, str) or len(self.logging.format.strip()) == 0:
            raise ConfigurationError("Logging format must be a non-empty string")
