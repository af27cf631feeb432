#!/usr/bin/env python3
"""
Main entry point for the NetApp quota Prometheus exporter.

This script initializes the configuration, sets up logging, creates the
necessary components, and starts the HTTP server.
"""

import sys
import os
import signal
import argparse
from typing import Optional

from netapp_exporter.config import Config, ConfigurationError
from netapp_exporter.logging_config import setup_logging, get_logger
from netapp_exporter.ontap_client import OntapClient
from netapp_exporter.metrics_catalogue import MetricCatalogue
from netapp_exporter.metrics_transformer import MetricsTransformer
from netapp_exporter.metrics_handler import MetricsHandler
from netapp_exporter.http_server import MetricsServer
from netapp_exporter.retry_handler import create_retry_config


DEFAULT_SEARCH_CONFIG = '/etc/netapp_quota_exporter.conf'


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='NetApp Quota Prometheus Exporter',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --config config.yaml
  %(prog)s --api.endpoint https://filer01 --api.user monitor --api.password secret
  %(prog)s --web.listen-address :9797 --web.telemetry-path /metrics
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to configuration file (default: config.yaml if exists)'
    )

    parser.add_argument(
        '--debug', '-d',
        action='store_true',
        help='Enable debug mode'
    )

    parser.add_argument(
        '--validate-config',
        action='store_true',
        help='Validate configuration and exit'
    )

    parser.add_argument(
        '--test-connection',
        action='store_true',
        help='Test ONTAP API connection and exit'
    )

    parser.add_argument(
        '--api.search-config',
        dest='search_config',
        default=DEFAULT_SEARCH_CONFIG,
        help='Quota search condition file, skipped if missing (default: %(default)s)'
    )

    parser.add_argument('--api.endpoint', dest='endpoint', help='NetApp API endpoint')
    parser.add_argument('--api.user', dest='user', help='NetApp API auth user')
    parser.add_argument('--api.password', dest='password', help='NetApp API auth password')

    parser.add_argument(
        '--web.listen-address',
        dest='listen_address',
        help='Address to listen on for telemetry, e.g. :9797'
    )

    parser.add_argument(
        '--web.telemetry-path',
        dest='metrics_path',
        help='Path under which to expose metrics'
    )

    return parser.parse_args(argv)


def load_configuration(args) -> Config:
    """
    Build the configuration from environment, files and command line.

    Raises:
        ConfigurationError: If any source is invalid
    """
    config = Config(config_file=args.config)
    config.apply_overrides(
        endpoint=args.endpoint,
        user=args.user,
        password=args.password,
        listen_address=args.listen_address,
        metrics_path=args.metrics_path
    )
    if args.search_config:
        config.load_search_config(args.search_config)
    return config


def setup_signal_handlers():
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        logger = get_logger(__name__)
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def validate_configuration(config: Config) -> bool:
    """
    Validate configuration and log results.

    Args:
        config: Configuration to validate

    Returns:
        True if configuration is valid
    """
    logger = get_logger(__name__)

    try:
        logger.info("Validating configuration...")
        config.validate()
        logger.info("Configuration validation successful")

        ontap_config = config.get_ontap_config()
        logger.info(f"ONTAP endpoint: {ontap_config.endpoint} (API {ontap_config.api_version})")
        if ontap_config.search_conditions:
            logger.info(f"Configured {len(ontap_config.search_conditions)} quota search conditions:")
            for i, condition in enumerate(ontap_config.search_conditions, 1):
                logger.info(f"  {i}. {condition.describe()}")
        else:
            logger.info("No quota search conditions configured, reporting all quota trees")

        server_config = config.get_server_config()
        logger.info(f"Server will listen on {server_config.host}:{server_config.port}{server_config.metrics_path}")

        collection_config = config.get_collection_config()
        logger.info(f"Collection timeout: {collection_config.timeout_seconds}s, "
                    f"max retries: {collection_config.max_retries}, "
                    f"page size: {collection_config.page_size}, "
                    f"value unit: {collection_config.value_unit}")

        return True

    except ConfigurationError as e:
        logger.error(f"Configuration validation failed: {e}")
        return False


def create_client(config: Config) -> OntapClient:
    """Create the ONTAP client with the configured retry policy."""
    ontap_config = config.get_ontap_config()
    collection_config = config.get_collection_config()

    retry_config = create_retry_config(
        max_attempts=collection_config.max_retries,
        base_delay=collection_config.retry_delay,
        max_delay=30.0
    )

    return OntapClient(
        endpoint=ontap_config.endpoint,
        user=ontap_config.user,
        password=ontap_config.password,
        api_version=ontap_config.api_version,
        ssl_verify=ontap_config.ssl_verify,
        timeout=ontap_config.timeout_seconds,
        retry_config=retry_config
    )


def create_metrics_handler(config: Config, client: OntapClient) -> MetricsHandler:
    """Wire catalogue, transformer and collector for one deployment."""
    collection_config = config.get_collection_config()

    catalogue = MetricCatalogue(value_unit=collection_config.value_unit)
    transformer = MetricsTransformer(catalogue)

    return MetricsHandler(
        client=client,
        transformer=transformer,
        conditions=config.get_ontap_config().search_conditions,
        collection_config=collection_config
    )


def test_ontap_connection(config: Config) -> bool:
    """
    Test ONTAP API connection.

    Args:
        config: Configuration object

    Returns:
        True if connection test successful
    """
    logger = get_logger(__name__)
    logger.info("Testing ONTAP API connection...")

    client = create_client(config)
    if not client.test_connection():
        logger.error("ONTAP API connection test failed")
        return False

    logger.info("ONTAP API connection test successful")
    return True


def main(argv=None):
    """Main entry point."""
    args = parse_arguments(argv)

    try:
        config = load_configuration(args)

        logging_config = config.get_logging_config()
        if args.debug:
            logging_config.level = 'DEBUG'
        setup_logging(logging_config)

        logger = get_logger(__name__)
        logger.info("Starting NetApp quota exporter")
        logger.info(f"Python version: {sys.version}")
        logger.info(f"Working directory: {os.getcwd()}")

        if not validate_configuration(config):
            logger.error("Configuration validation failed, exiting")
            sys.exit(1)

        if args.validate_config:
            logger.info("Configuration validation completed successfully")
            sys.exit(0)

        if args.test_connection:
            if test_ontap_connection(config):
                logger.info("Connection test completed successfully")
                sys.exit(0)
            else:
                logger.error("Connection test failed")
                sys.exit(1)

        logger.info("Initializing components...")

        client = create_client(config)
        metrics_handler = create_metrics_handler(config, client)
        server = MetricsServer(
            config=config,
            metrics_handler=metrics_handler
        )

        setup_signal_handlers()

        logger.info(f"All components initialized, exposing {len(metrics_handler.describe())} metric families")
        server.start_server(debug=args.debug)

    except ConfigurationError as e:
        # Logging might not be set up yet
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    except KeyboardInterrupt:
        logger = get_logger(__name__)
        logger.info("Received keyboard interrupt, shutting down...")
        sys.exit(0)

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
