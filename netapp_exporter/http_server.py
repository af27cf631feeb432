"""
HTTP server module for serving Prometheus metrics from ONTAP data.

This module implements a Flask-based HTTP server that exposes the quota and
volume metrics through a telemetry endpoint compatible with Prometheus
scraping. Every scrape triggers a fresh collection cycle.
"""

import time

from flask import Flask, Response, g, jsonify, request
from werkzeug.exceptions import RequestTimeout

from netapp_exporter.config import Config
from netapp_exporter.logging_config import ContextualLogger, get_logger, log_operation
from netapp_exporter.metrics_handler import MetricsHandler


EXPOSITION_MIMETYPE = 'text/plain; version=0.0.4; charset=utf-8'


class MetricsServer:
    """
    Flask-based HTTP server for serving Prometheus metrics.

    Requests are served on separate threads, so each request gets its own
    contextual logger.
    """

    def __init__(self, config: Config, metrics_handler: MetricsHandler):
        """
        Initialize the metrics server.

        Args:
            config: Configuration object
            metrics_handler: Fan-out collector run on every scrape
        """
        self.config = config
        self.metrics_handler = metrics_handler
        self.logger = get_logger(__name__)

        server_config = config.get_server_config()
        self.metrics_path = server_config.metrics_path

        self.app = Flask(__name__)
        self.app.config['REQUEST_TIMEOUT'] = server_config.request_timeout

        self._register_routes()
        self._configure_request_logging()

    def _request_logger(self) -> ContextualLogger:
        return g.get('request_logger') or self.logger

    def _register_routes(self) -> None:
        """Register HTTP routes for the server."""

        @self.app.route(self.metrics_path, methods=['GET'])
        def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return self._handle_metrics_request()

        @self.app.errorhandler(RequestTimeout)
        def handle_timeout(error):
            self._request_logger().error(f"Request timeout: {str(error)[:200]}")
            return jsonify({
                'error': 'Request timeout',
                'message': 'The request took too long to process'
            }), 408

        @self.app.errorhandler(500)
        def handle_internal_error(error):
            self._request_logger().error(f"Internal server error: {str(error)[:200]}")
            return jsonify({
                'error': 'Internal server error',
                'message': 'An unexpected error occurred'
            }), 500

    def _configure_request_logging(self) -> None:

        @self.app.before_request
        def before_request():
            g.start_time = time.time()
            g.request_logger = get_logger(__name__)
            g.request_logger.set_context(
                endpoint=request.path,
                method=request.method,
                client_ip=request.remote_addr
            )

        @self.app.after_request
        def after_request(response):
            if 'start_time' in g:
                duration = time.time() - g.start_time
                self._request_logger().info(f"Request completed - status: {response.status_code}, "
                                            f"duration: {duration:.3f}s")
            return response

    def _handle_metrics_request(self) -> Response:
        """
        Run one collection cycle and render it.

        Returns:
            Flask Response with Prometheus metrics in text format
        """
        logger = self._request_logger()
        try:
            with log_operation(logger, "metrics request processing", level='DEBUG'):
                metrics, collection_duration = self.metrics_handler.collect_metrics()
                metrics_text = self.metrics_handler.transformer.format_prometheus_metrics(metrics)

                logger.info(f"Returned {len(metrics)} metrics - "
                            f"collection: {collection_duration:.3f}s, "
                            f"response_size: {len(metrics_text)} bytes")

                return Response(metrics_text, mimetype=EXPOSITION_MIMETYPE, status=200)

        except Exception as e:
            error_msg = str(e)[:200]
            logger.error(f"Error processing metrics request: {error_msg}")

            return Response(
                f"# Error collecting metrics: {error_msg}\n",
                mimetype=EXPOSITION_MIMETYPE,
                status=500
            )

    def start_server(self, debug: bool = False) -> None:
        """
        Start the HTTP server.

        Args:
            debug: Enable Flask debug mode
        """
        server_config = self.config.get_server_config()

        self.logger.set_context(
            host=server_config.host,
            port=server_config.port,
            operation='start_server'
        )

        try:
            with log_operation(self.logger, f"HTTP server startup on {server_config.host}:{server_config.port}",
                               level='INFO'):
                self.app.run(
                    host=server_config.host,
                    port=server_config.port,
                    debug=debug,
                    threaded=True
                )
        except Exception as e:
            self.logger.error(f"Failed to start HTTP server: {str(e)[:200]}")
            raise
        finally:
            self.logger.clear_context()

    def get_app(self) -> Flask:
        """
        Get the Flask application instance.

        Returns:
            Flask application instance
        """
        return self.app
