#!/usr/bin/env python3
"""
Service WatchDog - Main Entry Point
Exports the LoadBalancer services of a namespace as a Prometheus gauge
"""

import os
import sys
import signal
import threading
import logging
from typing import Optional
from prometheus_client import REGISTRY, CollectorRegistry, start_http_server
from pydantic import ValidationError

from .core.logging_config import setup_logging, get_logger
from .core.exceptions import ConfigurationException, InstrumentCreationFailed, UpstreamUnavailable
from .core.gauge_sink import LoadBalancerGaugeSink
from .core.kube import create_core_api
from .core.lister import ServiceLister
from .core.watcher import ServiceWatcher
from .core.reconciler import ReconcileLoop
from .api.server import APIServer
from .config import Settings


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load settings from YAML (if present) with environment overrides"""
    try:
        if config_path and os.path.exists(config_path):
            return Settings.load_from_yaml_with_env_override(config_path)
        return Settings()
    except ValidationError as e:
        raise ConfigurationException(f"Invalid configuration: {e}") from e


class WatchdogService:
    """Main watchdog service that coordinates all components"""

    def __init__(self, settings: Settings, registry: CollectorRegistry = REGISTRY, core_api=None):
        """Initialize the watchdog service"""
        self.settings = settings
        self.registry = registry

        setup_logging(
            level=settings.logging.level,
            log_file=settings.logging.file,
            enable_colors=settings.logging.colors
        )
        self.logger = get_logger(__name__)
        self._stop_event = threading.Event()

        kube = settings.kubernetes
        watchdog = settings.watchdog

        # A missing client is not fatal: syncs report UpstreamUnavailable
        if core_api is None:
            try:
                core_api = create_core_api(kube)
            except UpstreamUnavailable as e:
                self.logger.error(f"Failed to initialize Kubernetes client: {e}")
        self.core_api = core_api

        self.sink = LoadBalancerGaugeSink(
            registry=registry,
            metric_name=watchdog.metric_name,
            description=watchdog.metric_description
        )
        self.lister = ServiceLister(
            core_api,
            service_name=watchdog.service_name,
            request_timeout=kube.request_timeout
        )
        self.watcher = None
        if watchdog.watch_enabled:
            self.watcher = ServiceWatcher(
                core_api,
                service_name=watchdog.service_name,
                timeout_seconds=watchdog.watch_timeout_seconds
            )

        self.reconciler = ReconcileLoop(
            self.lister,
            self.sink,
            namespace=kube.namespace,
            watcher=self.watcher,
            resync_interval=watchdog.resync_interval_seconds,
            backoff_initial=watchdog.watch_backoff_initial,
            backoff_max=watchdog.watch_backoff_max
        )
        self.api_server = APIServer(self.reconciler, config=settings.get_config_dict())

        self.logger.info(
            f"Service WatchDog initialized (namespace={kube.namespace}, "
            f"watch={'on' if self.watcher else 'off'})"
        )
        if settings.debug:
            self.logger.info(f"Debug mode enabled. Settings: {settings.get_config_dict()}")

    def install_signal_handlers(self):
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals"""
        self.logger.info(f"Received signal {signum}, shutting down...")
        self.stop()

    def stop(self):
        self._stop_event.set()

    def run(self) -> int:
        """Start everything and block until stopped; returns the exit code"""
        self.logger.info("Starting Service WatchDog...")

        watchdog = self.settings.watchdog
        start_http_server(watchdog.metrics_port, registry=self.registry)
        self.logger.info(f"Prometheus metrics server started on :{watchdog.metrics_port}")

        try:
            result = self.reconciler.start()
        except InstrumentCreationFailed as e:
            self.logger.critical(f"Cannot export load balancers: {e}")
            return 1
        self.logger.info(f"Initial sync {result.status} ({result.records} records)")

        api_thread = threading.Thread(
            target=self.api_server.run,
            kwargs={'host': watchdog.http_host, 'port': watchdog.http_port},
            name="watchdog-api"
        )
        api_thread.daemon = True
        api_thread.start()

        self._stop_event.wait()

        self.api_server.stop()
        api_thread.join(timeout=watchdog.shutdown_timeout_seconds)
        self.logger.info("Service WatchDog has been stopped.")
        return 0

    def cleanup(self):
        """Drain in-flight syncs and release the gauge"""
        drained = self.reconciler.shutdown(timeout=self.settings.watchdog.shutdown_timeout_seconds)
        if not drained:
            self.logger.warning("Exiting with syncs still in flight")
        self.sink.close()
        self.logger.info("Cleanup completed")


def main():
    """Entry point"""
    import argparse

    parser = argparse.ArgumentParser(description='Service WatchDog - Load Balancer exporter')
    parser.add_argument(
        '--config',
        default=os.getenv('CONFIG_PATH', '/app/config/watchdog.yaml'),
        help='Path to configuration file'
    )
    parser.add_argument(
        '--namespace',
        help='Namespace to watch (overrides NAMESPACE)'
    )
    parser.add_argument(
        '--no-watch',
        action='store_true',
        help='Only sync on startup and HTTP triggers'
    )

    args = parser.parse_args()

    try:
        settings = load_settings(args.config)
    except ConfigurationException as e:
        logging.basicConfig(level=logging.ERROR)
        logging.getLogger(__name__).error(e.message)
        sys.exit(2)

    if args.namespace:
        settings.kubernetes.namespace = args.namespace
    if args.no_watch:
        settings.watchdog.watch_enabled = False

    service = WatchdogService(settings)
    service.install_signal_handlers()

    exit_code = 0
    try:
        exit_code = service.run()
    except KeyboardInterrupt:
        service.logger.info("Received keyboard interrupt")
    except Exception as e:
        service.logger.error(f"Fatal error: {e}")
        exit_code = 1
    finally:
        service.cleanup()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
