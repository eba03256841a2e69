"""
Main application entry point for the Client VPN PKI manager.
Handles application initialization, service dependency injection, and graceful shutdown.
"""

import os
import sys
import signal
import logging
import threading
from datetime import datetime
from typing import Optional, Dict, Any

from .services.config_service import ConfigService
from .services.logging_service import LoggingService
from .services.pki_backend import VaultPKIBackend
from .services.gateway_service import ClientVPNGateway
from .services.catalog_service import CertificateCatalog
from .services.revocation_service import RevocationPolicy
from .services.crl_service import CRLService
from .services.template_service import ConfigRenderer
from .services.issuer_service import CertificateIssuer
from .services.rotation_scheduler import CRLRotationScheduler
from .security.session_manager import create_session_provider
from .security.github_auth import GitHubAuthorizer
from .app import PKIManagerApp


class PKIManagerApplication:
    """Main application class for the PKI manager."""

    def __init__(self, config_path: Optional[str] = None,
                 overrides: Optional[Dict[str, Any]] = None,
                 install_signal_handlers: bool = True):
        """
        Args:
            config_path: Path to configuration file (optional)
            overrides: ``section.key`` values taking precedence over the file
            install_signal_handlers: Handle SIGINT/SIGTERM with a graceful shutdown
        """
        self.config_path = config_path or self._get_default_config_path()
        self.overrides = overrides or {}
        self.logger = logging.getLogger(__name__)
        self.logging_service = None
        self.config_service = None
        self.config = None
        self.session_provider = None
        self.backend = None
        self.gateway = None
        self.catalog = None
        self.crl_service = None
        self.issuer = None
        self.scheduler = None
        self.flask_app = None

        self._shutdown_event = threading.Event()
        self._shutdown_handlers = []
        self._is_running = False
        self._started_at = None

        if install_signal_handlers:
            self._setup_signal_handlers()

    def _get_default_config_path(self) -> str:
        """Get the default configuration file path."""
        possible_paths = [
            "config/default.properties",
            "config.properties",
            os.path.expanduser("~/.cvpn_pki_manager/config.properties"),
            "/etc/cvpn-pki-manager/config.properties"
        ]

        for path in possible_paths:
            if os.path.exists(path):
                return path

        return possible_paths[0]

    def _setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            self.logger.info(f"Received {signal_name} signal, initiating graceful shutdown...")
            self.shutdown()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def initialize(self) -> bool:
        """
        Initialize all application components.

        Returns:
            True if initialization successful, False otherwise
        """
        try:
            if not self._load_configuration():
                return False

            self._setup_logging()

            self._initialize_services()
            self._initialize_flask_app()
            self._start_rotation_scheduler()

            self.logger.info("PKI manager initialized successfully")
            self._is_running = True
            self._started_at = datetime.now()
            return True

        except Exception as e:
            self.logger.error(f"Failed to initialize application: {str(e)}")
            self.shutdown()
            return False

    def _load_configuration(self) -> bool:
        """Load application configuration."""
        self.config_service = ConfigService()

        if not os.path.exists(self.config_path):
            self.logger.warning(f"Configuration file not found: {self.config_path}")
            self.config_service.create_default_config_file(self.config_path)
            self.logger.warning(f"Default configuration created at: {self.config_path}")
            self.logger.warning("Please edit the configuration file and restart the application")
            return False

        try:
            self.config = self.config_service.load_config(self.config_path, self.overrides)
        except (ValueError, FileNotFoundError) as e:
            self.logger.error(f"Failed to load configuration: {str(e)}")
            return False
        return True

    def _setup_logging(self):
        """Setup application logging from the loaded configuration."""
        self.logging_service = LoggingService.from_config(self.config)

    def _initialize_services(self):
        """Wire the session provider and every service on top of it."""
        self.logger.info("Initializing services...")
        config = self.config

        self.session_provider = create_session_provider(config)
        self.session_provider.start()
        self._shutdown_handlers.append(self.session_provider.stop)

        self.backend = VaultPKIBackend(self.session_provider)
        self.gateway = ClientVPNGateway(region=config.aws_region,
                                        timeout=config.aws_api_timeout_seconds)
        self.catalog = CertificateCatalog(self.backend)
        self.crl_service = CRLService(
            backend=self.backend,
            gateway=self.gateway,
            catalog=self.catalog,
            policy=RevocationPolicy(self.backend),
        )
        self.issuer = CertificateIssuer(
            backend=self.backend,
            gateway=self.gateway,
            crl_service=self.crl_service,
            renderer=ConfigRenderer(config.config_template_path),
            kv_path=config.vault_kv_path,
            kv_config_key=config.vault_kv_config_key,
        )
        self.logger.debug("All services initialized")

    def _initialize_flask_app(self):
        """Initialize Flask web application."""
        authorizer = None
        if self.config.auth_github_org:
            authorizer = GitHubAuthorizer(
                organization=self.config.auth_github_org,
                allowed_users=self.config.auth_github_users,
                allowed_teams=self.config.auth_github_teams,
                api_url=self.config.auth_github_api_url,
            )
            self.logger.info(f"GitHub authorization enabled for org {self.config.auth_github_org}")

        self.flask_app = PKIManagerApp(
            config=self.config,
            session_provider=self.session_provider,
            catalog=self.catalog,
            crl_service=self.crl_service,
            issuer=self.issuer,
            logging_service=self.logging_service,
            authorizer=authorizer,
        )

    def _start_rotation_scheduler(self):
        """Start the daily CRL rotation."""
        if not self.config.enable_crl_rotation:
            self.logger.info("Daily CRL rotation disabled")
            return

        self.scheduler = CRLRotationScheduler(
            crl_service=self.crl_service,
            pki_path=self.config.issuing_pki_path,
            endpoint_id=self.config.client_vpn_endpoint_id,
        )
        self.scheduler.start_scheduler(self.config.crl_rotation_time)
        self._shutdown_handlers.append(self.scheduler.stop_scheduler)

    def run(self, host: str = '0.0.0.0', port: Optional[int] = None):
        """
        Run the application.

        Args:
            host: Host to bind to
            port: Port to bind to (uses config if not specified)
        """
        if not self._is_running:
            self.logger.error("Application not initialized. Call initialize() first.")
            return

        try:
            self.flask_app.run(host=host, port=port or self.config.port)
        except KeyboardInterrupt:
            self.logger.info("Received keyboard interrupt")
        finally:
            self.shutdown()

    def shutdown(self):
        """Perform graceful shutdown of the application."""
        if self._shutdown_event.is_set():
            return

        self.logger.info("Initiating graceful shutdown...")
        self._shutdown_event.set()
        self._is_running = False

        # Execute shutdown handlers in reverse order
        for handler in reversed(self._shutdown_handlers):
            try:
                handler()
            except Exception as e:
                self.logger.error(f"Error during shutdown: {str(e)}")

        self.logger.info("Graceful shutdown completed")

    def is_running(self) -> bool:
        """Check if the application is running."""
        return self._is_running

    def get_status(self) -> dict:
        """Get application status information."""
        status = {
            'running': self._is_running,
            'config_path': self.config_path,
            'vault_address': self.config.vault_address if self.config else None,
            'pki_paths': self.config.vault_pki_paths if self.config else None,
            'endpoint_id': self.config.client_vpn_endpoint_id if self.config else None,
            'github_auth_enabled': bool(self.config and self.config.auth_github_org),
            'session_ready': self.session_provider.is_ready() if self.session_provider else False,
            'scheduler_running': self.scheduler.is_scheduler_running() if self.scheduler else False,
            'started_at': self._started_at.isoformat() if self._started_at else None,
        }

        if self.scheduler:
            next_run = self.scheduler.get_next_scheduled_run()
            status['next_crl_rotation'] = next_run.isoformat() if next_run else None

        return status


def main():
    """Main entry point for the application."""
    import argparse

    parser = argparse.ArgumentParser(description='AWS Client VPN PKI manager backed by Vault')
    parser.add_argument('--config', '-c', help='Configuration file path')
    parser.add_argument('--host', default='0.0.0.0', help='Host to bind to (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, help='Port to bind to (uses config if not specified)')
    parser.add_argument('--log-mode', choices=['production', 'development'],
                        help='Log mode (uses config if not specified)')
    parser.add_argument('--check-config', action='store_true', help='Check configuration and exit')

    args = parser.parse_args()

    overrides = {
        'server.port': args.port,
        'server.log_mode': args.log_mode,
    }

    app = PKIManagerApplication(config_path=args.config, overrides=overrides,
                                install_signal_handlers=not args.check_config)

    if args.check_config:
        try:
            config = ConfigService().load_config(app.config_path, overrides)
        except (ValueError, FileNotFoundError) as e:
            print(f"Configuration check failed: {e}")
            sys.exit(1)
        print("Configuration check passed")
        print(config.masked_summary())
        sys.exit(0)

    if not app.initialize():
        print("Failed to initialize application")
        sys.exit(1)

    app.run(host=args.host, port=args.port)


if __name__ == '__main__':
    main()
