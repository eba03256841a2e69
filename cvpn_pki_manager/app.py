"""
Flask API exposing the PKI manager operations.
"""
import logging
import re
from contextlib import nullcontext
from typing import Optional

from flask import Flask, request, jsonify, g
from werkzeug.exceptions import HTTPException

from .exceptions import PKIManagerError
from .models.config import Config
from .security.auth_middleware import setup_github_authentication, require_authentication
from .security.github_auth import GitHubAuthorizer
from .security.session_manager import SessionProvider
from .services.catalog_service import CertificateCatalog
from .services.crl_service import CRLService
from .services.issuer_service import CertificateIssuer
from .services.logging_service import LoggingService


USERNAME_PATTERN = re.compile(r'^[A-Za-z0-9._@+-]+$')


class PKIManagerApp:
    """Flask application for the Client VPN PKI manager."""

    def __init__(self, config: Config,
                 session_provider: SessionProvider,
                 catalog: CertificateCatalog,
                 crl_service: CRLService,
                 issuer: CertificateIssuer,
                 logging_service: Optional[LoggingService] = None,
                 authorizer: Optional[GitHubAuthorizer] = None):
        self.app = Flask(__name__)
        self.config = config
        self.session_provider = session_provider
        self.catalog = catalog
        self.crl_service = crl_service
        self.issuer = issuer
        self.logging_service = logging_service
        self.logger = logging.getLogger(__name__)

        setup_github_authentication(self.app, authorizer)

        self._setup_routes()
        self._setup_error_handlers()

    def _measure(self, operation: str, extra_data=None):
        if self.logging_service:
            return self.logging_service.measure_performance(operation, extra_data)
        return nullcontext()

    def _setup_routes(self):
        """Set up API routes."""

        @self.app.route('/crl', methods=['GET'])
        @require_authentication
        def get_crl():
            with self._measure('get_crl'):
                crl = self.crl_service.get_crl(self.config.issuing_pki_path)
            return jsonify({'crl': crl})

        @self.app.route('/crl', methods=['POST'])
        @require_authentication
        def update_crl():
            with self._measure('update_crl'):
                crl = self.crl_service.update_crl(
                    self.config.issuing_pki_path, self.config.client_vpn_endpoint_id
                )
            return jsonify({'crl': crl})

        @self.app.route('/crl/rotate', methods=['POST'])
        @require_authentication
        def rotate_crl():
            with self._measure('rotate_crl'):
                crl = self.crl_service.rotate_crl(
                    self.config.issuing_pki_path, self.config.client_vpn_endpoint_id
                )
            return jsonify({'crl': crl})

        @self.app.route('/issue/<user>', methods=['POST'])
        @require_authentication
        def issue_client_certificate(user):
            invalid = self._validate_username(user)
            if invalid:
                return invalid

            role = request.args.get('role') or self.config.vault_client_certificate_role
            self.logger.info(f"Issuing certificate for {user} with role {role}, requested by {g.client_id}")
            with self._measure('issue_certificate', {'user': user, 'role': role}):
                config = self.issuer.issue(
                    user, role, self.config.vault_pki_paths, self.config.client_vpn_endpoint_id
                )
            return jsonify({'result': 'success', 'config': config})

        @self.app.route('/revoke/<user>', methods=['POST'])
        @require_authentication
        def revoke_user(user):
            invalid = self._validate_username(user)
            if invalid:
                return invalid

            self.logger.info(f"Revoking user {user}, requested by {g.client_id}")
            with self._measure('revoke_user', {'user': user}):
                self.issuer.revoke_user(
                    user, self.config.issuing_pki_path, self.config.client_vpn_endpoint_id
                )
            return jsonify({'result': 'success'})

        @self.app.route('/users', methods=['GET'])
        @require_authentication
        def list_users():
            with self._measure('list_users'):
                users = self.catalog.list_users(self.config.issuing_pki_path)
            return jsonify({
                username: [cert.to_dict() for cert in certificates]
                for username, certificates in users.items()
            })

        @self.app.route('/healthz', methods=['GET'])
        def healthz():
            """Health probe: lists the users to check Vault end to end."""
            try:
                with self._measure('healthz'):
                    self.catalog.list_users(self.config.issuing_pki_path)
            except PKIManagerError as e:
                return self._error_response("/healthz failed", e, status='ko')

            health_status = {'status': 'ok'}
            if self.logging_service:
                health_status['operations'] = self.logging_service.get_performance_stats()
            return jsonify(health_status)

        @self.app.route('/readyz', methods=['GET'])
        def readyz():
            """Readiness probe: a Vault session has been established."""
            if not self.session_provider.is_ready():
                return "Vault session not ready\n", 503
            return "OK\n"

    def _validate_username(self, user: str):
        if not USERNAME_PATTERN.match(user):
            return jsonify({
                'msg': 'invalid username',
                'error': f'username {user!r} contains invalid characters',
                'kind': 'invalid_request'
            }), 400
        return None

    def _error_response(self, msg: str, error: PKIManagerError, **extra):
        body = {'msg': msg, 'error': str(error), 'kind': error.kind}
        body.update({k: v for k, v in error.to_dict().items() if k not in ('error', 'kind')})
        body.update(extra)
        self.logger.error(f"{msg}: {error}")
        return jsonify(body), error.status_code

    def _setup_error_handlers(self):
        """Map every error kind to its own status code."""

        @self.app.errorhandler(PKIManagerError)
        def handle_pki_manager_error(error):
            return self._error_response(f"unable to complete {request.path}", error)

        @self.app.errorhandler(404)
        def not_found(error):
            return jsonify({
                'msg': 'not found',
                'error': 'The requested endpoint does not exist',
                'kind': 'not_found'
            }), 404

        @self.app.errorhandler(405)
        def method_not_allowed(error):
            return jsonify({
                'msg': 'method not allowed',
                'error': 'The requested method is not allowed for this endpoint',
                'kind': 'method_not_allowed'
            }), 405

        @self.app.errorhandler(Exception)
        def internal_error(error):
            if isinstance(error, HTTPException):
                return jsonify({
                    'msg': error.name.lower(),
                    'error': error.description,
                    'kind': 'invalid_request'
                }), error.code
            self.logger.exception(f"Unexpected error handling {request.path}: {error}")
            return jsonify({
                'msg': f"unable to complete {request.path}",
                'error': str(error),
                'kind': 'internal_error'
            }), 500

    def run(self, host: str = '0.0.0.0', port: Optional[int] = None, debug: bool = False):
        """Run the Flask development server with request threads."""
        port = port or self.config.port
        self.logger.info(f"Listening on port :{port}")
        self.app.run(host=host, port=port, debug=debug, threaded=True, use_reloader=False)

