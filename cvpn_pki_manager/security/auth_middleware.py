"""
Authentication hook for the Flask API.
"""
import logging
from functools import wraps
from typing import Optional

from flask import request, g, jsonify

from .github_auth import GitHubAuthorizer


def _bearer_token(header: str) -> Optional[str]:
    """Extract the token from ``Authorization: Bearer <token>``."""
    parts = header.split(" ")
    if len(parts) == 2 and parts[0] == "Bearer":
        return parts[1]
    return None


def setup_github_authentication(app, authorizer: Optional[GitHubAuthorizer]):
    """
    Require a GitHub token on every endpoint except the ``*z`` probes.

    Authentication is disabled when ``authorizer`` is None.
    """
    logger = logging.getLogger(__name__)

    @app.before_request
    def authenticate_request():
        # Probes (/healthz, /readyz) are never authenticated
        if authorizer is None or request.path.endswith("z"):
            g.client_id = 'anonymous'
            g.authenticated = True
            return

        header = request.headers.get('Authorization', '')
        token = _bearer_token(header) if header else ''
        if token is None:
            return jsonify({
                'msg': 'unauthenticated',
                'error': 'Authorization header must be "Bearer <token>"',
                'kind': 'unauthenticated'
            }), 401

        result = authorizer.authorize(token)
        if not result.is_authenticated:
            logger.warning(f"Client authentication failed: {result.error_message}")
            return jsonify({
                'msg': 'unauthenticated',
                'error': result.error_message or 'invalid token',
                'kind': 'unauthenticated'
            }), 401

        logger.info(f"Client authenticated: {result.client_id}")
        g.client_id = result.client_id
        g.authenticated = True

    return app


def require_authentication(f):
    """Decorator to require authentication for specific endpoints."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not getattr(g, 'authenticated', False):
            return jsonify({
                'msg': 'unauthenticated',
                'error': 'This endpoint requires authentication',
                'kind': 'unauthenticated'
            }), 401
        return f(*args, **kwargs)
    return decorated_function
