"""
Security package: Vault credential sessions and API caller authorization.
"""
from .models import CredentialSession, AuthenticationResult
from .session_manager import (
    SessionProvider,
    TokenSessionProvider,
    AppRoleSessionProvider,
    create_session_provider,
)
from .github_auth import GitHubAuthorizer
from .auth_middleware import setup_github_authentication, require_authentication

__all__ = [
    'CredentialSession',
    'AuthenticationResult',
    'SessionProvider',
    'TokenSessionProvider',
    'AppRoleSessionProvider',
    'create_session_provider',
    'GitHubAuthorizer',
    'setup_github_authentication',
    'require_authentication'
]
