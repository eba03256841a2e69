"""
Security models for Vault sessions and API authorization.
"""
from dataclasses import dataclass, field
from typing import Any, Optional
from datetime import datetime, timezone


@dataclass
class CredentialSession:
    """An authenticated Vault client plus its lease metadata."""
    client: Any
    renewable: bool = False
    lease_duration: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class AuthenticationResult:
    """Result of authorizing an API caller."""
    is_authenticated: bool
    client_id: Optional[str]
    error_message: Optional[str]
