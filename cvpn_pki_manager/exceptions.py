"""
Error taxonomy for the PKI manager.

Every error raised by the core derives from PKIManagerError and carries a
``kind`` and an HTTP ``status_code`` so the API layer can report each failure
class distinctly.
"""
from typing import List, Optional


class PKIManagerError(Exception):
    """Base class for all PKI manager errors."""
    kind = "internal_error"
    status_code = 500

    def to_dict(self) -> dict:
        return {'kind': self.kind, 'error': str(self)}


class BackendUnavailable(PKIManagerError):
    """Vault could not be reached or answered with a server side error."""
    kind = "backend_unavailable"
    status_code = 503


class SessionNotReady(BackendUnavailable):
    """No authenticated Vault session was published in time."""
    kind = "session_not_ready"


class AuthFailure(PKIManagerError):
    """Vault rejected the credentials of the session."""
    kind = "auth_failure"
    status_code = 502


class MalformedCertificate(PKIManagerError):
    """A stored certificate could not be decoded as PEM/X.509."""
    kind = "malformed_certificate"
    status_code = 502


class MalformedCRL(PKIManagerError):
    """The CRL returned by Vault could not be decoded."""
    kind = "malformed_crl"
    status_code = 502


class PartialRevocationFailure(PKIManagerError):
    """Some certificates were revoked before a revocation call failed."""
    kind = "partial_revocation"
    status_code = 500

    def __init__(self, message: str, revoked: List[str], failed_serial: Optional[str] = None):
        super().__init__(message)
        self.revoked = list(revoked)
        self.failed_serial = failed_serial

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['revoked'] = self.revoked
        data['failed_serial'] = self.failed_serial
        return data


class GatewayAPIFailure(PKIManagerError):
    """A call to the Client VPN endpoint API failed."""
    kind = "gateway_api_failure"
    status_code = 504


class TemplateRenderFailure(PKIManagerError):
    """The client configuration template could not be loaded or rendered."""
    kind = "template_render_failure"
    status_code = 500


class UserNotFound(PKIManagerError):
    """The requested user has no certificates on record."""
    kind = "user_not_found"
    status_code = 404
