"""
CRL reconciliation between the Vault PKI engine and the Client VPN endpoint.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

from ..exceptions import PartialRevocationFailure, PKIManagerError
from .catalog_service import CertificateCatalog
from .gateway_service import ClientVPNGateway
from .pki_backend import PKIBackendInterface
from .revocation_service import RevocationPolicy


class ReconcileLocks:
    """One re-entrant lock per (pki_path, endpoint_id)."""

    def __init__(self):
        self._locks: Dict[Tuple[str, str], threading.RLock] = {}
        self._guard = threading.Lock()

    def get(self, pki_path: str, endpoint_id: str) -> threading.RLock:
        key = (pki_path, endpoint_id)
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.RLock()
            return self._locks[key]


class CRLService:
    """Keeps one active certificate per user and syncs the CRL to the VPN endpoint."""

    def __init__(self, backend: PKIBackendInterface, gateway: ClientVPNGateway,
                 catalog: Optional[CertificateCatalog] = None,
                 policy: Optional[RevocationPolicy] = None,
                 locks: Optional[ReconcileLocks] = None):
        self.backend = backend
        self.gateway = gateway
        self.catalog = catalog or CertificateCatalog(backend)
        self.policy = policy or RevocationPolicy(backend)
        self.locks = locks or ReconcileLocks()
        self.logger = logging.getLogger(__name__)

    @contextmanager
    def lock(self, pki_path: str, endpoint_id: str):
        """Serialize CRL mutating operations for one PKI engine and endpoint."""
        with self.locks.get(pki_path, endpoint_id):
            yield

    def get_crl(self, pki_path: str) -> str:
        """Return the CRL PEM currently published by Vault."""
        return self.backend.read_crl_pem(pki_path)

    def update_crl(self, pki_path: str, endpoint_id: str) -> str:
        """
        Revoke all but the newest certificate of every user and push the CRL.

        The CRL is only imported into the endpoint when the endpoint has none
        or holds a different one, so repeated calls with no new revocations do
        not touch the endpoint.

        Returns:
            The CRL PEM now published by Vault
        """
        with self.lock(pki_path, endpoint_id):
            users = self.catalog.list_users(pki_path)

            revoked: List[str] = []
            for username in sorted(users):
                try:
                    revoked.extend(self.policy.apply(pki_path, users[username], revoke_all=False))
                except PartialRevocationFailure as e:
                    raise PartialRevocationFailure(
                        str(e), revoked=revoked + e.revoked, failed_serial=e.failed_serial
                    ) from e.__cause__
                except PKIManagerError as e:
                    if not revoked:
                        raise
                    raise PartialRevocationFailure(
                        f"revoked {len(revoked)} certificates before failing on user {username}: {e}",
                        revoked=revoked,
                    ) from e

            crl = self.backend.read_crl_pem(pki_path)
            self._sync_gateway(endpoint_id, crl)
            return crl

    def rotate_crl(self, pki_path: str, endpoint_id: str) -> str:
        """Force Vault to rebuild its CRL, then run ``update_crl``."""
        with self.lock(pki_path, endpoint_id):
            self.backend.rotate_crl(pki_path)
            return self.update_crl(pki_path, endpoint_id)

    def _sync_gateway(self, endpoint_id: str, crl: str) -> bool:
        """Import ``crl`` into the endpoint if it differs. Returns True on import."""
        current = self.gateway.export_crl(endpoint_id)

        if current is None:
            self.gateway.import_crl(endpoint_id, crl)
            self.logger.info("First upload of the CRL to the Client VPN endpoint")
            return True

        if current != crl:
            self.gateway.import_crl(endpoint_id, crl)
            self.logger.info("Updated CRL in AWS Client VPN endpoint")
            return True

        self.logger.info("CRL does not need to be updated")
        return False
