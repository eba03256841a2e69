"""
Decides which of a user's certificates to revoke and revokes them.
"""
import logging
from typing import List, Sequence

from ..exceptions import PartialRevocationFailure, PKIManagerError
from ..models.certificate import Certificate
from .pki_backend import PKIBackendInterface


class RevocationPolicy:
    """Keeps only the newest certificate of a user active, or revokes all of them."""

    def __init__(self, backend: PKIBackendInterface):
        self.backend = backend
        self.logger = logging.getLogger(__name__)

    def select(self, certificates: Sequence[Certificate], revoke_all: bool) -> List[Certificate]:
        """Certificates ``apply`` would revoke, oldest first."""
        candidates = certificates if revoke_all else certificates[:-1]
        return [c for c in candidates if not c.revoked]

    def apply(self, pki_path: str, certificates: Sequence[Certificate], revoke_all: bool) -> List[str]:
        """
        Revoke certificates of one user.

        Args:
            pki_path: PKI engine that issued the certificates
            certificates: The user's certificates sorted oldest to newest
            revoke_all: Also revoke the newest certificate

        Returns:
            Serials revoked by this call

        Raises:
            PartialRevocationFailure: A revocation failed after others succeeded;
                the earlier revocations are kept
        """
        revoked: List[str] = []
        for cert in self.select(certificates, revoke_all):
            try:
                self.backend.revoke_certificate(pki_path, cert.serial_number)
            except PKIManagerError as e:
                self.logger.error(f"unable to revoke certificate {cert.subject_cn}/{cert.serial_number}: {e}")
                if not revoked:
                    raise
                raise PartialRevocationFailure(
                    f"revoked {len(revoked)} certificates before failing on {cert.serial_number}: {e}",
                    revoked=revoked,
                    failed_serial=cert.serial_number,
                ) from e
            revoked.append(cert.serial_number)
            self.logger.info(f"Revoked cert {cert.subject_cn}/{cert.serial_number}")
        return revoked
