"""
Certificate data models.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List


@dataclass(frozen=True)
class Certificate:
    """A leaf certificate stored in the Vault PKI engine.

    ``revoked`` is computed from the CRL every time certificates are listed and
    is never persisted.
    """
    serial_number: str
    issuer_cn: str
    subject_cn: str
    not_before: datetime
    not_after: datetime
    revoked: bool
    certificate_pem: str

    def to_dict(self) -> Dict[str, object]:
        """Serialize to the JSON shape exposed by the users endpoint."""
        return {
            'serial': self.serial_number,
            'issuerCN': self.issuer_cn,
            'subjectCN': self.subject_cn,
            'notBefore': self.not_before.isoformat(),
            'notAfter': self.not_after.isoformat(),
            'revoked': self.revoked,
            'certificate-pem': self.certificate_pem,
        }


@dataclass(frozen=True)
class IssuedCertificate:
    """Material returned by Vault when a new certificate is issued."""
    certificate: str
    private_key: str
    serial_number: str


# username -> certificates sorted ascending by not_before
UserCertificateSet = Dict[str, List[Certificate]]
