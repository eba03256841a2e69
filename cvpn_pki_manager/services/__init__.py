"""
Services package for the PKI manager.
"""

from .config_service import ConfigService
from .catalog_service import CertificateCatalog
from .revocation_service import RevocationPolicy
from .crl_service import CRLService
from .issuer_service import CertificateIssuer

__all__ = [
    'ConfigService',
    'CertificateCatalog',
    'RevocationPolicy',
    'CRLService',
    'CertificateIssuer'
]
