"""
Models package for the PKI manager.
"""

from .certificate import Certificate, IssuedCertificate, UserCertificateSet
from .config import Config, ConfigValidationError, ConfigValidationResult

__all__ = [
    'Certificate',
    'IssuedCertificate',
    'UserCertificateSet',
    'Config',
    'ConfigValidationError',
    'ConfigValidationResult'
]
