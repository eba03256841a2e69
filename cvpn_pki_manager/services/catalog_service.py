"""
Per-user view of the client certificates stored in a PKI engine.
"""
import logging
from typing import Set

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from ..exceptions import MalformedCertificate, MalformedCRL
from ..models.certificate import Certificate, UserCertificateSet
from .pki_backend import PKIBackendInterface


def format_serial(serial_number: int) -> str:
    """Format a serial as hyphenated hex, e.g. ``3a-0f-11``.

    The bytes are the minimal big-endian encoding of the integer, which is the
    format Vault uses for the keys under ``{pki}/certs``.
    """
    length = (serial_number.bit_length() + 7) // 8
    return "-".join(f"{b:02x}" for b in serial_number.to_bytes(length, 'big'))


def username_from_cn(common_name: str) -> str:
    """``alice@example.com`` -> ``alice``; a CN without ``@`` is the username."""
    return common_name.split("@", 1)[0]


def common_name(name: x509.Name) -> str:
    attributes = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    return str(attributes[0].value) if attributes else ""


def is_ca_certificate(cert: x509.Certificate) -> bool:
    try:
        return cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
    except x509.ExtensionNotFound:
        return False


def is_server_certificate(cert: x509.Certificate) -> bool:
    try:
        usages = cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
    except x509.ExtensionNotFound:
        return False
    return ExtendedKeyUsageOID.SERVER_AUTH in usages


def parse_certificate(certificate_pem: str) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(certificate_pem.encode())
    except ValueError as e:
        raise MalformedCertificate(f"failed to parse certificate x509: {e}") from e


def revoked_serials(crl_pem: str) -> Set[str]:
    """Serials listed in a PEM CRL, formatted with ``format_serial``."""
    try:
        crl = x509.load_pem_x509_crl(crl_pem.encode())
    except ValueError as e:
        raise MalformedCRL(f"failed to parse CRL: {e}") from e
    return {format_serial(entry.serial_number) for entry in crl}


class CertificateCatalog:
    """Builds the username -> certificates mapping from the PKI engine state."""

    def __init__(self, backend: PKIBackendInterface):
        self.backend = backend
        self.logger = logging.getLogger(__name__)

    def list_users(self, pki_path: str) -> UserCertificateSet:
        """
        List every client certificate in ``pki_path`` grouped by user.

        CA certificates and server certificates are left out. Each user's list
        is sorted by ``not_before``, oldest first, so the last element is the
        user's active certificate. Any failure aborts the whole listing.
        """
        keys = self.backend.list_certificate_keys(pki_path)
        revoked = revoked_serials(self.backend.read_crl_pem(pki_path))

        users: UserCertificateSet = {}
        for key in keys:
            raw_cert = self.backend.read_certificate(pki_path, key)
            cert = parse_certificate(raw_cert)

            if is_ca_certificate(cert) or is_server_certificate(cert):
                continue

            serial = format_serial(cert.serial_number)
            subject_cn = common_name(cert.subject)
            users.setdefault(username_from_cn(subject_cn), []).append(Certificate(
                serial_number=serial,
                issuer_cn=common_name(cert.issuer),
                subject_cn=subject_cn,
                not_before=cert.not_valid_before_utc,
                not_after=cert.not_valid_after_utc,
                revoked=serial in revoked,
                certificate_pem=raw_cert,
            ))

        for certificates in users.values():
            certificates.sort(key=lambda c: c.not_before)

        self.logger.debug(f"Listed {sum(len(c) for c in users.values())} client certificates "
                          f"for {len(users)} users in {pki_path}")
        return users
