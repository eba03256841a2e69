"""
Client certificate issuance and user revocation.
"""
import logging
from typing import List

from ..exceptions import UserNotFound
from .crl_service import CRLService
from .gateway_service import ClientVPNGateway
from .pki_backend import PKIBackendInterface
from .template_service import ConfigRenderer


class CertificateIssuer:
    """Issues VPN client certificates and revokes users."""

    def __init__(self, backend: PKIBackendInterface, gateway: ClientVPNGateway,
                 crl_service: CRLService, renderer: ConfigRenderer,
                 kv_path: str, kv_config_key: str = "config.ovpn"):
        self.backend = backend
        self.gateway = gateway
        self.crl_service = crl_service
        self.renderer = renderer
        self.kv_path = kv_path
        self.kv_config_key = kv_config_key
        self.logger = logging.getLogger(__name__)

    def issue(self, username: str, role: str, pki_paths: List[str], endpoint_id: str) -> str:
        """
        Issue a new certificate for ``username`` and return its VPN config.

        The certificate is issued by the last path of ``pki_paths``; the paths
        are ordered from the root CA to the issuing CA and all of their CA
        certificates go into the config. The config is stored in the KV engine
        and the CRL is reconciled afterwards, which revokes the user's previous
        certificates. Steps already done are not undone when a later one fails.
        """
        if not pki_paths:
            raise ValueError("at least one PKI path is required")
        issuing_path = pki_paths[-1]

        issued = self.backend.issue_certificate(issuing_path, role, username)

        # The VPN config needs the full CA chain to the root CA
        ca_chain = "\n".join(self.backend.read_ca_pem(path) for path in pki_paths)

        dns_name = self.gateway.get_dns_name(endpoint_id)

        config = self.renderer.render(
            dns_name=dns_name,
            username=username,
            ca=ca_chain,
            certificate=issued.certificate,
            private_key=issued.private_key,
        )

        self.backend.write_user_config(self.kv_path, username, self.kv_config_key, config)

        self.crl_service.update_crl(issuing_path, endpoint_id)

        self.logger.info(f"Issued certificate {issued.serial_number} for user {username}")
        return config

    def revoke_user(self, username: str, pki_path: str, endpoint_id: str) -> List[str]:
        """
        Revoke every certificate of ``username`` and push the new CRL.

        Returns:
            Serials revoked for the user

        Raises:
            UserNotFound: The user has no certificates
        """
        with self.crl_service.lock(pki_path, endpoint_id):
            users = self.crl_service.catalog.list_users(pki_path)
            certificates = users.get(username)
            if not certificates:
                raise UserNotFound(f"no certificates found for user {username}")

            revoked = self.crl_service.policy.apply(pki_path, certificates, revoke_all=True)
            self.crl_service.update_crl(pki_path, endpoint_id)

        self.logger.info(f"Revoked {len(revoked)} certificates of user {username}")
        return revoked
