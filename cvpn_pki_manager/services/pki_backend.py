"""
Vault PKI and KV access used by the certificate lifecycle services.
"""
import logging
from contextlib import contextmanager
from typing import List

import requests
from hvac.exceptions import (
    Forbidden,
    InternalServerError,
    InvalidPath,
    Unauthorized,
    VaultDown,
    VaultError,
)

from ..exceptions import AuthFailure, BackendUnavailable
from ..models.certificate import IssuedCertificate
from ..security.session_manager import SessionProvider


class PKIBackendInterface:
    """Interface for the PKI secrets engine and the KV store."""

    def issue_certificate(self, pki_path: str, role: str, common_name: str) -> IssuedCertificate:
        raise NotImplementedError

    def read_ca_pem(self, pki_path: str) -> str:
        raise NotImplementedError

    def read_crl_pem(self, pki_path: str) -> str:
        raise NotImplementedError

    def rotate_crl(self, pki_path: str) -> None:
        raise NotImplementedError

    def list_certificate_keys(self, pki_path: str) -> List[str]:
        raise NotImplementedError

    def read_certificate(self, pki_path: str, serial: str) -> str:
        raise NotImplementedError

    def revoke_certificate(self, pki_path: str, serial: str) -> None:
        raise NotImplementedError

    def write_user_config(self, kv_path: str, username: str, config_key: str, content: str) -> None:
        raise NotImplementedError


class VaultPKIBackend(PKIBackendInterface):
    """PKI backend talking to Vault through ``hvac``.

    Every call fetches the client from the session provider so a token
    refreshed by the renewal loop is picked up immediately.
    """

    def __init__(self, session_provider: SessionProvider):
        self.session_provider = session_provider
        self.logger = logging.getLogger(__name__)

    def _client(self):
        return self.session_provider.get_client()

    @contextmanager
    def _vault_call(self, description: str):
        """Translate hvac/requests failures into the PKI manager taxonomy."""
        try:
            yield
        except (Unauthorized, Forbidden) as e:
            self.logger.error(f"Vault rejected {description}: {e}")
            raise AuthFailure(f"Vault rejected {description}: {e}") from e
        except (VaultDown, InternalServerError) as e:
            self.logger.error(f"Vault unavailable during {description}: {e}")
            raise BackendUnavailable(f"Vault unavailable during {description}: {e}") from e
        except VaultError as e:
            self.logger.error(f"Vault error in {description}: {e}")
            raise BackendUnavailable(f"Vault error in {description}: {e}") from e
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Unable to reach Vault for {description}: {e}")
            raise BackendUnavailable(f"Unable to reach Vault for {description}: {e}") from e

    def issue_certificate(self, pki_path: str, role: str, common_name: str) -> IssuedCertificate:
        with self._vault_call(f"{pki_path}/issue/{role}"):
            response = self._client().secrets.pki.generate_certificate(
                name=role,
                common_name=common_name,
                mount_point=pki_path,
            )
        data = response['data']
        issued = IssuedCertificate(
            certificate=data['certificate'],
            private_key=data['private_key'],
            serial_number=data['serial_number'],
        )
        self.logger.info(f"Issued certificate {issued.serial_number}")
        return issued

    def read_ca_pem(self, pki_path: str) -> str:
        with self._vault_call(f"/{pki_path}/ca/pem"):
            return _as_text(self._client().secrets.pki.read_ca_certificate(mount_point=pki_path))

    def read_crl_pem(self, pki_path: str) -> str:
        with self._vault_call(f"/{pki_path}/crl/pem"):
            return _as_text(self._client().secrets.pki.read_crl(mount_point=pki_path))

    def rotate_crl(self, pki_path: str) -> None:
        with self._vault_call(f"/{pki_path}/crl/rotate"):
            self._client().secrets.pki.rotate_crl(mount_point=pki_path)
        self.logger.info(f"Rotated CRL of {pki_path}")

    def list_certificate_keys(self, pki_path: str) -> List[str]:
        with self._vault_call(f"{pki_path}/certs"):
            try:
                response = self._client().secrets.pki.list_certificates(mount_point=pki_path)
            except InvalidPath:
                # Vault answers 404 to a LIST on an empty engine
                return []
        return list(response['data']['keys'])

    def read_certificate(self, pki_path: str, serial: str) -> str:
        with self._vault_call(f"{pki_path}/cert/{serial}"):
            response = self._client().secrets.pki.read_certificate(serial=serial, mount_point=pki_path)
        return response['data']['certificate']

    def revoke_certificate(self, pki_path: str, serial: str) -> None:
        with self._vault_call(f"{pki_path}/revoke"):
            self._client().secrets.pki.revoke_certificate(serial_number=serial, mount_point=pki_path)

    def write_user_config(self, kv_path: str, username: str, config_key: str, content: str) -> None:
        path = f"users/{username}/{config_key}"
        with self._vault_call(f"{kv_path}/data/{path}"):
            self._client().secrets.kv.v2.create_or_update_secret(
                path=path,
                secret={'content': content},
                mount_point=kv_path,
            )
        self.logger.info(f"Stored client config at {kv_path}/data/{path}")


def _as_text(value) -> str:
    """hvac returns raw PEM endpoints either as text or as a response object."""
    if isinstance(value, bytes):
        return value.decode('utf-8')
    if isinstance(value, str):
        return value
    return value.text
