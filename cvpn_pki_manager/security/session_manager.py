"""
Vault session management.

Two strategies produce an authenticated ``hvac.Client``:

* ``TokenSessionProvider`` uses a static token and builds the client once.
* ``AppRoleSessionProvider`` logs in through the AppRole auth backend and keeps
  the token alive from a background thread, logging in again whenever the
  token can no longer be renewed.
"""
import logging
import threading
from typing import Optional

import hvac
from hvac.exceptions import VaultError
import requests

from ..exceptions import AuthFailure, SessionNotReady
from .models import CredentialSession


class SessionProvider:
    """Produces authenticated Vault sessions."""

    def __init__(self, address: str, api_timeout: int = 30):
        self.address = address
        self.api_timeout = api_timeout
        self.logger = logging.getLogger(__name__)

    def get_session(self, timeout: Optional[float] = None) -> CredentialSession:
        """Return a usable session, blocking up to ``timeout`` seconds if needed."""
        raise NotImplementedError

    def get_client(self, timeout: Optional[float] = None) -> hvac.Client:
        return self.get_session(timeout).client

    def start(self) -> None:
        """Start any background activity."""

    def stop(self) -> None:
        """Stop any background activity."""

    def is_ready(self) -> bool:
        raise NotImplementedError

    def _new_client(self, token: Optional[str] = None) -> hvac.Client:
        return hvac.Client(url=self.address, token=token, timeout=self.api_timeout)


class TokenSessionProvider(SessionProvider):
    """Static token authentication. The token is never renewed."""

    def __init__(self, address: str, token: str, api_timeout: int = 30):
        super().__init__(address, api_timeout)
        self._token = token
        self._session: Optional[CredentialSession] = None
        self._lock = threading.Lock()

    def get_session(self, timeout: Optional[float] = None) -> CredentialSession:
        if self._session is None:
            with self._lock:
                if self._session is None:
                    client = self._new_client(token=self._token)
                    self._session = CredentialSession(client=client, renewable=False)
                    self.logger.info(f"Created token authenticated Vault client for {self.address}")
        return self._session

    def is_ready(self) -> bool:
        return True


class AppRoleSessionProvider(SessionProvider):
    """AppRole authentication with a supervised login/renew loop."""

    # Renew once this fraction of the lease has elapsed
    RENEW_FRACTION = 2 / 3
    # A renewal granting less than this fraction of the original lease means
    # the token is close to its max TTL
    GRACE_FRACTION = 0.1
    # Pause before logging in again after a non renewable token was issued
    RELOGIN_BACKOFF = 1.0

    def __init__(self, address: str, role_id: str, secret_id: str,
                 backend_path: str = "approle",
                 api_timeout: int = 30,
                 renew_increment: int = 3600,
                 login_retry_seconds: float = 5,
                 ready_timeout: float = 30):
        """
        Args:
            address: Vault server address
            role_id: AppRole role id
            secret_id: AppRole secret id
            backend_path: Mount path of the AppRole auth backend
            api_timeout: Per request timeout in seconds
            renew_increment: Requested TTL extension on each renewal, in seconds
            login_retry_seconds: Pause between failed logins
            ready_timeout: Default time ``get_session`` waits for the first login
        """
        super().__init__(address, api_timeout)
        self.role_id = role_id
        self.secret_id = secret_id
        self.backend_path = backend_path
        self.renew_increment = renew_increment
        self.login_retry_seconds = login_retry_seconds
        self.ready_timeout = ready_timeout

        self._session: Optional[CredentialSession] = None
        self._session_lock = threading.Lock()
        self._start_lock = threading.Lock()
        self._ready = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.login_count = 0

    def start(self) -> None:
        """Start the login/renew loop in a background thread."""
        with self._start_lock:
            if self._thread and self._thread.is_alive():
                self.logger.warning("Vault token renewal loop is already running")
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run, name="vault-approle-renewal", daemon=True
            )
            self._thread.start()
        self.logger.info("Vault token renewal loop started")

    def stop(self, timeout: float = 5) -> None:
        """Signal the loop to exit and wait for it. The provider is no longer ready."""
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._ready.clear()
        self.logger.info("Vault token renewal loop stopped")

    def is_ready(self) -> bool:
        return self._ready.is_set()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def get_session(self, timeout: Optional[float] = None) -> CredentialSession:
        if self._thread is None:
            self.start()
        wait = self.ready_timeout if timeout is None else timeout
        if not self._ready.wait(wait):
            raise SessionNotReady(f"no Vault session available after {wait}s")
        with self._session_lock:
            return self._session

    def _run(self) -> None:
        """Login, publish, watch the lease; repeat until stopped.

        A non renewable token is replaced after ``RELOGIN_BACKOFF`` seconds.
        Readiness is withdrawn once a lease can no longer be renewed and stays
        withdrawn until the next successful login.
        """
        while not self._stop_event.is_set():
            try:
                session = self._login()
            except (VaultError, requests.exceptions.RequestException, AuthFailure) as e:
                self.logger.error(f"unable to authenticate to Vault: {e}")
                self._stop_event.wait(self.login_retry_seconds)
                continue
            except Exception as e:
                self.logger.exception(f"Unexpected error during Vault login: {e}")
                self._stop_event.wait(self.login_retry_seconds)
                continue

            self._publish(session)

            if not session.renewable:
                self.logger.debug("Token is not configured to be renewable. Re-attempting login.")
                self._stop_event.wait(self.RELOGIN_BACKOFF)
                continue

            self._watch_lease(session)
            self._ready.clear()

    def _login(self) -> CredentialSession:
        """Request a new token from the AppRole backend."""
        client = self._new_client()
        response = client.auth.approle.login(
            role_id=self.role_id,
            secret_id=self.secret_id,
            mount_point=self.backend_path,
        )
        auth = (response or {}).get('auth')
        if not auth:
            raise AuthFailure("no auth info was returned after login")

        self.login_count += 1
        self.logger.debug("Successfully logged into Vault using AppRole auth")
        return CredentialSession(
            client=client,
            renewable=bool(auth.get('renewable')),
            lease_duration=int(auth.get('lease_duration') or 0),
        )

    def _publish(self, session: CredentialSession) -> None:
        with self._session_lock:
            self._session = session
        if not self._stop_event.is_set():
            self._ready.set()

    def _watch_lease(self, session: CredentialSession) -> None:
        """Renew the token until it cannot be extended any more.

        Returns when a renewal fails, when the granted TTL falls under the
        grace period, or when the provider is stopped.
        """
        grace = session.lease_duration * self.GRACE_FRACTION
        lease = session.lease_duration

        while True:
            if self._stop_event.wait(max(1.0, lease * self.RENEW_FRACTION)):
                return
            try:
                response = session.client.auth.token.renew_self(increment=self.renew_increment)
            except (VaultError, requests.exceptions.RequestException) as e:
                self.logger.error(f"failed to renew token, re-attempting login: {e}")
                return

            auth = (response or {}).get('auth') or {}
            lease = int(auth.get('lease_duration') or 0)
            if not auth.get('renewable') or lease <= grace:
                # This occurs once the token has reached max TTL
                self.logger.debug("token can no longer be renewed, re-attempting login")
                return

            session.lease_duration = lease
            self.logger.debug(f"Successfully renewed Vault token, lease {lease}s")


def create_session_provider(config) -> SessionProvider:
    """Select the Vault auth strategy from configuration."""
    if config.vault_auth_token:
        return TokenSessionProvider(
            address=config.vault_address,
            token=config.vault_auth_token,
            api_timeout=config.vault_api_timeout_seconds,
        )
    if config.vault_auth_approle_role_id and config.vault_auth_approle_secret_id:
        return AppRoleSessionProvider(
            address=config.vault_address,
            role_id=config.vault_auth_approle_role_id,
            secret_id=config.vault_auth_approle_secret_id,
            backend_path=config.vault_auth_approle_backend_path,
            api_timeout=config.vault_api_timeout_seconds,
            renew_increment=config.vault_token_renew_increment,
            login_retry_seconds=config.vault_login_retry_seconds,
            ready_timeout=config.vault_session_ready_timeout_seconds,
        )
    raise ValueError("Vault auth config options missing")
