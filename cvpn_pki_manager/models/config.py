"""
Configuration data models for the Client VPN PKI manager.
"""
from dataclasses import dataclass, field
from typing import List, Optional


LOG_MODES = ("production", "development")


@dataclass
class Config:
    """Main configuration class containing all application settings."""

    # Server settings
    port: int = 8080
    log_mode: str = "production"
    log_level: str = "INFO"
    log_file_path: Optional[str] = None

    # Vault settings
    vault_address: str = ""
    vault_pki_paths: List[str] = field(default_factory=lambda: ["root-pki", "cvpn-pki"])
    vault_client_certificate_role: str = "client"
    vault_kv_path: str = "secret"
    vault_kv_config_key: str = "config.ovpn"
    vault_api_timeout_seconds: int = 30

    # Vault auth settings
    vault_auth_token: Optional[str] = None
    vault_auth_approle_role_id: Optional[str] = None
    vault_auth_approle_secret_id: Optional[str] = None
    vault_auth_approle_backend_path: str = "approle"
    vault_token_renew_increment: int = 3600
    vault_login_retry_seconds: int = 5
    vault_session_ready_timeout_seconds: int = 30

    # AWS settings
    client_vpn_endpoint_id: str = ""
    aws_region: Optional[str] = None
    aws_api_timeout_seconds: int = 30

    # Client config template
    config_template_path: str = "./config.ovpn.tpl"

    # GitHub authorization settings
    auth_github_org: Optional[str] = None
    auth_github_users: List[str] = field(default_factory=list)
    auth_github_teams: List[str] = field(default_factory=list)
    auth_github_api_url: str = "https://api.github.com"

    # Scheduler settings
    enable_crl_rotation: bool = True
    crl_rotation_time: str = "00:00"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_types()

    def _validate_types(self):
        """Ensure all configuration values have correct types."""
        if not isinstance(self.port, int) or not (1 <= self.port <= 65535):
            raise ValueError("port must be an integer between 1 and 65535")

        for name in ("vault_api_timeout_seconds", "aws_api_timeout_seconds",
                     "vault_token_renew_increment", "vault_session_ready_timeout_seconds"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer")

        if not isinstance(self.vault_login_retry_seconds, int) or self.vault_login_retry_seconds < 0:
            raise ValueError("vault_login_retry_seconds must be a non-negative integer")

        if not isinstance(self.vault_pki_paths, list):
            raise ValueError("vault_pki_paths must be a list of paths")

        if self.log_mode not in LOG_MODES:
            raise ValueError("log_mode must be one of: production, development")

        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    @property
    def issuing_pki_path(self) -> str:
        """The PKI path that issues client certificates (last in the chain)."""
        return self.vault_pki_paths[-1]

    def uses_approle(self) -> bool:
        """Whether Vault authentication uses the AppRole backend."""
        return not self.vault_auth_token and bool(
            self.vault_auth_approle_role_id and self.vault_auth_approle_secret_id
        )

    def masked_summary(self) -> str:
        """Human readable summary of the loaded configuration with secrets masked."""
        return (
            "Loaded config:\n"
            f"    vault-addr: {self.vault_address}\n"
            f"    vault-auth: {'approle' if self.uses_approle() else 'token'} (****************)\n"
            f"    client-vpn-endpoint-id: {self.client_vpn_endpoint_id}\n"
            f"    vault-pki-paths: {self.vault_pki_paths}\n"
            f"    vault-client-certificate-role: {self.vault_client_certificate_role}\n"
            f"    vault-kv-path: {self.vault_kv_path}\n"
            f"    config-template-path: {self.config_template_path}"
        )


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    severity: str = "error"  # error, warning

    def __str__(self):
        return f"{self.severity.upper()}: {self.field} - {self.message}"


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: List[ConfigValidationError]
    warnings: List[ConfigValidationError]

    def __post_init__(self):
        """Separate errors and warnings."""
        all_issues = self.errors + self.warnings
        self.errors = [e for e in all_issues if e.severity == "error"]
        self.warnings = [e for e in all_issues if e.severity == "warning"]

    def has_errors(self) -> bool:
        """Check if there are any validation errors."""
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        """Check if there are any validation warnings."""
        return len(self.warnings) > 0

    def get_error_summary(self) -> str:
        """Get a formatted summary of all errors and warnings."""
        lines = []

        if self.errors:
            lines.append("Configuration Errors:")
            for error in self.errors:
                lines.append(f"  - {error}")

        if self.warnings:
            lines.append("Configuration Warnings:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")

        return "\n".join(lines) if lines else "Configuration is valid"
