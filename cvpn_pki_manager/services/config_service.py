"""
Configuration service for loading and validating application settings.
"""
import os
import time
import configparser
from typing import Optional, Dict, Any, List
import logging

from ..models.config import Config, ConfigValidationError, ConfigValidationResult


class ConfigService:
    """Service for loading and validating application configuration."""

    # section.key -> (Config field, type)
    CONFIG_MAPPING = {
        # Server settings
        "server.port": ("port", int),
        "server.log_mode": ("log_mode", str),
        "server.log_level": ("log_level", str),
        "server.log_file_path": ("log_file_path", str),

        # Vault settings
        "vault.address": ("vault_address", str),
        "vault.pki_paths": ("vault_pki_paths", list),
        "vault.client_certificate_role": ("vault_client_certificate_role", str),
        "vault.kv_path": ("vault_kv_path", str),
        "vault.kv_config_key": ("vault_kv_config_key", str),
        "vault.api_timeout_seconds": ("vault_api_timeout_seconds", int),
        "vault.auth_token": ("vault_auth_token", str),
        "vault.auth_approle_role_id": ("vault_auth_approle_role_id", str),
        "vault.auth_approle_secret_id": ("vault_auth_approle_secret_id", str),
        "vault.auth_approle_backend_path": ("vault_auth_approle_backend_path", str),
        "vault.token_renew_increment": ("vault_token_renew_increment", int),
        "vault.login_retry_seconds": ("vault_login_retry_seconds", int),
        "vault.session_ready_timeout_seconds": ("vault_session_ready_timeout_seconds", int),

        # AWS settings
        "aws.client_vpn_endpoint_id": ("client_vpn_endpoint_id", str),
        "aws.region": ("aws_region", str),
        "aws.api_timeout_seconds": ("aws_api_timeout_seconds", int),

        # Template settings
        "template.config_template_path": ("config_template_path", str),

        # GitHub authorization
        "auth.github_org": ("auth_github_org", str),
        "auth.github_users": ("auth_github_users", list),
        "auth.github_teams": ("auth_github_teams", list),
        "auth.github_api_url": ("auth_github_api_url", str),

        # Scheduler settings
        "scheduler.enable_crl_rotation": ("enable_crl_rotation", bool),
        "scheduler.crl_rotation_time": ("crl_rotation_time", str),
    }

    # Fields where an empty value in the file means "not set"
    _OPTIONAL_FIELDS = {
        "log_file_path", "vault_auth_token", "vault_auth_approle_role_id",
        "vault_auth_approle_secret_id", "aws_region", "auth_github_org",
    }

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def load_config(self, config_path: str, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Load configuration from a property file.

        Args:
            config_path: Path to the configuration file
            overrides: Raw ``section.key`` values that take precedence over the file

        Returns:
            Config object with loaded settings

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid or has validation errors
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        config_data = self._load_config_file(config_path)
        if overrides:
            config_data.update({k: v for k, v in overrides.items() if v is not None})

        config = self._create_config_from_data(config_data)

        validation_result = self.validate_config(config)

        if validation_result.has_errors():
            error_summary = validation_result.get_error_summary()
            raise ValueError(f"Configuration validation failed:\n{error_summary}")

        if validation_result.has_warnings():
            warning_summary = validation_result.get_error_summary()
            self.logger.warning(f"Configuration warnings:\n{warning_summary}")

        self.logger.info(config.masked_summary())

        return config

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """Load configuration data from file."""
        config_parser = configparser.ConfigParser()

        try:
            config_parser.read(config_path)
        except configparser.Error as e:
            raise ValueError(f"Failed to parse configuration file: {e}")

        # Flatten to section.key
        config_data = {}
        for section in config_parser.sections():
            for key, value in config_parser.items(section):
                config_data[f"{section}.{key}"] = value

        return config_data

    def _create_config_from_data(self, config_data: Dict[str, Any]) -> Config:
        """Create Config object from configuration data."""
        config_kwargs = {}

        for config_key, raw_value in config_data.items():
            if config_key not in self.CONFIG_MAPPING:
                continue
            field_name, field_type = self.CONFIG_MAPPING[config_key]
            try:
                if field_type == bool:
                    value = self._parse_bool(raw_value)
                elif field_type == int:
                    value = int(raw_value)
                elif field_type == list:
                    value = self._parse_list(raw_value)
                else:
                    value = str(raw_value).strip() if raw_value is not None else None
                    if value == "" and field_name in self._OPTIONAL_FIELDS:
                        value = None

                config_kwargs[field_name] = value
            except (ValueError, TypeError) as e:
                raise ValueError(f"Invalid value for {config_key}: {raw_value} ({e})")

        return Config(**config_kwargs)

    def _parse_bool(self, value: Any) -> bool:
        """Parse boolean value from string."""
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "yes", "1", "on", "enabled")
        return bool(value)

    def _parse_list(self, value: Any) -> List[str]:
        """Parse a comma separated list."""
        if isinstance(value, (list, tuple)):
            return [str(v).strip() for v in value if str(v).strip()]
        return [item.strip() for item in str(value).split(",") if item.strip()]

    def validate_config(self, config: Config) -> ConfigValidationResult:
        """
        Validate configuration settings.

        Args:
            config: Configuration object to validate

        Returns:
            ConfigValidationResult with validation results
        """
        errors = []
        warnings = []

        # Required settings
        required = [
            ("vault_address", "Vault server address is required"),
            ("client_vpn_endpoint_id", "The AWS Client VPN endpoint ID is required"),
            ("vault_client_certificate_role", "The Vault role used to issue client certificates is required"),
            ("vault_kv_path", "The Vault KV (v2) path for VPN configs is required"),
            ("vault_kv_config_key", "The Vault KV key for VPN configs is required"),
            ("config_template_path", "The client config template path is required"),
        ]
        for field_name, message in required:
            if not getattr(config, field_name):
                errors.append(ConfigValidationError(field_name, message))

        if not config.vault_pki_paths:
            errors.append(ConfigValidationError(
                "vault_pki_paths",
                "At least one PKI path is required, the root CA path first"
            ))

        # Vault auth
        if config.vault_auth_token:
            if config.vault_auth_approle_role_id or config.vault_auth_approle_secret_id:
                warnings.append(ConfigValidationError(
                    "vault_auth_token",
                    "Both token and AppRole credentials set, the token takes precedence",
                    "warning"
                ))
        elif not config.uses_approle():
            errors.append(ConfigValidationError(
                "vault_auth",
                "Vault auth config options missing: set auth_token or "
                "auth_approle_role_id and auth_approle_secret_id"
            ))

        if config.uses_approle() and not config.vault_auth_approle_backend_path:
            errors.append(ConfigValidationError(
                "vault_auth_approle_backend_path",
                "The AppRole auth backend path is required"
            ))

        # Template
        if config.config_template_path and not os.path.exists(config.config_template_path):
            warnings.append(ConfigValidationError(
                "config_template_path",
                f"Config template not found: {config.config_template_path}",
                "warning"
            ))

        # Scheduler
        if config.enable_crl_rotation:
            try:
                time.strptime(config.crl_rotation_time, "%H:%M")
            except ValueError:
                errors.append(ConfigValidationError(
                    "crl_rotation_time",
                    f"Invalid time format: {config.crl_rotation_time}. Use HH:MM format."
                ))

        # GitHub authorization
        if (config.auth_github_users or config.auth_github_teams) and not config.auth_github_org:
            warnings.append(ConfigValidationError(
                "auth_github_org",
                "GitHub users/teams are ignored unless auth_github_org is set",
                "warning"
            ))

        # Log file path
        if config.log_file_path:
            log_dir = os.path.dirname(config.log_file_path)
            if log_dir and not os.path.exists(log_dir):
                warnings.append(ConfigValidationError(
                    "log_file_path",
                    f"Log directory does not exist: {log_dir}",
                    "warning"
                ))

        if config.vault_api_timeout_seconds > 300 or config.aws_api_timeout_seconds > 300:
            warnings.append(ConfigValidationError(
                "api_timeout_seconds",
                "API timeouts over 5 minutes may block request threads",
                "warning"
            ))

        all_issues = errors + warnings
        return ConfigValidationResult(
            is_valid=len(errors) == 0,
            errors=all_issues,
            warnings=[]
        )

    def create_default_config_file(self, config_path: str) -> None:
        """
        Create a default configuration file with example settings.

        Args:
            config_path: Path where to create the config file
        """
        config_content = """# Client VPN PKI Manager Configuration File

[server]
port = 8080
log_mode = production
log_level = INFO
log_file_path =

[vault]
address = http://localhost:8200
# Root CA first, issuing CA last
pki_paths = root-pki,cvpn-pki
client_certificate_role = client
kv_path = secret
kv_config_key = config.ovpn
api_timeout_seconds = 30
auth_token =
auth_approle_role_id =
auth_approle_secret_id =
auth_approle_backend_path = approle
token_renew_increment = 3600
login_retry_seconds = 5
session_ready_timeout_seconds = 30

[aws]
client_vpn_endpoint_id = cvpn-endpoint-0123456789abcdef0
region =
api_timeout_seconds = 30

[template]
config_template_path = ./config.ovpn.tpl

[auth]
github_org =
github_users =
github_teams =

[scheduler]
enable_crl_rotation = true
crl_rotation_time = 00:00
"""

        config_dir = os.path.dirname(config_path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)

        with open(config_path, 'w') as f:
            f.write(config_content)

        self.logger.info(f"Created default configuration file: {config_path}")
