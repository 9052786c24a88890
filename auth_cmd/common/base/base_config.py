# auth_cmd/common/base/base_config.py
# =============================================================================
# BaseConfig - Foundation for all auth-cmd configuration classes
#
# Pydantic v2 settings:
# - SettingsConfigDict (not deprecated class Config)
# - Automatic .env file loading
# - Case-insensitive environment variables
# - SecretStr for sensitive values
# - Loaded once at start-up by the bootstrap
#
# Usage:
#     from auth_cmd.common.base.base_config import BaseConfig
#     from pydantic_settings import SettingsConfigDict
#     from pydantic import SecretStr
#
#     class MyConfig(BaseConfig):
#         model_config = SettingsConfigDict(
#             **BASE_CONFIG_DICT,
#             env_prefix="MY_"
#         )
#         api_key: SecretStr
#         timeout_ms: int = 5000
# =============================================================================

from typing import Any, Dict, List

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_CONFIG_DICT = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
    # Empty variables count as missing, so required settings fail fast
    env_ignore_empty=True,
)


def parse_hosts(hosts: str) -> List[str]:
    """Split a comma-separated host list, dropping blanks and whitespace."""
    return [host.strip() for host in hosts.split(",") if host.strip()]


class BaseConfig(BaseSettings):
    """Base configuration class for all auth-cmd configs.

    All configuration classes should inherit from this base to ensure:
    1. Consistent .env file loading
    2. Case-insensitive environment variable matching
    3. Standardized serialization with secrets masked

    Environment Variable Naming:
    - Use domain-specific prefixes (KAFKA_, MONGO_, WORKER_)
    - Names match the deployment manifests of the service

    Secrets Handling:
    - All sensitive fields (passwords, keys, tokens) should use SecretStr
    - Access raw value via .get_secret_value() when needed
    """

    model_config = BASE_CONFIG_DICT

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        """Convert config to dictionary.

        Args:
            mask_secrets: If True (default), SecretStr values are masked.
                         If False, raw values are exposed (use with caution).
        """
        if mask_secrets:
            return self.model_dump()

        data = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            if isinstance(value, SecretStr):
                data[field_name] = value.get_secret_value()
            else:
                data[field_name] = value
        return data

    def __repr__(self) -> str:
        """Safe repr that masks secrets."""
        class_name = self.__class__.__name__
        fields = []
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            if isinstance(value, SecretStr):
                fields.append(f"{field_name}=SecretStr('**********')")
            else:
                fields.append(f"{field_name}={value!r}")
        return f"{class_name}({', '.join(fields)})"
