# auth_cmd/config/mongo_config.py
# =============================================================================
# File: auth_cmd/config/mongo_config.py
# Description: MongoDB (auth store) configuration
# =============================================================================

import logging
from typing import Any, List, Optional

from pydantic import SecretStr, field_validator
from pydantic_settings import SettingsConfigDict

from auth_cmd.common.base.base_config import BaseConfig, BASE_CONFIG_DICT, parse_hosts

log = logging.getLogger("authcmd.config.mongo")

DEFAULT_TIMEOUT_MS = 3000


class MongoConfig(BaseConfig):
    """
    MongoDB configuration for the user store.

    The timeout is applied to server selection, connect and socket operations,
    so every store round-trip made while handling a message is bounded by it.
    """

    model_config = SettingsConfigDict(
        **BASE_CONFIG_DICT,
        env_prefix='MONGO_',
    )

    hosts: str
    """Comma-separated host list, e.g. "mongo-1:27017,mongo-2:27017"."""

    username: Optional[str] = None
    password: Optional[SecretStr] = None

    database: str
    collection: str

    timeout: int
    """Operation timeout in milliseconds."""

    lenient_version_fallback: bool = False
    """
    When True, a failed max-version query is logged and treated as an empty
    store (version 1). When False the failure is reported as an internal error.
    """

    @field_validator("timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, value: Any) -> Any:
        try:
            return int(value)
        except (TypeError, ValueError):
            log.warning(
                f"Error converting MONGO_TIMEOUT value {value!r} to int, "
                f"value will be set to {DEFAULT_TIMEOUT_MS} as default"
            )
            return DEFAULT_TIMEOUT_MS

    @property
    def host_list(self) -> List[str]:
        return parse_hosts(self.hosts)

    def client_kwargs(self) -> dict:
        """Keyword arguments for the motor client."""
        kwargs = {
            "host": self.host_list,
            "serverSelectionTimeoutMS": self.timeout,
            "connectTimeoutMS": self.timeout,
            "socketTimeoutMS": self.timeout,
        }
        if self.username:
            kwargs["username"] = self.username
        if self.password:
            kwargs["password"] = self.password.get_secret_value()
        return kwargs
