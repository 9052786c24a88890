# auth_cmd/config/event_store_config.py
# =============================================================================
# File: auth_cmd/config/event_store_config.py
# Description: Settings for queries sent to the external event store
# =============================================================================

from datetime import datetime, timezone
from typing import Optional

from pydantic_settings import SettingsConfigDict

from auth_cmd.common.base.base_config import BaseConfig, BASE_CONFIG_DICT


class EventStoreConfig(BaseConfig):
    """
    Event store query settings.

    The event store partitions its tables by year; every version query names
    the partition it should be answered from.
    """

    model_config = SettingsConfigDict(
        **BASE_CONFIG_DICT,
        env_prefix='EVENT_STORE_',
    )

    year_bucket: Optional[int] = None
    """Fixed time partition; current UTC year when unset."""

    def resolve_year_bucket(self) -> int:
        if self.year_bucket is not None:
            return self.year_bucket
        return datetime.now(timezone.utc).year
