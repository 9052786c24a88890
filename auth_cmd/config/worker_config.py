# auth_cmd/config/worker_config.py
"""
Registration worker configuration.

Usage:
    config = WorkerConfig()
    bulkhead = Bulkhead(BulkheadConfig(name="events", max_concurrent=config.max_in_flight))
"""

import os
import socket
from typing import Optional

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from auth_cmd.common.base.base_config import BaseConfig, BASE_CONFIG_DICT


class WorkerConfig(BaseConfig):
    """Runtime settings of the registration worker process."""

    model_config = SettingsConfigDict(
        **BASE_CONFIG_DICT,
        env_prefix='WORKER_',
    )

    instance_id: Optional[str] = None

    max_in_flight: int = Field(default=100, gt=0)
    """Upper bound of concurrently handled messages per topic reader."""

    shutdown_timeout_s: float = Field(default=30.0, gt=0)

    def get_instance_id(self) -> str:
        return self.instance_id or f"auth-cmd-{socket.gethostname()}-{os.getpid()}"
