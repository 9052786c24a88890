# auth_cmd/config/reliability_config.py
# =============================================================================
# File: auth_cmd/config/reliability_config.py
# Description: Configuration models for retry and bulkhead patterns
# =============================================================================

from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field


class RetryConfig(BaseModel):
    """Retry configuration."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    max_attempts: int = Field(default=3, ge=1)
    initial_delay_ms: int = 100
    max_delay_ms: int = 10000
    backoff_factor: float = 2.0
    jitter: bool = True
    jitter_type: str = "full"
    retry_condition: Optional[Callable[[Exception], bool]] = None


class BulkheadConfig(BaseModel):
    """Bulkhead configuration: bounded concurrency for one resource."""

    name: str
    max_concurrent: int = Field(default=100, gt=0)
    timeout_ms: Optional[int] = None
    """How long to wait for a free slot; None waits indefinitely."""
