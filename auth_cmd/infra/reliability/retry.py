# =============================================================================
# File: auth_cmd/infra/reliability/retry.py
# Description: Retry mechanism with exponential backoff and jitter
# =============================================================================

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from auth_cmd.config.reliability_config import RetryConfig

logger = logging.getLogger("authcmd.retry")

T = TypeVar('T')


def _apply_jitter(base_delay_ms: float, jitter_type: str) -> float:
    if jitter_type == "equal":
        half = base_delay_ms / 2
        return half + random.uniform(0, half)
    # full jitter: delay = random(0, base_delay)
    return random.uniform(0, base_delay_ms)


def compute_delay_ms(attempt: int, retry_config: RetryConfig) -> float:
    """Delay before the next attempt, after `attempt` failed ones."""
    base_delay_ms = min(
        retry_config.initial_delay_ms * (retry_config.backoff_factor ** (attempt - 1)),
        retry_config.max_delay_ms
    )
    if retry_config.jitter:
        return _apply_jitter(base_delay_ms, retry_config.jitter_type)
    return base_delay_ms


async def retry_async(
        func: Callable[..., Awaitable[T]],
        *args,
        retry_config: Optional[RetryConfig] = None,
        context: str = "operation",
        **kwargs
) -> T:
    """Execute async function with retry logic."""
    if retry_config is None:
        retry_config = RetryConfig()

    for attempt in range(1, retry_config.max_attempts + 1):
        try:
            return await func(*args, **kwargs)

        except Exception as e:
            if retry_config.retry_condition and not retry_config.retry_condition(e):
                logger.warning(
                    f"Retry condition not met for {context} after attempt {attempt}. Error: {e}"
                )
                raise

            if attempt >= retry_config.max_attempts:
                logger.warning(
                    f"Retry exhausted for {context} after {attempt} attempts. Last error: {e}"
                )
                raise

            delay_seconds = compute_delay_ms(attempt, retry_config) / 1000

            logger.info(
                f"Retry attempt {attempt}/{retry_config.max_attempts} for {context} "
                f"after error: {e}. Waiting {delay_seconds:.2f}s before retry."
            )

            await asyncio.sleep(delay_seconds)

    raise RuntimeError(f"Unexpected retry failure for {context}")
