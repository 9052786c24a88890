# =============================================================================
# File: auth_cmd/infra/event_bus/transport_adapter.py
# Description: Abstract consumer/producer interfaces for Kafka/Redpanda topics
# =============================================================================
"""
Abstract async transport interfaces used by the registration pipeline.

- ConsumerIO: ordered stream of incoming messages (at-least-once), a stream
  of transport errors, and explicit offset marking.
- ProducerIO: publishes envelopes to one topic; publish failures are raised
  to the caller and reported on the error stream, never retried here.

NOTE: error streams are bounded; old errors are dropped when nobody reads them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, NamedTuple, Optional

from auth_cmd.infra.event_bus.messages import Envelope


class HealthCheck(NamedTuple):
    """Health check information for transport adapters"""
    is_healthy: bool
    details: Dict[str, Any]


@dataclass(frozen=True)
class IncomingMessage:
    """One consumed record, as handed to message handlers."""
    topic: str
    partition: int
    offset: int
    value: bytes
    key: Optional[bytes] = None
    timestamp: Optional[int] = None


class ConsumerIO(ABC):
    """
    Consumer side of one topic.

    IMPORTANT: messages() is meant to be drained by exactly one reader task,
    which preserves the delivery order of the topic.
    """

    topic: str
    group_id: str

    @abstractmethod
    def messages(self) -> AsyncIterator[IncomingMessage]:
        """Async iterator over incoming messages; ends when the consumer closes."""

    @abstractmethod
    def errors(self) -> AsyncIterator[Exception]:
        """Async iterator over transport errors seen by the consumer loop."""

    @abstractmethod
    def mark_offset(self, message: IncomingMessage) -> None:
        """Mark a message as processed; its offset is committed asynchronously."""

    @abstractmethod
    async def close(self) -> None:
        """Commit marked offsets and stop the consumer."""


class ProducerIO(ABC):
    """Producer side of one topic."""

    topic: str

    @property
    @abstractmethod
    def id(self) -> str:
        """Identifier of this producer (used in logs and startup reports)."""

    @abstractmethod
    async def input(self, envelope: Envelope) -> None:
        """
        Publish one envelope.

        Raises:
            PublishError: the broker did not accept the message
        """

    @abstractmethod
    def errors(self) -> AsyncIterator[Exception]:
        """Async iterator over publish errors."""

    @abstractmethod
    async def close(self) -> None:
        """Flush and stop the producer."""

# =============================================================================
# EOF
# =============================================================================
