# =============================================================================
# File: auth_cmd/infra/event_bus/messages.py
# Description: Wire envelopes exchanged with the event store and requesters
# =============================================================================
"""
Message envelopes.

Field names follow the JSON shape the event store and the gateway services
already use (``aggregateID``, ``correlationID``, ``yearBucket`` ...). Byte
fields travel as standard base64 strings in JSON, the same way Go encodes
``[]byte``; in Python they are plain ``bytes``.
"""

from __future__ import annotations

import base64
from uuid import UUID
from typing import Annotated, Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer, TypeAdapter

from auth_cmd.common.enums.enums import AggregateKind, ErrorKind


def _decode_wire_bytes(value: Any) -> Any:
    if value is None:
        return b""
    if isinstance(value, str):
        return base64.b64decode(value, validate=True)
    return value


def _encode_wire_bytes(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


WireBytes = Annotated[
    bytes,
    BeforeValidator(_decode_wire_bytes),
    PlainSerializer(_encode_wire_bytes, return_type=str, when_used="json"),
]

# Go int64 on the wire; anything wider is rejected while decoding
Int64 = Annotated[int, Field(ge=-(2 ** 63), le=2 ** 63 - 1)]

E = TypeVar("E", bound="Envelope")


class Envelope(BaseModel):
    """Base for every message on the bus: immutable, aliased, tagged with an aggregate."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )

    aggregate_id: int = Field(alias="aggregateID")
    correlation_id: str = Field(default="", alias="correlationID")

    @property
    def aggregate_kind(self) -> Optional[AggregateKind]:
        """The enumerated aggregate tag, or None for aggregates this service does not know."""
        try:
            return AggregateKind(self.aggregate_id)
        except ValueError:
            return None

    def to_wire(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_wire(cls: Type[E], raw: bytes) -> E:
        return cls.model_validate_json(raw)


class Event(Envelope):
    """One hydrated event as stored by the event store."""

    event_action: str = Field(default="", alias="eventAction")
    service_action: str = Field(default="", alias="serviceAction")
    data: WireBytes = Field(default=b"", alias="data")
    nano_time: Int64 = Field(default=0, alias="nanoTime")
    user_uuid: Optional[UUID] = Field(default=None, alias="userUUID")
    uuid: Optional[UUID] = Field(default=None, alias="uuid")
    version: Int64 = Field(default=0, alias="version")
    year_bucket: int = Field(default=0, alias="yearBucket")


class EventStoreQuery(Envelope):
    """Request for the events of an aggregate newer than ``aggregate_version``."""

    aggregate_version: Int64 = Field(alias="aggregateVersion")
    year_bucket: int = Field(alias="yearBucket")


class KafkaResponse(Envelope):
    """Correlated response: either ``result`` or ``error``/``error_code`` is set."""

    result: WireBytes = Field(default=b"", alias="result")
    error: str = Field(default="", alias="error")
    error_code: int = Field(default=int(ErrorKind.NONE), alias="errorCode")

    @property
    def is_error(self) -> bool:
        return bool(self.error) or self.error_code != ErrorKind.NONE


_EVENT_LIST = TypeAdapter(List[Event])
_EVENT_BATCH = TypeAdapter(Optional[List[Event]])


def decode_events(raw: bytes) -> List[Event]:
    """Decode the ``result`` of an event store response into its events. JSON null is an empty batch."""
    return _EVENT_BATCH.validate_json(raw) or []


def encode_events(events: List[Event]) -> bytes:
    return _EVENT_LIST.dump_json(events, by_alias=True)


# =============================================================================
# EOF
# =============================================================================
