# =============================================================================
# File: auth_cmd/infra/event_bus/dispatcher.py
# Description: Aggregate-typed routing of consumed messages to their handlers
# =============================================================================
"""
Topics are shared between aggregates. Every consumed message is decoded once
here, its ``aggregateID`` is checked against ``AggregateKind`` and the message
is routed to the handler registered for that kind. Messages nobody handles are
rejected in one place: logged at debug, counted, and their offset marked so
the group moves past them.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Generic, Type, TypeVar

from pydantic import ValidationError

from auth_cmd.common.enums.enums import AggregateKind
from auth_cmd.infra.event_bus.messages import Envelope
from auth_cmd.infra.event_bus.transport_adapter import ConsumerIO, IncomingMessage

log = logging.getLogger("authcmd.event_bus.dispatcher")

E = TypeVar("E", bound=Envelope)

Handler = Callable[[IncomingMessage, Any], Awaitable[None]]


class AggregateDispatcher(Generic[E]):
    """
    Decodes messages of one topic into ``envelope_type`` and dispatches them by aggregate.

    Usage:
        dispatcher = AggregateDispatcher(Event, consumer)
        dispatcher.register(AggregateKind.USER, resolver.handle)
        await dispatcher.dispatch(msg)
    """

    def __init__(self, envelope_type: Type[E], consumer: ConsumerIO):
        self._envelope_type = envelope_type
        self._consumer = consumer
        self._handlers: Dict[AggregateKind, Handler] = {}

        self.dispatched = 0
        self.rejected_unknown = 0
        self.rejected_unregistered = 0
        self.undecodable = 0

    @property
    def topic(self) -> str:
        return self._consumer.topic

    def register(self, kind: AggregateKind, handler: Handler) -> None:
        """
        Register the handler for an aggregate kind.

        Raises:
            ValueError: a different handler is already registered for the kind
        """
        existing = self._handlers.get(kind)
        if existing is not None and existing != handler:
            raise ValueError(
                f"Duplicate handler for aggregate {kind.name} on '{self.topic}'. "
                f"Existing: {existing}, Attempted: {handler}"
            )
        self._handlers[kind] = handler
        log.debug(f"Registered handler for aggregate {kind.name} on '{self.topic}'")

    async def dispatch(self, msg: IncomingMessage) -> None:
        try:
            envelope = self._envelope_type.from_wire(msg.value)
        except ValidationError as e:
            self.undecodable += 1
            log.error(
                f"Dropping undecodable {self._envelope_type.__name__} "
                f"from {msg.topic}[{msg.partition}]@{msg.offset}: {e}"
            )
            self._consumer.mark_offset(msg)
            return

        kind = envelope.aggregate_kind
        if kind is None:
            self.rejected_unknown += 1
            log.debug(
                f"Ignoring message for unknown aggregate {envelope.aggregate_id} on '{msg.topic}'",
                extra={"correlation_id": envelope.correlation_id},
            )
            self._consumer.mark_offset(msg)
            return

        handler = self._handlers.get(kind)
        if handler is None:
            self.rejected_unregistered += 1
            log.debug(
                f"No handler for aggregate {kind.name} on '{msg.topic}'",
                extra={"correlation_id": envelope.correlation_id},
            )
            self._consumer.mark_offset(msg)
            return

        self.dispatched += 1
        await handler(msg, envelope)

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "envelope": self._envelope_type.__name__,
            "handlers": sorted(kind.name for kind in self._handlers),
            "dispatched": self.dispatched,
            "rejected_unknown": self.rejected_unknown,
            "rejected_unregistered": self.rejected_unregistered,
            "undecodable": self.undecodable,
        }


# =============================================================================
# EOF
# =============================================================================
