# =============================================================================
# File: auth_cmd/user_account/query_correlator.py
# Description: Second hop of a registration: event store response -> user + outcome
# =============================================================================
"""
Turns event store responses into registered users.

Each response carries a JSON list of events. Every event is handled on its
own: its payload becomes a draft User at the event's version, the draft is
registered, and one outcome is published with the event's correlation id.
A failing event never stops its siblings; the store's unique indexes decide
between events that race for the same username or version.
"""

import asyncio
import logging

from pydantic import ValidationError

from auth_cmd.common.enums.enums import ErrorKind
from auth_cmd.common.exceptions.exceptions import AuthCmdException
from auth_cmd.infra.event_bus.messages import Event, KafkaResponse, decode_events
from auth_cmd.infra.event_bus.transport_adapter import ConsumerIO, IncomingMessage
from auth_cmd.infra.persistence.auth_db import AuthDBI
from auth_cmd.user_account.models import user_from_payload
from auth_cmd.user_account.responses import ResponseEmitter

log = logging.getLogger("authcmd.user_account.query_correlator")


class QueryCorrelator:

    def __init__(self, db: AuthDBI, consumer: ConsumerIO, responses: ResponseEmitter):
        self._db = db
        self._consumer = consumer
        self._responses = responses

    async def handle(self, msg: IncomingMessage, response: KafkaResponse) -> None:
        self._consumer.mark_offset(msg)

        try:
            events = decode_events(response.result)
        except ValidationError as e:
            log.error(
                f"Error unmarshalling event store result into events: {e}",
                extra={"correlation_id": response.correlation_id},
            )
            await self._responses.emit_error(
                response.correlation_id,
                f"Error unmarshalling event store result into events: {e}",
                ErrorKind.INTERNAL,
            )
            return

        if not events:
            log.debug("Event store returned no events", extra={"correlation_id": response.correlation_id})
            return

        # PublishError from any sibling is re-raised once all of them are done
        results = await asyncio.gather(
            *(self.handle_event(event) for event in events),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def handle_event(self, event: Event) -> None:
        correlation_id = event.correlation_id

        try:
            draft = user_from_payload(event.data)
        except AuthCmdException as e:
            log.error(
                f"Error unmarshalling event {event.uuid} into User: {e}",
                extra={"correlation_id": correlation_id},
            )
            await self._responses.emit_error(correlation_id, str(e), ErrorKind.INTERNAL)
            return

        draft = draft.model_copy(update={"version": event.version})

        try:
            user = await self._db.register(draft)
        except AuthCmdException as e:
            log.error(
                f"Error inserting user into Database: {e}",
                extra={"correlation_id": correlation_id},
            )
            await self._responses.emit_error(correlation_id, f"Error inserting user into Database: {e}", e.kind)
            return

        await self._responses.emit_success(correlation_id, user)


# =============================================================================
# EOF
# =============================================================================
