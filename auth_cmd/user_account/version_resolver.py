# =============================================================================
# File: auth_cmd/user_account/version_resolver.py
# Description: First hop of a registration: intent event -> version query
# =============================================================================
"""
Handles registration intents of the User aggregate.

For every intent the current aggregate version is read from the auth store
and the event store is asked for the events newer than it. When the version
cannot be read the requester gets an INTERNAL outcome straight away.
"""

import logging

from auth_cmd.common.exceptions.exceptions import AuthCmdException
from auth_cmd.infra.event_bus.messages import Event
from auth_cmd.infra.event_bus.transport_adapter import ConsumerIO, IncomingMessage
from auth_cmd.infra.persistence.auth_db import AuthDBI
from auth_cmd.user_account.responses import QueryEmitter, ResponseEmitter

log = logging.getLogger("authcmd.user_account.version_resolver")


class VersionResolver:

    def __init__(
            self,
            db: AuthDBI,
            consumer: ConsumerIO,
            queries: QueryEmitter,
            responses: ResponseEmitter,
            year_bucket: int,
    ):
        self._db = db
        self._consumer = consumer
        self._queries = queries
        self._responses = responses
        self._year_bucket = year_bucket

    async def handle(self, msg: IncomingMessage, event: Event) -> None:
        correlation_id = event.correlation_id
        self._consumer.mark_offset(msg)

        try:
            version = await self._db.max_version()
        except AuthCmdException as e:
            log.error(f"Error fetching max version: {e}", extra={"correlation_id": correlation_id})
            await self._responses.emit_error(correlation_id, f"Error fetching max version: {e}", e.kind)
            return

        await self._queries.emit_query(correlation_id, version, self._year_bucket)


# =============================================================================
# EOF
# =============================================================================
