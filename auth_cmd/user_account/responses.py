# =============================================================================
# File: auth_cmd/user_account/responses.py
# Description: Outbound messages of the registration pipeline
# =============================================================================

import logging

from auth_cmd.common.enums.enums import AggregateKind, ErrorKind
from auth_cmd.infra.event_bus.messages import EventStoreQuery, KafkaResponse
from auth_cmd.infra.event_bus.transport_adapter import ProducerIO
from auth_cmd.user_account.models import User, encode_external_record

log = logging.getLogger("authcmd.user_account.responses")


class ResponseEmitter:
    """
    Publishes registration outcomes, one per correlation id.

    Publish failures propagate as PublishError; they are infrastructure faults,
    not outcomes.
    """

    def __init__(self, producer: ProducerIO):
        self._producer = producer

    async def emit_success(self, correlation_id: str, user: User) -> None:
        try:
            result = encode_external_record(user)
        except (TypeError, ValueError) as e:
            await self.emit_error(
                correlation_id,
                f"Error marshalling registered user {user.uuid}: {e}",
                ErrorKind.INTERNAL,
            )
            return

        await self._producer.input(KafkaResponse(
            aggregate_id=int(AggregateKind.USER),
            correlation_id=correlation_id,
            result=result,
        ))
        log.info(
            f"Registration succeeded for '{user.username}'",
            extra={"correlation_id": correlation_id},
        )

    async def emit_error(self, correlation_id: str, error: str, kind: ErrorKind) -> None:
        await self._producer.input(KafkaResponse(
            aggregate_id=int(AggregateKind.USER),
            correlation_id=correlation_id,
            error=error,
            error_code=int(kind),
        ))
        log.warning(
            f"Registration failed ({ErrorKind(kind).name}): {error}",
            extra={"correlation_id": correlation_id},
        )


class QueryEmitter:
    """Publishes version queries to the event store."""

    def __init__(self, producer: ProducerIO):
        self._producer = producer

    async def emit_query(self, correlation_id: str, aggregate_version: int, year_bucket: int) -> None:
        query = EventStoreQuery(
            aggregate_id=int(AggregateKind.USER),
            correlation_id=correlation_id,
            aggregate_version=aggregate_version,
            year_bucket=year_bucket,
        )
        await self._producer.input(query)
        log.debug(
            f"Queried event store from version {aggregate_version} (yearBucket={year_bucket})",
            extra={"correlation_id": correlation_id},
        )


# =============================================================================
# EOF
# =============================================================================
