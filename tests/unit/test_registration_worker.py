"""Unit tests for the registration worker wiring, fault handling and shutdown."""

from __future__ import annotations

import asyncio
import json
import signal

from auth_cmd.common.enums.enums import ErrorKind
from auth_cmd.core.startup.bootstrap import Dependencies
from auth_cmd.infra.event_bus.messages import Event, EventStoreQuery, KafkaResponse, encode_events
from auth_cmd.user_account.exceptions import VersionLookupError
from auth_cmd.workers.registration_worker import RegistrationWorker
from tests.fakes import FakeAdapter, FakeAuthDB, wait_until


async def _deps(settings) -> Dependencies:
    adapter = FakeAdapter(settings.kafka)
    topics = settings.kafka
    return Dependencies(
        settings=settings,
        db=FakeAuthDB(),
        adapter=adapter,
        query_producer=await adapter.ensure_producer_io(topics.producer_event_query_topic),
        response_producer=await adapter.ensure_producer_io(topics.producer_topic_register),
        event_consumer=await adapter.ensure_consumer_io(topics.consumer_event_topic),
        response_consumer=await adapter.ensure_consumer_io(topics.consumer_event_query_topic),
    )


def _registration_result(correlation_id: str, username: str, version: int) -> bytes:
    payload = json.dumps({"username": username, "password": "secret", "email": f"{username}@example.com"})
    event = Event(aggregate_id=1, correlation_id=correlation_id, data=payload.encode(), version=version)
    return encode_events([event])


class TestRegistrationWorker:
    def test_full_registration_round_trip(self, settings) -> None:
        async def run():
            deps = await _deps(settings)
            worker = RegistrationWorker(deps)
            worker.start()

            intent = deps.event_consumer.feed(Event(aggregate_id=1, correlation_id="c-1").to_wire())
            await wait_until(lambda: deps.query_producer.sent)

            [query] = deps.query_producer.sent
            response = KafkaResponse(
                aggregate_id=1,
                correlation_id=query.correlation_id,
                result=_registration_result("c-1", "bob", query.aggregate_version + 1),
            )
            reply = deps.response_consumer.feed(response.to_wire())
            await wait_until(lambda: deps.response_producer.sent)

            worker.request_shutdown()
            exit_code = await worker.run()
            await worker.stop()
            return deps, intent, reply, query, exit_code

        deps, intent, reply, query, exit_code = asyncio.run(run())

        assert exit_code == 0
        assert isinstance(query, EventStoreQuery)
        assert query.correlation_id == "c-1"
        assert query.aggregate_version == 1
        assert query.year_bucket == 2018

        [outcome] = deps.response_producer.sent
        assert outcome.correlation_id == "c-1"
        assert outcome.error_code == ErrorKind.NONE
        assert json.loads(outcome.result)["version"] == 2

        assert deps.event_consumer.is_marked(intent)
        assert deps.response_consumer.is_marked(reply)
        assert deps.adapter.closed
        assert deps.db.closed

    def test_foreign_aggregates_are_skipped(self, settings) -> None:
        async def run():
            deps = await _deps(settings)
            worker = RegistrationWorker(deps)
            worker.start()

            foreign = deps.event_consumer.feed(Event(aggregate_id=3, correlation_id="x").to_wire())
            await wait_until(lambda: deps.event_consumer.is_marked(foreign))

            worker.request_shutdown()
            await worker.run()
            await worker.stop()
            return deps

        deps = asyncio.run(run())
        assert deps.query_producer.sent == []
        assert deps.response_producer.sent == []
        assert not deps.db.was_called("max_version")

    def test_publish_failure_is_a_fault(self, settings) -> None:
        async def run():
            deps = await _deps(settings)
            deps.db.configure_failure("max_version", VersionLookupError("store down"))
            deps.response_producer.configure_failure(ConnectionError("broker down"))
            worker = RegistrationWorker(deps)
            worker.start()

            deps.event_consumer.feed(Event(aggregate_id=1, correlation_id="c-1").to_wire())
            exit_code = await asyncio.wait_for(worker.run(), timeout=2)
            await worker.stop()
            return worker, exit_code

        worker, exit_code = asyncio.run(run())
        assert exit_code == 1
        assert worker.fault is not None

    def test_consumer_ending_unexpectedly_is_a_fault(self, settings) -> None:
        async def run():
            deps = await _deps(settings)
            worker = RegistrationWorker(deps)
            worker.start()

            await deps.event_consumer.close()
            exit_code = await asyncio.wait_for(worker.run(), timeout=2)
            await worker.stop()
            return exit_code

        assert asyncio.run(run()) == 1

    def test_signals(self, settings) -> None:
        async def run():
            deps = await _deps(settings)
            worker = RegistrationWorker(deps)
            worker.start()

            worker.handle_signal(signal.SIGTERM)
            exit_code = await asyncio.wait_for(worker.run(), timeout=2)
            worker.handle_signal(signal.SIGINT)
            await worker.stop()
            return worker, exit_code

        worker, exit_code = asyncio.run(run())
        assert exit_code == 0
        assert worker._expedite
