"""Unit tests for the second registration hop (event store response -> user + outcome)."""

from __future__ import annotations

import asyncio
import base64
import json
from typing import Any, List

import pytest

from auth_cmd.common.enums.enums import ErrorKind
from auth_cmd.common.exceptions.exceptions import PublishError
from auth_cmd.infra.event_bus.messages import Event, KafkaResponse, encode_events
from auth_cmd.infra.persistence.auth_db import AuthDB
from auth_cmd.user_account.exceptions import RegistrationError
from auth_cmd.user_account.query_correlator import QueryCorrelator
from auth_cmd.user_account.responses import ResponseEmitter
from tests.fakes import FakeAuthDB, FakeConsumerIO, FakeMotorCollection, FakeProducerIO


def _run(coro: Any) -> Any:
    return asyncio.run(coro)


def _registration_event(correlation_id: str, username: str, version: int, **payload) -> Event:
    data = {
        "email": f"{username}@example.com",
        "firstName": username.title(),
        "lastName": "Tester",
        "username": username,
        "password": "secret",
        "role": "user",
    }
    data.update(payload)
    return Event(
        aggregate_id=1,
        correlation_id=correlation_id,
        event_action="insert",
        service_action="register",
        data=json.dumps(data).encode(),
        version=version,
        year_bucket=2018,
    )


def _response(events: List[Event], correlation_id: str = "batch-1") -> KafkaResponse:
    return KafkaResponse(aggregate_id=1, correlation_id=correlation_id, result=encode_events(events))


class _Harness:
    def __init__(self, db=None) -> None:
        self.db = db if db is not None else FakeAuthDB()
        self.consumer = FakeConsumerIO("esquery.response")
        self.producer = FakeProducerIO("register.response")
        self.correlator = QueryCorrelator(self.db, self.consumer, ResponseEmitter(self.producer))

    async def handle(self, response: KafkaResponse):
        msg = self.consumer.feed(response.to_wire())
        await self.correlator.handle(msg, response)
        return msg

    def outcomes(self) -> dict:
        return {o.correlation_id: o for o in self.producer.sent}


class TestQueryCorrelator:
    def test_registers_user_at_event_version(self) -> None:
        harness = _Harness()
        event = _registration_event("c-1", "alice", 5)

        msg = _run(harness.handle(_response([event])))

        assert harness.consumer.is_marked(msg)
        [outcome] = harness.producer.sent
        assert outcome.correlation_id == "c-1"
        assert outcome.error_code == ErrorKind.NONE
        assert outcome.error == ""

        user = json.loads(outcome.result)
        assert user["username"] == "alice"
        assert user["first_name"] == "Alice"
        assert user["version"] == 5
        assert user["uuid"]
        assert "password" not in user
        assert harness.db.users[0].version == 5

    def test_duplicate_username_in_same_batch(self) -> None:
        collection = FakeMotorCollection()
        harness = _Harness(AuthDB(collection))
        events = [
            _registration_event("c-1", "bob", 6),
            _registration_event("c-2", "bob", 7),
        ]

        _run(harness.handle(_response(events)))

        outcomes = harness.outcomes()
        assert set(outcomes) == {"c-1", "c-2"}
        codes = sorted(o.error_code for o in outcomes.values())
        assert codes == [ErrorKind.NONE, ErrorKind.DUPLICATE_USERNAME]
        assert len(collection.documents) == 1

    def test_undecodable_batch_emits_internal_outcome(self) -> None:
        harness = _Harness()
        response = KafkaResponse(aggregate_id=1, correlation_id="batch-9", result=b"not json")

        msg = _run(harness.handle(response))

        assert harness.consumer.is_marked(msg)
        [outcome] = harness.producer.sent
        assert outcome.correlation_id == "batch-9"
        assert outcome.error_code == ErrorKind.INTERNAL
        assert not harness.db.was_called("register")

    def test_bad_payload_does_not_stop_siblings(self) -> None:
        harness = _Harness()
        broken = Event(aggregate_id=1, correlation_id="c-bad", data=b"{oops", version=3)
        good = _registration_event("c-good", "carol", 4)

        _run(harness.handle(_response([broken, good])))

        outcomes = harness.outcomes()
        assert outcomes["c-bad"].error_code == ErrorKind.INTERNAL
        assert outcomes["c-good"].error_code == ErrorKind.NONE
        assert harness.db.get_call_count("register") == 1

    def test_store_failure_kind_is_passed_through(self) -> None:
        harness = _Harness()
        harness.db.configure_failure("register", RegistrationError("insert failed"))

        _run(harness.handle(_response([_registration_event("c-1", "dave", 2)])))

        [outcome] = harness.producer.sent
        assert outcome.error_code == ErrorKind.INTERNAL
        assert "insert failed" in outcome.error

    def test_empty_batch_emits_nothing(self) -> None:
        harness = _Harness()

        msg = _run(harness.handle(_response([])))

        assert harness.consumer.is_marked(msg)
        assert harness.producer.sent == []

    def test_publish_failure_propagates(self) -> None:
        harness = _Harness()
        harness.producer.configure_failure(ConnectionError("broker down"))

        with pytest.raises(PublishError):
            _run(harness.handle(_response([_registration_event("c-1", "erin", 2)])))

    def test_null_result_emits_nothing(self) -> None:
        harness = _Harness()
        response = KafkaResponse(aggregate_id=1, correlation_id="batch-2", result=b"null")

        msg = _run(harness.handle(response))

        assert harness.consumer.is_marked(msg)
        assert harness.producer.sent == []
        assert not harness.db.was_called("register")

    def test_version_beyond_int64_is_internal_outcome(self) -> None:
        collection = FakeMotorCollection()
        harness = _Harness(AuthDB(collection))
        payload = base64.b64encode(json.dumps({"username": "frank", "password": "secret"}).encode()).decode()
        result = json.dumps([{
            "aggregateID": 1,
            "correlationID": "c-big",
            "data": payload,
            "version": 2 ** 63,
        }]).encode()
        response = KafkaResponse(aggregate_id=1, correlation_id="batch-3", result=result)

        msg = _run(harness.handle(response))

        assert harness.consumer.is_marked(msg)
        [outcome] = harness.producer.sent
        assert outcome.correlation_id == "batch-3"
        assert outcome.error_code == ErrorKind.INTERNAL
        assert collection.documents == []

    def test_unencodable_user_is_internal_outcome(self) -> None:
        collection = FakeMotorCollection()
        harness = _Harness(AuthDB(collection))
        valid = _registration_event("c-wide", "gina", 1)
        # model_copy does not validate, so the oversized version reaches the store
        event = valid.model_copy(update={"version": 2 ** 63})

        _run(harness.correlator.handle_event(event))

        [outcome] = harness.producer.sent
        assert outcome.correlation_id == "c-wide"
        assert outcome.error_code == ErrorKind.INTERNAL
        assert collection.documents == []
