# =============================================================================
# File: tests/fakes/fake_transport.py
# Description: In-memory ConsumerIO/ProducerIO fakes for unit testing
# Pattern: Ports & Adapters - Fake/Stub adapter
# =============================================================================

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Dict, List, Optional

from auth_cmd.common.exceptions.exceptions import PublishError
from auth_cmd.infra.event_bus.messages import Envelope
from auth_cmd.infra.event_bus.transport_adapter import ConsumerIO, IncomingMessage, ProducerIO


class FakeConsumerIO(ConsumerIO):
    """
    Consumer fed by the test.

    Usage:
        consumer = FakeConsumerIO("events")
        msg = consumer.feed(event.to_wire())
        ...
        assert consumer.is_marked(msg)
    """

    def __init__(self, topic: str, group_id: Optional[str] = None):
        self.topic = topic
        self.group_id = group_id or topic
        self.marked: List[IncomingMessage] = []
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue()
        self._next_offset: Dict[int, int] = {}
        self._pending_errors: List[Exception] = []

    def feed(self, value: bytes, partition: int = 0) -> IncomingMessage:
        offset = self._next_offset.get(partition, 0)
        self._next_offset[partition] = offset + 1
        msg = IncomingMessage(topic=self.topic, partition=partition, offset=offset, value=value)
        self._queue.put_nowait(msg)
        return msg

    def push_error(self, error: Exception) -> None:
        self._pending_errors.append(error)

    def is_marked(self, msg: IncomingMessage) -> bool:
        return msg in self.marked

    async def messages(self) -> AsyncIterator[IncomingMessage]:
        while True:
            msg = await self._queue.get()
            if msg is None:
                return
            yield msg

    async def errors(self) -> AsyncIterator[Exception]:
        for error in self._pending_errors:
            yield error
        while not self.closed:
            await asyncio.sleep(0.01)

    def mark_offset(self, message: IncomingMessage) -> None:
        self.marked.append(message)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(None)


class FakeProducerIO(ProducerIO):
    """
    Producer that keeps everything it is asked to publish.

    Usage:
        producer = FakeProducerIO("register")
        producer.configure_failure(ConnectionError("broker down"))
    """

    def __init__(self, topic: str):
        self.topic = topic
        self.sent: List[Envelope] = []
        self.closed = False
        self._failure: Optional[Exception] = None

    @property
    def id(self) -> str:
        return f"fake-{self.topic}"

    def configure_failure(self, error: Exception) -> None:
        self._failure = error

    async def input(self, envelope: Envelope) -> None:
        if self._failure is not None:
            raise PublishError(self.topic, self._failure)
        # Round-trip through the wire format like a real broker would
        self.sent.append(type(envelope).from_wire(envelope.to_wire()))

    async def errors(self) -> AsyncIterator[Exception]:
        while not self.closed:
            await asyncio.sleep(0.01)
        return
        yield

    async def close(self) -> None:
        self.closed = True


class FakeAdapter:
    """Stands in for RedpandaAdapter in bootstrap and worker tests."""

    def __init__(self, config=None):
        self.config = config
        self.consumers: Dict[str, FakeConsumerIO] = {}
        self.producers: Dict[str, FakeProducerIO] = {}
        self.failing_topics: Dict[str, Exception] = {}
        self.closed = False

    async def ensure_consumer_io(self, topic: str, group_id: Optional[str] = None) -> FakeConsumerIO:
        if topic in self.failing_topics:
            raise self.failing_topics[topic]
        consumer = FakeConsumerIO(topic, group_id)
        self.consumers[topic] = consumer
        return consumer

    async def ensure_producer_io(self, topic: str) -> FakeProducerIO:
        if topic in self.failing_topics:
            raise self.failing_topics[topic]
        producer = FakeProducerIO(topic)
        self.producers[topic] = producer
        return producer

    async def close(self) -> None:
        self.closed = True
        for consumer in self.consumers.values():
            await consumer.close()
        for producer in self.producers.values():
            await producer.close()


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    """Poll until predicate() is truthy; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)
