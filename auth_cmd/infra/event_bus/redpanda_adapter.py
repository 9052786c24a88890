# =============================================================================
# File: auth_cmd/infra/event_bus/redpanda_adapter.py
# Description: Redpanda/Kafka consumer and producer IO on top of aiokafka
# - Consumers never auto-commit: handlers mark offsets, a commit task flushes
#   marked offsets by batch size or time interval, and once more on close
# - Producers publish pydantic envelopes as JSON and do not retry
# - Client start-up is retried, each attempt with a fresh client instance
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition
from aiokafka.errors import ConsumerStoppedError, KafkaError

from auth_cmd.common.exceptions.exceptions import PublishError
from auth_cmd.config.kafka_config import KafkaConfig
from auth_cmd.config.reliability_config import RetryConfig
from auth_cmd.infra.event_bus.messages import Envelope
from auth_cmd.infra.event_bus.transport_adapter import (
    ConsumerIO,
    HealthCheck,
    IncomingMessage,
    ProducerIO,
)
from auth_cmd.infra.reliability.retry import retry_async

log = logging.getLogger("authcmd.redpanda_adapter")

MAX_CONSECUTIVE_ERRORS = 5
ERROR_STREAM_SIZE = 100
STOP_TIMEOUT_S = 5.0


class ErrorStream:
    """Bounded fan-in of transport errors, read as an async iterator."""

    _CLOSED = object()

    def __init__(self, maxsize: int = ERROR_STREAM_SIZE):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def report(self, error: Exception) -> None:
        if self._queue.full():
            # Oldest error goes first
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(error)

    def close(self) -> None:
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(self._CLOSED)

    async def __aiter__(self) -> AsyncIterator[Exception]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item


# =============================================================================
# CONSUMER
# =============================================================================

class RedpandaConsumerIO(ConsumerIO):
    """aiokafka-backed ConsumerIO with explicit offset marking."""

    def __init__(
            self,
            consumer: AIOKafkaConsumer,
            topic: str,
            group_id: str,
            commit_interval_ms: int = 500,
            commit_batch_size: int = 250,
            poll_timeout_ms: int = 1000,
            max_records: int = 500,
    ):
        self._consumer = consumer
        self.topic = topic
        self.group_id = group_id
        self._commit_interval_ms = commit_interval_ms
        self._commit_batch_size = commit_batch_size
        self._poll_timeout_ms = poll_timeout_ms
        self._max_records = max_records

        self._errors = ErrorStream()
        self._marked: Dict[TopicPartition, int] = {}
        self._marks_since_commit = 0
        self._commit_requested = asyncio.Event()
        self._commit_task: Optional[asyncio.Task] = None
        self._running = True

        # Health monitoring
        self.messages_received = 0
        self.offsets_committed = 0
        self.commit_errors = 0
        self.last_message_time = 0.0

    def start(self) -> None:
        """Start the background commit task."""
        if self._commit_task is None:
            self._commit_task = asyncio.create_task(
                self._commit_loop(), name=f"commit-{self.topic}-{self.group_id}"
            )

    # -------------------------------------------------------------------------
    # ConsumerIO
    # -------------------------------------------------------------------------

    async def messages(self) -> AsyncIterator[IncomingMessage]:
        consecutive_errors = 0
        backoff_base = 2

        while self._running:
            try:
                records = await self._consumer.getmany(
                    timeout_ms=self._poll_timeout_ms,
                    max_records=self._max_records,
                )
            except ConsumerStoppedError:
                if not self._running:
                    break
                raise
            except (KafkaError, ConnectionError, OSError) as e:
                consecutive_errors += 1
                self._errors.report(e)
                log.error(
                    f"Kafka error in consumer for '{self.topic}': {e}. "
                    f"Consecutive errors: {consecutive_errors}/{MAX_CONSECUTIVE_ERRORS}"
                )
                if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                    log.error(f"Too many errors, giving up on consumer for '{self.topic}'")
                    raise
                await asyncio.sleep(min(backoff_base ** consecutive_errors, 30))
                continue

            if consecutive_errors > 0:
                log.info(f"Kafka consumer for '{self.topic}' recovered after {consecutive_errors} errors")
                consecutive_errors = 0

            for topic_partition, partition_records in records.items():
                for record in partition_records:
                    self.messages_received += 1
                    self.last_message_time = time.time()
                    yield IncomingMessage(
                        topic=topic_partition.topic,
                        partition=topic_partition.partition,
                        offset=record.offset,
                        value=record.value,
                        key=record.key,
                        timestamp=record.timestamp,
                    )

    def errors(self) -> AsyncIterator[Exception]:
        return self._errors.__aiter__()

    def mark_offset(self, message: IncomingMessage) -> None:
        topic_partition = TopicPartition(message.topic, message.partition)
        next_offset = message.offset + 1
        if next_offset > self._marked.get(topic_partition, -1):
            self._marked[topic_partition] = next_offset

        self._marks_since_commit += 1
        if self._marks_since_commit >= self._commit_batch_size:
            self._commit_requested.set()

    @property
    def marked_offsets(self) -> Dict[TopicPartition, int]:
        return dict(self._marked)

    async def commit_marked(self) -> int:
        """
        Commit every marked offset.

        Returns:
            Number of partitions committed
        """
        if not self._marked:
            return 0

        offsets = dict(self._marked)
        self._marks_since_commit = 0
        try:
            await self._consumer.commit(offsets)
        except KafkaError as e:
            self.commit_errors += 1
            self._errors.report(e)
            log.error(f"Failed to commit offsets for '{self.topic}' (group={self.group_id}): {e}")
            return 0

        for topic_partition, offset in offsets.items():
            if self._marked.get(topic_partition) == offset:
                del self._marked[topic_partition]

        self.offsets_committed += len(offsets)
        log.debug(f"Committed {len(offsets)} partition offsets for '{self.topic}'")
        return len(offsets)

    async def _commit_loop(self) -> None:
        interval_s = self._commit_interval_ms / 1000.0
        while self._running:
            try:
                await asyncio.wait_for(self._commit_requested.wait(), timeout=interval_s)
            except asyncio.TimeoutError:
                pass
            self._commit_requested.clear()
            await self.commit_marked()

    async def close(self) -> None:
        if not self._running:
            return
        self._running = False

        if self._commit_task and not self._commit_task.done():
            self._commit_task.cancel()
            await asyncio.gather(self._commit_task, return_exceptions=True)

        committed = await self.commit_marked()
        if committed:
            log.info(f"Final commit for '{self.topic}' on shutdown ({committed} partitions)")

        try:
            await asyncio.wait_for(self._consumer.stop(), timeout=STOP_TIMEOUT_S)
            log.info(f"Stopped consumer for '{self.topic}' (group={self.group_id})")
        except asyncio.TimeoutError:
            log.warning(f"Consumer stop timed out after {STOP_TIMEOUT_S}s for '{self.topic}'")
        except KafkaError as e:
            log.error(f"Error stopping consumer for '{self.topic}': {e}")

        self._errors.close()


# =============================================================================
# PRODUCER
# =============================================================================

class RedpandaProducerIO(ProducerIO):
    """aiokafka-backed ProducerIO for one topic."""

    def __init__(self, producer: AIOKafkaProducer, topic: str, producer_id: Optional[str] = None):
        self._producer = producer
        self.topic = topic
        self._id = producer_id or f"{topic}-{uuid.uuid4().hex[:8]}"
        self._errors = ErrorStream()
        self._closed = False

        self.messages_sent = 0
        self.publish_errors = 0

    @property
    def id(self) -> str:
        return self._id

    async def input(self, envelope: Envelope) -> None:
        if self._closed:
            raise PublishError(self.topic, RuntimeError("producer is closed"))

        value = envelope.to_wire()
        key = envelope.correlation_id.encode("utf-8") if envelope.correlation_id else None
        try:
            await self._producer.send_and_wait(self.topic, value=value, key=key)
        except (KafkaError, ConnectionError, OSError) as e:
            self.publish_errors += 1
            self._errors.report(e)
            log.error(
                f"Failed to publish to '{self.topic}' (correlation_id={envelope.correlation_id}): {e}"
            )
            raise PublishError(self.topic, e) from e

        self.messages_sent += 1
        log.debug(f"Published to '{self.topic}' (correlation_id={envelope.correlation_id})")

    def errors(self) -> AsyncIterator[Exception]:
        return self._errors.__aiter__()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await asyncio.wait_for(self._producer.stop(), timeout=STOP_TIMEOUT_S)
            log.info(f"Kafka producer stopped for '{self.topic}'")
        except asyncio.TimeoutError:
            log.warning(f"Producer stop timed out after {STOP_TIMEOUT_S}s for '{self.topic}'")
        except KafkaError as e:
            log.error(f"Error stopping producer for '{self.topic}': {e}")
        self._errors.close()


# =============================================================================
# ADAPTER
# =============================================================================

class RedpandaAdapter:
    """
    Creates ConsumerIO/ProducerIO pairs for the configured brokers and keeps
    track of them for health reporting and shutdown.
    """

    def __init__(self, config: KafkaConfig, poll_timeout_ms: int = 1000):
        self._config = config
        self._poll_timeout_ms = poll_timeout_ms
        self._consumers: List[RedpandaConsumerIO] = []
        self._producers: List[RedpandaProducerIO] = []
        self._running = True

        self._retry_config = RetryConfig(
            max_attempts=config.start_retry_max_attempts,
            initial_delay_ms=config.start_retry_initial_delay_ms,
            max_delay_ms=config.start_retry_max_delay_ms,
            retry_condition=lambda e: isinstance(e, (KafkaError, ConnectionError, OSError)),
        )

        self._producer_config = {
            "bootstrap_servers": config.broker_list,
            "client_id": config.client_id,
            "acks": self._parse_acks(config.producer_acks),
            "linger_ms": config.producer_linger_ms,
            "request_timeout_ms": config.request_timeout_ms,
        }

        self._consumer_config_template = {
            "bootstrap_servers": config.broker_list,
            "client_id": f"{config.client_id}-consumer",
            "enable_auto_commit": False,
            "auto_offset_reset": config.auto_offset_reset,
        }

        log.info(
            f"RedpandaAdapter initialized with brokers={config.broker_list}, "
            f"client_id={config.client_id}"
        )

    @staticmethod
    def _parse_acks(acks_value: str) -> Union[int, str]:
        if acks_value.lower() == "all":
            return "all"
        return int(acks_value)

    async def ensure_consumer_io(self, topic: str, group_id: Optional[str] = None) -> RedpandaConsumerIO:
        """
        Create and start a consumer for a topic.

        Raises:
            KafkaError: the consumer could not be started after all retries
        """
        if not self._running:
            raise RuntimeError(f"RedpandaAdapter is closing, cannot consume '{topic}'")

        group_id = group_id or self._config.group_id_for(topic)
        consumer_config = {**self._consumer_config_template, "group_id": group_id}

        async def create_and_start_consumer() -> AIOKafkaConsumer:
            # New client per attempt: a failed start() leaves the old one unusable
            new_consumer = AIOKafkaConsumer(topic, **consumer_config)
            try:
                await new_consumer.start()
            except BaseException:
                try:
                    await asyncio.wait_for(new_consumer.stop(), timeout=STOP_TIMEOUT_S)
                except (asyncio.TimeoutError, KafkaError) as stop_error:
                    log.warning(f"Consumer cleanup after failed start: {stop_error}")
                raise
            return new_consumer

        consumer = await retry_async(
            create_and_start_consumer,
            retry_config=self._retry_config,
            context=f"Starting consumer for topic '{topic}'",
        )

        consumer_io = RedpandaConsumerIO(
            consumer,
            topic=topic,
            group_id=group_id,
            commit_interval_ms=self._config.commit_interval_ms,
            commit_batch_size=self._config.commit_batch_size,
            poll_timeout_ms=self._poll_timeout_ms,
        )
        consumer_io.start()
        self._consumers.append(consumer_io)

        log.info(f"Consumer started for topic '{topic}' with group '{group_id}'")
        return consumer_io

    async def ensure_producer_io(self, topic: str) -> RedpandaProducerIO:
        """
        Create and start a producer for a topic.

        Raises:
            KafkaError: the producer could not be started after all retries
        """
        if not self._running:
            raise RuntimeError(f"RedpandaAdapter is closing, cannot produce to '{topic}'")

        async def create_and_start_producer() -> AIOKafkaProducer:
            new_producer = AIOKafkaProducer(**self._producer_config)
            try:
                await new_producer.start()
            except BaseException:
                try:
                    await asyncio.wait_for(new_producer.stop(), timeout=STOP_TIMEOUT_S)
                except (asyncio.TimeoutError, KafkaError) as stop_error:
                    log.warning(f"Producer cleanup after failed start: {stop_error}")
                raise
            return new_producer

        producer = await retry_async(
            create_and_start_producer,
            retry_config=self._retry_config,
            context=f"Starting producer for topic '{topic}'",
        )

        producer_io = RedpandaProducerIO(producer, topic=topic)
        self._producers.append(producer_io)

        log.info(f"Producer started for topic '{topic}' (id={producer_io.id})")
        return producer_io

    async def close(self) -> None:
        """Gracefully shut down every consumer, then every producer."""
        log.info("Shutting down RedpandaAdapter...")
        self._running = False

        # Consumers first so their final commits happen while producers still flush responses
        for consumer_io in self._consumers:
            await consumer_io.close()
        for producer_io in self._producers:
            await producer_io.close()

        self._consumers.clear()
        self._producers.clear()
        log.info("RedpandaAdapter shutdown complete")

    async def health_check(self) -> HealthCheck:
        details: Dict[str, Any] = {
            "running": self._running,
            "brokers": self._config.broker_list,
            "consumers": {
                c.topic: {
                    "group_id": c.group_id,
                    "messages_received": c.messages_received,
                    "offsets_committed": c.offsets_committed,
                    "commit_errors": c.commit_errors,
                    "pending_partitions": len(c.marked_offsets),
                }
                for c in self._consumers
            },
            "producers": {
                p.topic: {
                    "id": p.id,
                    "messages_sent": p.messages_sent,
                    "publish_errors": p.publish_errors,
                }
                for p in self._producers
            },
        }
        is_healthy = self._running and all(p.publish_errors == 0 for p in self._producers)
        return HealthCheck(is_healthy=is_healthy, details=details)


# =============================================================================
# EOF
# =============================================================================
