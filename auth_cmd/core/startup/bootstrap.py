# =============================================================================
# File: auth_cmd/core/startup/bootstrap.py
# Description: Dependency start-up of the registration worker
# =============================================================================
"""
Brings up every dependency of the worker in order and reports one
``StartupResult`` per dependency:

1. configuration (Kafka, Mongo, worker, event store)
2. auth store gateway
3. producers (version queries, registration outcomes)
4. consumers (registration intents, event store responses)

Nothing is consumed until every step succeeded. After the first fatal failure
the remaining steps are skipped and whatever was already opened is closed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from aiokafka.errors import KafkaError
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from auth_cmd.config.event_store_config import EventStoreConfig
from auth_cmd.config.kafka_config import KafkaConfig
from auth_cmd.config.mongo_config import MongoConfig
from auth_cmd.config.worker_config import WorkerConfig
from auth_cmd.infra.event_bus.redpanda_adapter import RedpandaAdapter
from auth_cmd.infra.event_bus.transport_adapter import ConsumerIO, ProducerIO
from auth_cmd.infra.persistence.auth_db import AuthDB, ensure_auth_db

logger = logging.getLogger("authcmd.startup.bootstrap")


@dataclass
class StartupResult:
    name: str
    ok: bool
    error: Optional[str] = None
    fatal: bool = True


@dataclass
class Settings:
    kafka: KafkaConfig
    mongo: MongoConfig
    worker: WorkerConfig
    event_store: EventStoreConfig


@dataclass
class Dependencies:
    """Everything the worker needs once start-up succeeded."""
    settings: Settings
    db: AuthDB
    adapter: RedpandaAdapter
    query_producer: ProducerIO
    response_producer: ProducerIO
    event_consumer: ConsumerIO
    response_consumer: ConsumerIO

    async def close(self) -> None:
        await self.adapter.close()
        await self.db.close()


@dataclass
class StartupReport:
    results: List[StartupResult] = field(default_factory=list)

    def add(self, result: StartupResult) -> StartupResult:
        self.results.append(result)
        if result.ok:
            logger.info(f"[startup] {result.name}: ok")
        elif result.fatal:
            logger.error(f"[startup] {result.name}: FAILED ({result.error})")
        else:
            logger.warning(f"[startup] {result.name}: degraded ({result.error})")
        return result

    @property
    def fatal_failures(self) -> List[StartupResult]:
        return [r for r in self.results if not r.ok and r.fatal]

    @property
    def ok(self) -> bool:
        return not self.fatal_failures

    def summary(self) -> dict:
        return {r.name: "ok" if r.ok else f"failed: {r.error}" for r in self.results}


# =============================================================================
# CONFIGURATION
# =============================================================================

def missing_variables(error: ValidationError, env_prefix: str) -> List[str]:
    """Environment variable names of the required settings a ValidationError complains about."""
    names = []
    for err in error.errors():
        if err.get("type") != "missing":
            continue
        field_name = "_".join(str(part) for part in err.get("loc", ()))
        names.append(f"{env_prefix}{field_name}".upper())
    return names


def _load_config(name: str, config_cls: Any, report: StartupReport) -> Optional[Any]:
    env_prefix = config_cls.model_config.get("env_prefix", "")
    try:
        config = config_cls()
    except ValidationError as e:
        missing = missing_variables(e, env_prefix)
        if missing:
            message = f"Environment variable(s) {', '.join(missing)} required but not found"
        else:
            message = f"Invalid configuration: {e}"
        report.add(StartupResult(name=name, ok=False, error=message))
        return None

    report.add(StartupResult(name=name, ok=True))
    logger.debug(f"{name}: {config.to_dict()}")
    return config


def load_settings(report: StartupReport) -> Optional[Settings]:
    """Load every configuration section; each one is reported on its own."""
    kafka = _load_config("config.kafka", KafkaConfig, report)
    mongo = _load_config("config.mongo", MongoConfig, report)
    worker = _load_config("config.worker", WorkerConfig, report)
    event_store = _load_config("config.event_store", EventStoreConfig, report)

    if kafka is None or mongo is None or worker is None or event_store is None:
        return None
    return Settings(kafka=kafka, mongo=mongo, worker=worker, event_store=event_store)


# =============================================================================
# INFRASTRUCTURE
# =============================================================================

async def init_store(
        config: MongoConfig,
        report: StartupReport,
        db_factory: Callable[[MongoConfig], Awaitable[AuthDB]] = ensure_auth_db,
) -> Optional[AuthDB]:
    try:
        db = await db_factory(config)
    except PyMongoError as e:
        report.add(StartupResult(name="auth_db", ok=False, error=f"Error connecting to AuthDB: {e}"))
        return None
    report.add(StartupResult(name="auth_db", ok=True))
    return db


async def init_producer(adapter: RedpandaAdapter, name: str, topic: str, report: StartupReport) -> Optional[ProducerIO]:
    try:
        producer = await adapter.ensure_producer_io(topic)
    except (KafkaError, OSError, RuntimeError) as e:
        report.add(StartupResult(name=name, ok=False, error=f"Error creating producer for '{topic}': {e}"))
        return None
    report.add(StartupResult(name=name, ok=True))
    return producer


async def init_consumer(adapter: RedpandaAdapter, name: str, topic: str, report: StartupReport) -> Optional[ConsumerIO]:
    try:
        consumer = await adapter.ensure_consumer_io(topic)
    except (KafkaError, OSError, RuntimeError) as e:
        report.add(StartupResult(name=name, ok=False, error=f"Error creating consumer for '{topic}': {e}"))
        return None
    report.add(StartupResult(name=name, ok=True))
    return consumer


async def bootstrap(
        db_factory: Callable[[MongoConfig], Awaitable[AuthDB]] = ensure_auth_db,
        adapter_factory: Callable[[KafkaConfig], RedpandaAdapter] = RedpandaAdapter,
) -> Tuple[StartupReport, Optional[Dependencies]]:
    """
    Start every dependency.

    Returns:
        The report, and the dependencies when the report has no fatal failure
    """
    report = StartupReport()

    settings = load_settings(report)
    if settings is None:
        return report, None

    db = await init_store(settings.mongo, report, db_factory=db_factory)
    if db is None:
        return report, None

    adapter = adapter_factory(settings.kafka)
    topics = settings.kafka

    clients = []
    for kind, name, topic in (
            ("producer", "producer.event_query", topics.producer_event_query_topic),
            ("producer", "producer.register", topics.producer_topic_register),
            ("consumer", "consumer.events", topics.consumer_event_topic),
            ("consumer", "consumer.event_query", topics.consumer_event_query_topic),
    ):
        if kind == "producer":
            client = await init_producer(adapter, name, topic, report)
        else:
            client = await init_consumer(adapter, name, topic, report)
        if client is None:
            await adapter.close()
            await db.close()
            return report, None
        clients.append(client)

    query_producer, response_producer, event_consumer, response_consumer = clients
    return report, Dependencies(
        settings=settings,
        db=db,
        adapter=adapter,
        query_producer=query_producer,
        response_producer=response_producer,
        event_consumer=event_consumer,
        response_consumer=response_consumer,
    )


# =============================================================================
# EOF
# =============================================================================
