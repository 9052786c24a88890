# =============================================================================
# File: tests/conftest.py
# Description: Shared fixtures for the auth-cmd test suite
# =============================================================================

import pytest

from auth_cmd.config.event_store_config import EventStoreConfig
from auth_cmd.config.kafka_config import KafkaConfig
from auth_cmd.config.mongo_config import MongoConfig
from auth_cmd.config.worker_config import WorkerConfig
from auth_cmd.core.startup.bootstrap import Settings

CONFIG_PREFIXES = ("KAFKA_", "MONGO_", "WORKER_", "EVENT_STORE_")

REGISTRATION_ENV = {
    "KAFKA_BROKERS": "kafka-1:9092, kafka-2:9092",
    "KAFKA_CONSUMER_EVENT_TOPIC": "event.rns_eventstore.events",
    "KAFKA_PRODUCER_EVENT_QUERY_TOPIC": "esquery.request",
    "KAFKA_CONSUMER_EVENT_QUERY_TOPIC": "esquery.response",
    "KAFKA_PRODUCER_TOPIC_REGISTER": "authcmd.register.response",
    "MONGO_HOSTS": "mongo-1:27017,mongo-2:27017",
    "MONGO_DATABASE": "rns_auth",
    "MONGO_COLLECTION": "user_auth",
    "MONGO_TIMEOUT": "3000",
}


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No configuration from the host environment or a stray .env file."""
    import os

    for name in list(os.environ):
        if name.upper().startswith(CONFIG_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def registration_env(clean_env):
    for name, value in REGISTRATION_ENV.items():
        clean_env.setenv(name, value)
    return clean_env


@pytest.fixture
def settings():
    return Settings(
        kafka=KafkaConfig(
            brokers="kafka:9092",
            consumer_event_topic="events",
            producer_event_query_topic="esquery.request",
            consumer_event_query_topic="esquery.response",
            producer_topic_register="register.response",
        ),
        mongo=MongoConfig(hosts="mongo:27017", database="rns_auth", collection="user_auth", timeout=3000),
        worker=WorkerConfig(instance_id="test-worker", max_in_flight=4, shutdown_timeout_s=2.0),
        event_store=EventStoreConfig(year_bucket=2018),
    )
