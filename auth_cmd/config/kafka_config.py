# auth_cmd/config/kafka_config.py
# =============================================================================
# File: auth_cmd/config/kafka_config.py
# Description: Kafka/Redpanda connection and topic configuration
# =============================================================================

from typing import List

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from auth_cmd.common.base.base_config import BaseConfig, BASE_CONFIG_DICT, parse_hosts


class KafkaConfig(BaseConfig):
    """
    Kafka/Redpanda configuration for the registration pipeline.

    Four topics carry the three hops of a registration:
    - consumer_event_topic: registration intents (events) in
    - producer_event_query_topic: version queries out to the event store
    - consumer_event_query_topic: event store responses (hydrated events) in
    - producer_topic_register: correlated registration outcomes out
    """

    model_config = SettingsConfigDict(
        **BASE_CONFIG_DICT,
        env_prefix='KAFKA_',
    )

    # =========================================================================
    # Connection Settings (required)
    # =========================================================================
    brokers: str
    """Comma-separated broker list, e.g. "kafka-1:9092,kafka-2:9092"."""

    # =========================================================================
    # Topics (required)
    # =========================================================================
    consumer_event_topic: str
    producer_event_query_topic: str
    consumer_event_query_topic: str
    producer_topic_register: str

    # =========================================================================
    # Client Settings
    # =========================================================================
    client_id: str = "auth-cmd"

    consumer_group_prefix: str = ""
    """Empty prefix keeps group id == topic name."""

    auto_offset_reset: str = "earliest"

    # Marked offsets are committed when either threshold is hit
    commit_interval_ms: int = Field(default=500, gt=0)
    commit_batch_size: int = Field(default=250, gt=0)

    producer_acks: str = "all"
    producer_linger_ms: int = 10
    request_timeout_ms: int = 30000

    # Startup retries when creating clients
    start_retry_max_attempts: int = Field(default=5, ge=1)
    start_retry_initial_delay_ms: int = 500
    start_retry_max_delay_ms: int = 10000

    @property
    def broker_list(self) -> List[str]:
        return parse_hosts(self.brokers)

    def group_id_for(self, topic: str) -> str:
        """Consumer group for a topic."""
        if self.consumer_group_prefix:
            return f"{self.consumer_group_prefix}.{topic}"
        return topic
