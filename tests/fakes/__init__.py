# =============================================================================
# File: tests/fakes/__init__.py
# Description: Fake adapters for unit testing
# =============================================================================

from tests.fakes.fake_auth_db import CallRecord, FakeAuthDB, FakeMotorCollection
from tests.fakes.fake_transport import FakeAdapter, FakeConsumerIO, FakeProducerIO, wait_until

__all__ = [
    "CallRecord",
    "FakeAdapter",
    "FakeAuthDB",
    "FakeConsumerIO",
    "FakeMotorCollection",
    "FakeProducerIO",
    "wait_until",
]
