# =============================================================================
# File: auth_cmd/utils/uuid_utils.py - Identifier Utilities
# =============================================================================
# Random (v4) UUIDs for aggregate identities, matching the identifiers the
# event store and the rest of the platform already hold.
# =============================================================================

import uuid
from uuid import UUID


def generate_uuid() -> UUID:
    """
    Generate a new random UUID (v4).

    This is the PRIMARY function for generating aggregate UUIDs.
    """
    return uuid.uuid4()
