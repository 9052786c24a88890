# =============================================================================
# File: auth_cmd/common/enums/enums.py
# Description: Wire-level enumerations shared by every component
# =============================================================================

from enum import IntEnum


class AggregateKind(IntEnum):
    """Aggregate discriminator carried in the `aggregateID` field of every envelope.

    Topics are shared between aggregates; the dispatcher routes on this tag and
    rejects anything it has no handler for.
    """
    USER = 1


class ErrorKind(IntEnum):
    """Error codes carried in the `errorCode` field of outcome messages.

    NONE is the success value (the wire field is omitted/zero on success).
    """
    NONE = 0
    INTERNAL = 1
    DUPLICATE_USERNAME = 2
