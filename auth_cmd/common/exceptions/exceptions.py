# =============================================================================
# File: auth_cmd/common/exceptions/exceptions.py
# Description: Custom exceptions for auth-cmd
# =============================================================================

from auth_cmd.common.enums.enums import ErrorKind


class AuthCmdException(Exception):
    """Base exception for auth-cmd"""

    kind: ErrorKind = ErrorKind.INTERNAL


class DomainError(AuthCmdException):
    """Raised for domain-specific errors"""
    pass


class InfrastructureError(AuthCmdException):
    """Raised for infrastructure errors (store, bus)"""
    pass


class PublishError(InfrastructureError):
    """Raised when an outbound message could not be produced"""

    def __init__(self, topic: str, cause: BaseException):
        self.topic = topic
        self.cause = cause
        super().__init__(f"Failed to publish to '{topic}': {cause}")
