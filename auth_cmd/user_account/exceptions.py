# =============================================================================
# File: auth_cmd/user_account/exceptions.py
# Description: Domain-specific exceptions for the User aggregate write path
# =============================================================================

from auth_cmd.common.enums.enums import ErrorKind
from auth_cmd.common.exceptions.exceptions import DomainError, InfrastructureError


class UserAccountError(DomainError):
    """Base exception for UserAccount domain"""
    pass


class UsernameExistsError(UserAccountError):
    """Raised when the store's unique username index rejects an insert"""

    kind = ErrorKind.DUPLICATE_USERNAME

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username '{username}' already exists")


class UserDecodeError(UserAccountError):
    """Raised when an event payload cannot be turned into a User"""
    pass


class RegistrationError(InfrastructureError):
    """Raised when persisting a user fails for a reason other than a duplicate username"""
    pass


class VersionLookupError(InfrastructureError):
    """Raised when the current aggregate version cannot be read from the store"""
    pass


# =============================================================================
# EOF
# =============================================================================
