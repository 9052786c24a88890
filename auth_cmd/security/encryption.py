# =============================================================================
# File: auth_cmd/security/encryption.py - Credential Hashing
# =============================================================================
# Bcrypt for password hashing. The cost factor is fixed so that every stored
# credential is verifiable by the login side with the same parameters.
# =============================================================================

from typing import Final

import bcrypt

BCRYPT_COST: Final[int] = 10


# =============================================================================
# Password Hashing (bcrypt)
# =============================================================================
def hash_password(password: str, rounds: int = BCRYPT_COST) -> str:
    """
    Hashes a password using bcrypt. Returns the hash as a string.

    An empty password is hashed like any other.

    Raises:
        ValueError: bcrypt refused the input (e.g. longer than 72 bytes)
    """
    salt = bcrypt.gensalt(rounds=rounds)
    hashed_bytes = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed_bytes.decode('utf-8')
