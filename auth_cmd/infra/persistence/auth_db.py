# =============================================================================
# File: auth_cmd/infra/persistence/auth_db.py
# Description: MongoDB persistence gateway for the User aggregate
# =============================================================================
"""
Auth store gateway.

The store is the only serialization point for concurrent registrations: the
unique ``username_index`` rejects duplicate usernames and the unique
``version_index`` rejects two users claiming the same aggregate version.
There is no application-level locking.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from bson import ObjectId
from bson.errors import BSONError
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from auth_cmd.config.mongo_config import MongoConfig
from auth_cmd.security.encryption import hash_password
from auth_cmd.user_account.exceptions import (
    RegistrationError,
    UsernameExistsError,
    VersionLookupError,
)
from auth_cmd.user_account.models import User, to_storage_record
from auth_cmd.utils.uuid_utils import generate_uuid

log = logging.getLogger("authcmd.persistence.auth_db")

USERNAME_INDEX = "username_index"
VERSION_INDEX = "version_index"

# Version assumed when the store holds no user yet
BOOTSTRAP_VERSION = 1


class AuthDBI(ABC):
    """Database interface for the registration write path."""

    @property
    @abstractmethod
    def collection(self) -> Any:
        """The collection backing the gateway."""

    @abstractmethod
    async def max_version(self) -> int:
        """Highest aggregate version stored, or 1 for an empty store."""

    @abstractmethod
    async def register(self, user: User) -> User:
        """Persist a new user and return its sanitized stored form."""


def _violated_key(error: DuplicateKeyError) -> Optional[str]:
    """Name of the field whose unique index rejected the write, if it can be told."""
    details = error.details or {}
    key_pattern = details.get("keyPattern") or {}
    if key_pattern:
        return next(iter(key_pattern))

    message = str(error)
    if USERNAME_INDEX in message:
        return "username"
    if VERSION_INDEX in message:
        return "version"
    return None


class AuthDB(AuthDBI):
    """MongoDB implementation of AuthDBI."""

    def __init__(
            self,
            collection: AsyncIOMotorCollection,
            lenient_version_fallback: bool = False,
            client: Optional[AsyncIOMotorClient] = None,
    ):
        self._collection = collection
        self._lenient_version_fallback = lenient_version_fallback
        self._client = client

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def max_version(self) -> int:
        """
        Return the maximum event-hydration version for the aggregate.

        Raises:
            VersionLookupError: the query failed (unless the lenient fallback is enabled)
                or the stored version is not an integer
        """
        try:
            document = await self._collection.find_one(
                {"version": {"$gt": 0}},
                projection={"version": 1},
                sort=[("version", DESCENDING)],
            )
        except PyMongoError as e:
            if self._lenient_version_fallback:
                log.warning(f"Error fetching max version: {e}")
                log.warning(f"Version will be assumed to be {BOOTSTRAP_VERSION} (new Aggregate)")
                return BOOTSTRAP_VERSION
            raise VersionLookupError(f"Error fetching max version: {e}") from e

        if document is None:
            log.debug(f"No versioned user found, using bootstrap version {BOOTSTRAP_VERSION}")
            return BOOTSTRAP_VERSION

        version = document.get("version")
        if not isinstance(version, int) or isinstance(version, bool):
            raise VersionLookupError(
                f"Unable to read max version: stored value {version!r} is not an integer"
            )
        return version

    async def register(self, user: User) -> User:
        """
        Insert the provided User with fresh identities and a hashed password.

        The draft is left untouched; the returned copy has its password cleared.

        Raises:
            UsernameExistsError: the username is already taken
            RegistrationError: hashing or any other store failure
        """
        try:
            # bcrypt is CPU bound, keep it off the event loop
            hashed_password = await asyncio.to_thread(hash_password, user.password)
        except ValueError as e:
            raise RegistrationError(f"Registration: Error creating hash for password: {e}") from e

        stored = user.model_copy(update={
            "id": ObjectId(),
            "uuid": generate_uuid(),
            "password": hashed_password,
        })

        try:
            await self._collection.insert_one(to_storage_record(stored))
        except DuplicateKeyError as e:
            if _violated_key(e) == "version":
                raise RegistrationError(
                    f"Registration: version {user.version} is already taken: {e}"
                ) from e
            raise UsernameExistsError(user.username) from e
        except PyMongoError as e:
            raise RegistrationError(f"Registration: Error inserting user into Database: {e}") from e
        except (BSONError, OverflowError) as e:
            # Raised while encoding, before anything reaches the server
            raise RegistrationError(f"Registration: Error encoding user document: {e}") from e

        log.info(f"Registered user '{stored.username}' (uuid={stored.uuid}, version={stored.version})")

        # Never hand the hash to anything outside the store
        return stored.model_copy(update={"password": ""})

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


async def ensure_auth_db(config: MongoConfig) -> AuthDB:
    """
    Connect to MongoDB and make sure the auth collection and its indexes exist.

    Raises:
        PyMongoError: the server is unreachable or the indexes cannot be created
    """
    client = AsyncIOMotorClient(**config.client_kwargs())
    try:
        await client.admin.command("ping")

        collection = client[config.database][config.collection]
        await collection.create_index([("username", ASCENDING)], unique=True, name=USERNAME_INDEX)
        await collection.create_index([("version", DESCENDING)], unique=True, name=VERSION_INDEX)
    except PyMongoError:
        client.close()
        raise

    log.info(
        f"Auth DB ready: {config.database}.{config.collection} "
        f"(hosts={config.host_list}, timeout={config.timeout}ms)"
    )
    return AuthDB(
        collection,
        lenient_version_fallback=config.lenient_version_fallback,
        client=client,
    )


# =============================================================================
# EOF
# =============================================================================
