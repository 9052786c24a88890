# =============================================================================
# File: auth_cmd/user_account/models.py
# Description: User aggregate record and its storage/external projections
# =============================================================================
"""
One canonical in-memory ``User`` with two explicit projections:

- ``to_storage_record``: the document written to the store (hashed credential included)
- ``to_external_record``: what leaves the service in outcome messages (no credential)

Replayed event payloads are parsed through ``UserPayload`` into a draft ``User``.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional
from uuid import UUID

from bson import ObjectId
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from auth_cmd.user_account.exceptions import UserDecodeError


class User(BaseModel):
    """User aggregate state as hydrated from its registration event."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Optional[ObjectId] = None
    uuid: Optional[UUID] = None
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    username: str = ""
    password: str = ""
    role: str = ""
    version: int = 0


class UserPayload(BaseModel):
    """Registration event payload. Gateways send camelCase names, replays snake_case."""

    model_config = ConfigDict(extra="ignore")

    uuid: Optional[UUID] = None
    email: str = ""
    first_name: str = Field(default="", validation_alias=AliasChoices("firstName", "first_name"))
    last_name: str = Field(default="", validation_alias=AliasChoices("lastName", "last_name"))
    username: str = ""
    password: str = ""
    role: str = ""
    version: int = 0


def user_from_payload(data: bytes) -> User:
    """
    Build a draft User from a serialized event payload.

    The draft gets a fresh ObjectId; the gateway assigns the final identities on insert.

    Raises:
        UserDecodeError: payload is not a JSON object or has wrongly typed fields
    """
    try:
        payload = UserPayload.model_validate_json(data)
    except ValidationError as e:
        raise UserDecodeError(f"Error unmarshalling event payload into User: {e}") from e

    return User(id=ObjectId(), **payload.model_dump())


def to_storage_record(user: User) -> Dict[str, Any]:
    """Document layout in the auth collection. Empty values are left out."""
    record: Dict[str, Any] = {
        "_id": user.id,
        "uuid": str(user.uuid) if user.uuid else None,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "username": user.username,
        "password": user.password,
        "role": user.role,
        "version": user.version,
    }
    return {key: value for key, value in record.items() if value}


def from_storage_record(document: Dict[str, Any]) -> User:
    """Inverse of ``to_storage_record``."""
    raw_uuid = document.get("uuid")
    return User(
        id=document.get("_id"),
        uuid=UUID(raw_uuid) if raw_uuid else None,
        email=document.get("email", ""),
        first_name=document.get("first_name", ""),
        last_name=document.get("last_name", ""),
        username=document.get("username", ""),
        password=document.get("password", ""),
        role=document.get("role", ""),
        version=int(document.get("version", 0)),
    )


def to_external_record(user: User) -> Dict[str, Any]:
    """Sanitized representation for other services. Never carries the credential."""
    return {
        "_id": str(user.id) if user.id else "",
        "uuid": str(user.uuid) if user.uuid else "",
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "username": user.username,
        "role": user.role,
        "version": user.version,
    }


def encode_external_record(user: User) -> bytes:
    return json.dumps(to_external_record(user)).encode("utf-8")


# =============================================================================
# EOF
# =============================================================================
