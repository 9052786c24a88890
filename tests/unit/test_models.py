"""Unit tests for the User record and its projections."""

from __future__ import annotations

import json
from uuid import uuid4

import pytest
from bson import ObjectId

from auth_cmd.user_account.exceptions import UserDecodeError
from auth_cmd.user_account.models import (
    User,
    encode_external_record,
    from_storage_record,
    to_external_record,
    to_storage_record,
    user_from_payload,
)


def _user(**overrides) -> User:
    values = dict(
        id=ObjectId(),
        uuid=uuid4(),
        email="bob@example.com",
        first_name="Bob",
        last_name="Builder",
        username="bob",
        password="$2b$10$hash",
        role="user",
        version=5,
    )
    values.update(overrides)
    return User(**values)


class TestUserFromPayload:
    def test_accepts_camel_case_names(self) -> None:
        user = user_from_payload(json.dumps({
            "email": "bob@example.com",
            "firstName": "Bob",
            "lastName": "Builder",
            "username": "bob",
            "password": "secret",
            "role": "user",
        }).encode())

        assert user.first_name == "Bob"
        assert user.last_name == "Builder"
        assert user.password == "secret"
        assert isinstance(user.id, ObjectId)

    def test_accepts_snake_case_names(self) -> None:
        user = user_from_payload(b'{"first_name": "Ann", "last_name": "Lee", "username": "ann"}')
        assert (user.first_name, user.last_name) == ("Ann", "Lee")

    def test_invalid_json_raises_decode_error(self) -> None:
        with pytest.raises(UserDecodeError):
            user_from_payload(b"{not json")

    def test_wrong_field_type_raises_decode_error(self) -> None:
        with pytest.raises(UserDecodeError):
            user_from_payload(b'{"username": "bob", "version": "five"}')


class TestStorageRecord:
    def test_includes_credential(self) -> None:
        user = _user()
        record = to_storage_record(user)

        assert record["_id"] == user.id
        assert record["uuid"] == str(user.uuid)
        assert record["password"] == "$2b$10$hash"
        assert record["version"] == 5

    def test_omits_empty_values(self) -> None:
        record = to_storage_record(_user(role="", last_name=""))
        assert "role" not in record
        assert "last_name" not in record

    def test_round_trip(self) -> None:
        user = _user()
        assert from_storage_record(to_storage_record(user)) == user


class TestExternalRecord:
    def test_never_carries_password(self) -> None:
        record = to_external_record(_user())
        assert "password" not in record
        assert record["username"] == "bob"
        assert record["version"] == 5

    def test_encoded_form(self) -> None:
        user = _user()
        decoded = json.loads(encode_external_record(user))
        assert decoded["_id"] == str(user.id)
        assert decoded["uuid"] == str(user.uuid)
        assert "password" not in decoded
