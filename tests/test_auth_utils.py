import time
from datetime import timedelta

import jwt
import pytest

from storefront.auth_utils import create_access_token, hash_password, verify_password, verify_token
from storefront.config import ALGORITHM, SECRET_KEY
from storefront.errors import Forbidden


def test_hash_is_salted_and_verifiable():
    first = hash_password("secret123")
    second = hash_password("secret123")

    assert first != second
    assert first.startswith("pbkdf2_sha256$")
    assert "secret123" not in first
    assert verify_password("secret123", first)
    assert verify_password("secret123", second)


def test_wrong_password_does_not_verify():
    assert not verify_password("wrong", hash_password("secret123"))


@pytest.mark.parametrize("stored", ["", "plain-text", "md5$1$salt$hash"])
def test_malformed_hash_does_not_verify(stored):
    assert not verify_password("secret123", stored)


def test_token_carries_user_id_and_expiry():
    token = create_access_token({"id": 7, "email": "a@example.com"})

    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    assert payload["id"] == 7
    assert payload["email"] == "a@example.com"
    assert 6 * 24 * 3600 < payload["exp"] - time.time() <= 7 * 24 * 3600
    assert verify_token(token) == 7


def test_expired_token_is_forbidden():
    token = create_access_token({"id": 7}, expires_delta=timedelta(seconds=-1))

    with pytest.raises(Forbidden):
        verify_token(token)


def test_token_signed_with_other_secret_is_forbidden():
    token = jwt.encode({"id": 7}, "some-other-secret-that-is-long-enough", algorithm="HS256")

    with pytest.raises(Forbidden):
        verify_token(token)


def test_token_without_integer_id_is_forbidden():
    token = create_access_token({"email": "a@example.com", "id": "7"})

    with pytest.raises(Forbidden):
        verify_token(token)
