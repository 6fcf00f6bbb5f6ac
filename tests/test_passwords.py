import bcrypt
import pytest

from emive_portal.security.passwords import (
    generate_temporary_password,
    hash_password,
    verify_password,
)


def test_hash_allows_passwords_longer_than_bcrypt_limit():
    password = "A" * 100
    hashed = hash_password(password)

    assert hashed.startswith("bcrypt_sha256$")
    assert verify_password(password, hashed)


@pytest.mark.parametrize("password", ["short", "senha-provisoria"])
def test_verify_password_success(password):
    hashed = hash_password(password)
    assert verify_password(password, hashed)


def test_verify_password_rejects_incorrect_password():
    hashed = hash_password("correct-horse-battery-staple")
    assert not verify_password("incorrect", hashed)


def test_verify_password_accepts_legacy_bcrypt_hashes():
    legacy_hash = bcrypt.hashpw(b"legacy-secret", bcrypt.gensalt()).decode()

    assert verify_password("legacy-secret", legacy_hash)
    assert not verify_password("other", legacy_hash)


def test_verify_password_rejects_missing_hash():
    assert not verify_password("anything", None)
    assert not verify_password("anything", "")


def test_temporary_password_is_alphanumeric():
    password = generate_temporary_password()

    assert len(password) == 12
    assert password.isalnum()
    assert generate_temporary_password(20) != generate_temporary_password(20)
