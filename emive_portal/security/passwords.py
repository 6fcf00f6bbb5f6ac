from __future__ import annotations

import secrets
import string
from hashlib import sha256

import bcrypt


_BCRYPT_SHA256_PREFIX = "bcrypt_sha256$"
# Hashes carrying this prefix were SHA-256 pre-hashed before bcrypt.

_TEMPORARY_ALPHABET = string.ascii_letters + string.digits


def hash_password(password: str) -> str:
    digest = sha256(password.encode("utf-8")).digest()
    hashed = bcrypt.hashpw(digest, bcrypt.gensalt())
    return f"{_BCRYPT_SHA256_PREFIX}{hashed.decode()}"


def verify_password(password: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    password_bytes = password.encode("utf-8")

    if hashed.startswith(_BCRYPT_SHA256_PREFIX):
        digest = sha256(password_bytes).digest()
        stored = hashed[len(_BCRYPT_SHA256_PREFIX) :].encode()
        try:
            return bcrypt.checkpw(digest, stored)
        except ValueError:
            return False

    try:
        return bcrypt.checkpw(password_bytes, hashed.encode())
    except ValueError:
        # bcrypt rejects candidates longer than 72 bytes
        return False


def generate_temporary_password(length: int = 12) -> str:
    """Random password handed to users created by an administrator."""

    return "".join(secrets.choice(_TEMPORARY_ALPHABET) for _ in range(length))
