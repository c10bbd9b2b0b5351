"""Password hashing with argon2id. Each hash embeds its own random salt."""

from __future__ import annotations

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHash, VerificationError

_pwd_hasher = PasswordHasher(type=Type.ID)

# Verified against when the account does not exist, so a login for an
# unknown email costs the same as one with a wrong password.
_DUMMY_HASH = _pwd_hasher.hash("learnhub-dummy-password")


def hash_password(password: str) -> str:
    return _pwd_hasher.hash(password)


def verify_password(stored_hash: str, password: str) -> bool:
    try:
        return _pwd_hasher.verify(stored_hash, password)
    except (InvalidHash, VerificationError):
        return False


def burn_verification(password: str) -> None:
    verify_password(_DUMMY_HASH, password)
