"""Authentication utilities: encode and decode JWT access/refresh tokens."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from learnhub.config import settings
from learnhub.entities.enums import Role


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenError(Exception):
    """Base class for token decoding failures."""


class ExpiredTokenError(TokenError):
    """The token was valid but its lifetime has elapsed."""


class MalformedTokenError(TokenError):
    """Bad signature, bad structure, wrong kind or unknown role."""


@dataclass(frozen=True)
class TokenClaims:
    subject_id: str
    role: Role
    kind: TokenKind
    token_version: int
    issued_at: datetime
    expires_at: datetime


def _secret_for(kind: TokenKind) -> str:
    if kind is TokenKind.ACCESS:
        return settings.ACCESS_TOKEN_SECRET
    return settings.REFRESH_TOKEN_SECRET


def _ttl_for(kind: TokenKind) -> timedelta:
    if kind is TokenKind.ACCESS:
        return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)


def encode(
    subject_id: str,
    role: Role,
    kind: TokenKind,
    *,
    token_version: int = 0,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed token for the given subject.

    Args:
        subject_id: Account ID to encode in the token
        role: Account role
        kind: access or refresh; selects the signing secret and default TTL
        token_version: Account token version, checked on refresh
        expires_delta: Override of the configured TTL

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else _ttl_for(kind))
    payload: dict[str, Any] = {
        "sub": str(subject_id),
        "role": Role(role).value,
        "type": kind.value,
        "ver": token_version,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, _secret_for(kind), algorithm=settings.ALGORITHM)


def decode(token: str, kind: TokenKind) -> TokenClaims:
    """Decode and validate a token of the expected kind.

    Raises:
        ExpiredTokenError: If the signature is valid but the token has expired
        MalformedTokenError: For any other signature or structure problem
    """
    try:
        payload = jwt.decode(token, _secret_for(kind), algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError as e:
        raise ExpiredTokenError("Token has expired") from e
    except JWTError as e:
        raise MalformedTokenError(f"Could not validate token: {e}") from e

    if payload.get("type") != kind.value:
        raise MalformedTokenError("Invalid token type")

    subject_id = payload.get("sub")
    if not subject_id:
        raise MalformedTokenError("Token has no subject")

    try:
        role = Role(payload.get("role"))
        token_version = int(payload.get("ver", 0))
        issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedTokenError(f"Invalid token claims: {e}") from e

    # jose already rejects expired tokens; this guards the now == exp boundary
    if datetime.now(timezone.utc) >= expires_at:
        raise ExpiredTokenError("Token has expired")

    return TokenClaims(
        subject_id=subject_id,
        role=role,
        kind=kind,
        token_version=token_version,
        issued_at=issued_at,
        expires_at=expires_at,
    )


def create_access_token(subject: str, role: Role, token_version: int = 0) -> str:
    return encode(subject, role, TokenKind.ACCESS, token_version=token_version)


def create_refresh_token(subject: str, role: Role, token_version: int = 0) -> str:
    return encode(subject, role, TokenKind.REFRESH, token_version=token_version)


def decode_access_token(token: str) -> TokenClaims:
    return decode(token, TokenKind.ACCESS)


def decode_refresh_token(token: str) -> TokenClaims:
    return decode(token, TokenKind.REFRESH)
