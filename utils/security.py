"""
security helpers:
- Argon2 password hashing via argon2-cffi
- Access token creation/validation via PyJWT (TokenCodec)
- Opaque refresh / verification secrets and their sha256 digests
"""
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from utils.errors import InvalidSignature, MalformedToken, TokenExpired
from utils.settings import AuthSettings
from utils.timeutil import utcnow

ph = PasswordHasher()

ACCESS_TOKEN_TYPE = "access"


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    if not password or not password_hash:
        return False
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


# Verified against when the email is unknown, so both login failure paths cost one argon2 verify.
_DUMMY_HASH = ph.hash(secrets.token_hex(16))


def burn_password_check(password: str) -> None:
    verify_password(password or "x", _DUMMY_HASH)


def generate_secret(nbytes: int = 40) -> str:
    """Random hex secret handed to the client; only its digest is stored."""
    return secrets.token_hex(nbytes)


def digest_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class AccessTokenClaims:
    subject: str
    role: str
    issued_at: datetime
    expires_at: datetime


class TokenCodec:
    """Signs and validates short-lived access tokens.

    The signing secret and algorithm come from AuthSettings and are fixed for
    the life of the process.
    """

    def __init__(self, settings: AuthSettings, clock: Callable[[], datetime] = utcnow):
        self._settings = settings
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return int(self._settings.access_token_ttl.total_seconds())

    def issue(self, subject_id: str, role: str) -> str:
        now = self._clock().replace(microsecond=0)
        exp = now + self._settings.access_token_ttl
        payload = {
            "iss": self._settings.jwt_issuer,
            "sub": str(subject_id),
            "role": role,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
            "type": ACCESS_TOKEN_TYPE,
        }
        return jwt.encode(payload, self._settings.jwt_secret, algorithm=self._settings.jwt_algorithm)

    def validate(self, token: str) -> AccessTokenClaims:
        """
        Verify signature first, then expiry (now >= exp fails).
        Raises MalformedToken, InvalidSignature or TokenExpired.
        """
        if not token or not isinstance(token, str):
            raise MalformedToken()
        try:
            decoded = jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.jwt_algorithm],
                issuer=self._settings.jwt_issuer,
                options={
                    "require": ["sub", "iat", "exp"],
                    # expiry is checked below against the injected clock
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.InvalidSignatureError as exc:
            raise InvalidSignature() from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedToken(f"Malformed token: {exc}") from exc

        if decoded.get("type") != ACCESS_TOKEN_TYPE:
            raise MalformedToken("Wrong token type")
        try:
            iat = datetime.fromtimestamp(int(decoded["iat"]), tz=timezone.utc)
            exp = datetime.fromtimestamp(int(decoded["exp"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError) as exc:
            raise MalformedToken("Invalid time claims") from exc

        if self._clock() >= exp:
            raise TokenExpired()

        return AccessTokenClaims(
            subject=str(decoded["sub"]),
            role=str(decoded.get("role") or ""),
            issued_at=iat,
            expires_at=exp,
        )
