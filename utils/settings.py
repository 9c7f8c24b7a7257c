"""
Immutable auth settings.

Built once from the Flask config at startup and handed to TokenCodec and
SessionManager. Nothing in the core reads the environment at call time.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping


@dataclass(frozen=True)
class AuthSettings:
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "session-auth-api"
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=30)
    email_verification_ttl: timedelta = timedelta(hours=24)
    require_verified_email: bool = False
    default_role: str = "user"

    def __post_init__(self):
        if not self.jwt_secret:
            raise ValueError("jwt_secret must not be blank")
        if self.access_token_ttl <= timedelta(0) or self.refresh_token_ttl <= timedelta(0):
            raise ValueError("token lifetimes must be positive")

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> "AuthSettings":
        """Freeze the auth-relevant keys of a Flask config (or any mapping)."""
        return cls(
            jwt_secret=cfg["JWT_SECRET"],
            jwt_algorithm=cfg.get("JWT_ALGORITHM", "HS256"),
            jwt_issuer=cfg.get("JWT_ISSUER", "session-auth-api"),
            access_token_ttl=timedelta(seconds=int(cfg.get("ACCESS_TOKEN_TTL_SECONDS", 900))),
            refresh_token_ttl=timedelta(days=int(cfg.get("REFRESH_TOKEN_TTL_DAYS", 30))),
            email_verification_ttl=timedelta(hours=int(cfg.get("EMAIL_VERIFICATION_TTL_HOURS", 24))),
            require_verified_email=bool(cfg.get("REQUIRE_VERIFIED_EMAIL", False)),
            default_role=cfg.get("DEFAULT_ROLE", "user"),
        )
