"""
Session manager: register, login, refresh-token rotation, logout.

Refresh tokens are opaque random secrets. Only their sha256 digest is stored,
one record per rotation chain. Each successful refresh rewrites that record's
hash in a single conditional write (compare-and-rotate), so a secret can be
exchanged exactly once and two concurrent refreshes of the same secret can
never both succeed. Presenting a secret the chain has already retired is
treated as theft: the whole chain is revoked.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from marshmallow import ValidationError

from models.refresh_token import RefreshToken
from models.schemas.user import LoginSchema, ProfileUpdateSchema, RegisterSchema
from models.user import User
from utils.errors import (
    EmailNotVerified,
    InvalidCredentials,
    InvalidInput,
    InvalidToken,
    TokenExpired,
    Unauthenticated,
)
from utils.logger import get_logger
from utils.security import (
    TokenCodec,
    burn_password_check,
    digest_secret,
    generate_secret,
    hash_password,
    verify_password,
)
from utils.settings import AuthSettings
from utils.timeutil import as_utc, utcnow

logger = get_logger(__name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
profile_update_schema = ProfileUpdateSchema()


@dataclass(frozen=True)
class RequestMeta:
    ip: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class SessionResult:
    user: User
    access_token: Optional[str]
    refresh_secret: Optional[str]


@dataclass(frozen=True)
class RefreshResult:
    user_id: str
    access_token: str
    refresh_secret: str


def _load(schema, payload: dict) -> dict:
    try:
        return schema.load(payload)
    except ValidationError as err:
        raise InvalidInput("Invalid input", details=err.messages) from err


class SessionManager:
    def __init__(
        self,
        storage,
        codec: TokenCodec,
        settings: AuthSettings,
        clock: Callable[[], datetime] = utcnow,
        mailer=None,
    ):
        self.storage = storage
        self.codec = codec
        self.settings = settings
        self.clock = clock
        self.mailer = mailer

    def _mint_refresh(self, user: User, meta: Optional[RequestMeta]) -> str:
        meta = meta or RequestMeta()
        now = self.clock()
        secret = generate_secret()
        self.storage.add_refresh_token(
            RefreshToken(
                token_hash=digest_secret(secret),
                user_id=user.id,
                revoked=False,
                created_at=now,
                updated_at=now,
                expires_at=now + self.settings.refresh_token_ttl,
                ip=meta.ip,
                user_agent=meta.user_agent,
            )
        )
        return secret

    def _open_session(self, user: User, meta: Optional[RequestMeta]) -> SessionResult:
        refresh_secret = self._mint_refresh(user, meta)
        access_token = self.codec.issue(user.id, user.role)
        return SessionResult(user=user, access_token=access_token, refresh_secret=refresh_secret)

    def register(
        self, email: str, password: str, name: str, meta: Optional[RequestMeta] = None
    ) -> SessionResult:
        """Create a user and, unless verified email is required, open a session.

        Raises InvalidInput for a bad email/name or a weak password and
        Conflict when the email is taken.
        """
        data = _load(register_schema, {"email": email, "password": password, "name": name})
        now = self.clock()
        verification_token = generate_secret(32)
        user = User(
            email=data["email"],
            password_hash=hash_password(data["password"]),
            name=data["name"],
            role=self.settings.default_role,
            email_verified=False,
            email_verification_hash=digest_secret(verification_token),
            email_verification_expires_at=now + self.settings.email_verification_ttl,
            created_at=now,
            updated_at=now,
        )
        # uniqueness is enforced by the store itself, not by a lookup here
        self.storage.add_user(user)
        logger.info("user registered user_id=%s", user.id)

        if self.mailer is not None:
            self.mailer.send_verification(user.email, user.name, verification_token)

        if self.settings.require_verified_email:
            return SessionResult(user=user, access_token=None, refresh_secret=None)
        return self._open_session(user, meta)

    def login(self, email: str, password: str, meta: Optional[RequestMeta] = None) -> SessionResult:
        data = _load(login_schema, {"email": email, "password": password})
        user = self.storage.get_user_by_email(data["email"])
        if user is None:
            burn_password_check(data["password"])
            logger.info("login failed: unknown email")
            raise InvalidCredentials()
        if not verify_password(data["password"], user.password_hash):
            logger.info("login failed user_id=%s", user.id)
            raise InvalidCredentials()
        if self.settings.require_verified_email and not user.email_verified:
            raise EmailNotVerified()

        now = self.clock()
        user = self.storage.update_user(user.id, last_login_at=now, updated_at=now) or user
        logger.info("login ok user_id=%s ip=%s", user.id, (meta or RequestMeta()).ip)
        return self._open_session(user, meta)

    def _revoke_replayed_chain(self, record: RefreshToken, meta: RequestMeta, reason: str) -> None:
        """A secret was presented after its chain moved on: end the chain."""
        count = self.storage.revoke_refresh_token_by_id(record.id, revoked_at=self.clock())
        logger.warning(
            "refresh token replay detected (%s) record_id=%s user_id=%s ip=%s chain_revoked=%s",
            reason,
            record.id,
            record.user_id,
            meta.ip,
            bool(count),
        )

    def refresh(self, refresh_secret: str, meta: Optional[RequestMeta] = None) -> RefreshResult:
        """Exchange a refresh secret for a new access token and a new secret.

        Steps:
          1. digest the secret and find its record
          2. unknown or revoked -> InvalidToken; a retired secret also revokes its chain
          3. expired -> revoke, TokenExpired
          4. compare-and-rotate; losing the write revokes the chain -> InvalidToken
          5. issue the access token for the owner
        """
        meta = meta or RequestMeta()
        if not refresh_secret or not isinstance(refresh_secret, str):
            raise InvalidToken("Invalid refresh token")

        token_hash = digest_secret(refresh_secret)
        record = self.storage.find_refresh_token(token_hash)
        if record is None:
            retired = self.storage.find_refresh_token_by_retired_hash(token_hash)
            if retired is not None:
                self._revoke_replayed_chain(retired, meta, "retired secret")
            raise InvalidToken("Invalid refresh token")
        if record.revoked:
            logger.warning(
                "revoked refresh token presented record_id=%s user_id=%s ip=%s",
                record.id,
                record.user_id,
                meta.ip,
            )
            raise InvalidToken("Invalid refresh token")

        now = self.clock()
        if as_utc(record.expires_at) <= now:
            self.storage.revoke_refresh_token(token_hash, revoked_at=now)
            logger.info("refresh token expired record_id=%s user_id=%s", record.id, record.user_id)
            raise TokenExpired("Refresh token expired")

        new_secret = generate_secret()
        rotated = self.storage.rotate_refresh_token(
            record.id,
            current_hash=token_hash,
            new_hash=digest_secret(new_secret),
            expires_at=now + self.settings.refresh_token_ttl,
            rotated_at=now,
            ip=meta.ip,
            user_agent=meta.user_agent,
        )
        if not rotated:
            self._revoke_replayed_chain(record, meta, "lost rotation")
            raise InvalidToken("Invalid or already rotated refresh token")

        user = self.storage.get_user(record.user_id)
        if user is None:
            self.storage.revoke_refresh_token(digest_secret(new_secret), revoked_at=now)
            raise InvalidToken("Invalid refresh token")

        logger.info("refresh token rotated record_id=%s user_id=%s", record.id, user.id)
        return RefreshResult(
            user_id=user.id,
            access_token=self.codec.issue(user.id, user.role),
            refresh_secret=new_secret,
        )

    def logout(self, refresh_secret: Optional[str]) -> None:
        """Revoke the session behind refresh_secret. Unknown secrets are fine."""
        if not refresh_secret or not isinstance(refresh_secret, str):
            return
        count = self.storage.revoke_refresh_token(digest_secret(refresh_secret), revoked_at=self.clock())
        if count:
            logger.info("session revoked on logout")

    def verify_email(self, token: str) -> User:
        if not token or not isinstance(token, str):
            raise InvalidToken("Invalid verification token")
        verification_hash = digest_secret(token)
        user = self.storage.find_user_by_verification_hash(verification_hash)
        if user is None:
            raise InvalidToken("Invalid verification token")

        now = self.clock()
        expires_at = as_utc(user.email_verification_expires_at)
        if expires_at is not None and expires_at <= now:
            raise TokenExpired("Verification token expired")
        if not self.storage.mark_email_verified(user.id, verification_hash, when=now):
            raise InvalidToken("Invalid verification token")

        logger.info("email verified user_id=%s", user.id)
        return self.storage.get_user(user.id)

    def get_profile(self, user_id: str) -> User:
        user = self.storage.get_user(user_id)
        if user is None:
            raise Unauthenticated()
        return user

    def update_profile(self, user_id: str, changes: dict) -> User:
        data = _load(profile_update_schema, changes)
        if not data:
            return self.get_profile(user_id)
        user = self.storage.update_user(user_id, updated_at=self.clock(), **data)
        if user is None:
            raise Unauthenticated()
        return user
