"""Tests for the SQLAlchemy credential store and the session core on top of it."""
import logging
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, text

from models.refresh_token import RefreshToken
from models.user import User
from utils.errors import Conflict, InvalidToken, StorageError, TokenExpired
from utils.security import digest_secret
from utils.sessions import SessionManager
from utils.timeutil import as_utc

from conftest import PASSWORD

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _drop_table(tmp_path, name):
    engine = create_engine(f"sqlite:///{tmp_path / 'auth.db'}")
    with engine.begin() as conn:
        conn.execute(text(f"DROP TABLE {name}"))
    engine.dispose()


def _user(email="db@x.com"):
    return User(email=email, password_hash="hash", name="DB", role="user", email_verified=False,
                created_at=NOW, updated_at=NOW)


def _token(user_id, token_hash="h1"):
    return RefreshToken(token_hash=token_hash, user_id=user_id, revoked=False,
                        created_at=NOW, updated_at=NOW, expires_at=NOW + timedelta(days=30))


class TestUsers:
    def test_add_and_fetch(self, sql_storage):
        user = sql_storage.add_user(_user())

        assert sql_storage.get_user(user.id).email == "db@x.com"
        assert sql_storage.get_user_by_email("db@x.com").id == user.id
        assert sql_storage.get_user("missing") is None

    def test_duplicate_email_conflict(self, sql_storage):
        sql_storage.add_user(_user())

        with pytest.raises(Conflict):
            sql_storage.add_user(_user())
        # session is usable again after the rollback
        assert sql_storage.get_user_by_email("db@x.com") is not None

    def test_update_user(self, sql_storage):
        user = sql_storage.add_user(_user())
        later = NOW + timedelta(hours=1)

        updated = sql_storage.update_user(user.id, name="New", last_login_at=later)
        assert updated.name == "New"
        assert as_utc(updated.last_login_at) == later

    def test_update_rejects_unknown_fields(self, sql_storage):
        user = sql_storage.add_user(_user())

        with pytest.raises(ValueError):
            sql_storage.update_user(user.id, email="other@x.com")


class TestRefreshTokens:
    def test_conditional_rotation_wins_once(self, sql_storage):
        user = sql_storage.add_user(_user())
        record = sql_storage.add_refresh_token(_token(user.id))
        new_expiry = NOW + timedelta(days=31)

        assert sql_storage.rotate_refresh_token(record.id, "h1", "h2", new_expiry, rotated_at=NOW) is True
        assert sql_storage.rotate_refresh_token(record.id, "h1", "h3", new_expiry, rotated_at=NOW) is False

        fresh = sql_storage.find_refresh_token("h2")
        assert fresh.id == record.id
        assert as_utc(fresh.expires_at) == new_expiry
        assert sql_storage.find_refresh_token("h1") is None
        assert sql_storage.find_refresh_token_by_retired_hash("h1").id == record.id
        assert sql_storage.find_refresh_token_by_retired_hash("h2") is None

    def test_rotation_refuses_revoked(self, sql_storage):
        user = sql_storage.add_user(_user())
        record = sql_storage.add_refresh_token(_token(user.id))

        assert sql_storage.revoke_refresh_token("h1", revoked_at=NOW) == 1
        assert sql_storage.rotate_refresh_token(record.id, "h1", "h2", NOW, rotated_at=NOW) is False

    def test_revoke_is_conditional(self, sql_storage):
        user = sql_storage.add_user(_user())
        sql_storage.add_refresh_token(_token(user.id))

        assert sql_storage.revoke_refresh_token("h1", revoked_at=NOW) == 1
        assert sql_storage.revoke_refresh_token("h1", revoked_at=NOW) == 0
        assert sql_storage.find_refresh_token("h1").revoked is True

    def test_rotation_refuses_expired(self, sql_storage):
        user = sql_storage.add_user(_user())
        record = sql_storage.add_refresh_token(_token(user.id))
        expiry = NOW + timedelta(days=30)

        assert sql_storage.rotate_refresh_token(record.id, "h1", "h2", expiry + timedelta(days=30), rotated_at=expiry) is False
        assert sql_storage.find_refresh_token("h1") is not None
        assert sql_storage.find_refresh_token_by_retired_hash("h1") is None

    def test_revoke_by_id_is_conditional(self, sql_storage):
        user = sql_storage.add_user(_user())
        record = sql_storage.add_refresh_token(_token(user.id))

        assert sql_storage.revoke_refresh_token_by_id(record.id, revoked_at=NOW) == 1
        assert sql_storage.revoke_refresh_token_by_id(record.id, revoked_at=NOW) == 0
        assert sql_storage.revoke_refresh_token_by_id("missing", revoked_at=NOW) == 0
        assert sql_storage.find_refresh_token("h1").revoked is True


class TestStoreFailures:
    def test_failed_rotation_rolls_back(self, sql_storage, tmp_path, caplog):
        user = sql_storage.add_user(_user())
        record = sql_storage.add_refresh_token(_token(user.id))
        _drop_table(tmp_path, "refresh_token_history")

        with caplog.at_level(logging.ERROR, logger="models.db_storage"):
            with pytest.raises(StorageError):
                sql_storage.rotate_refresh_token(record.id, "h1", "h2", NOW + timedelta(days=31), rotated_at=NOW)

        # the hash update was undone together with the failed history insert
        assert sql_storage.find_refresh_token("h1").id == record.id
        assert sql_storage.find_refresh_token("h2") is None
        assert any("credential store failure" in rec.getMessage() for rec in caplog.records)

    def test_read_failure_is_storage_error(self, sql_storage, tmp_path):
        sql_storage.add_user(_user())
        _drop_table(tmp_path, "refresh_token_history")
        _drop_table(tmp_path, "refresh_tokens")
        _drop_table(tmp_path, "users")

        with pytest.raises(StorageError):
            sql_storage.get_user_by_email("db@x.com")


class TestSessionsOnSql:
    @pytest.fixture
    def sql_sessions(self, sql_storage, codec, settings, clock, mailer):
        return SessionManager(sql_storage, codec, settings, clock=clock, mailer=mailer)

    def test_lifecycle(self, sql_sessions, sql_storage, meta):
        registered = sql_sessions.register("a@x.com", PASSWORD, "A", meta=meta)
        logged_in = sql_sessions.login("A@x.com", PASSWORD, meta=meta)
        assert logged_in.user.id == registered.user.id

        rotated = sql_sessions.refresh(logged_in.refresh_secret, meta=meta)
        with pytest.raises(InvalidToken):
            sql_sessions.refresh(logged_in.refresh_secret, meta=meta)

        record = sql_storage.find_refresh_token(digest_secret(rotated.refresh_secret))
        assert record.ip == "203.0.113.7"

        sql_sessions.logout(rotated.refresh_secret)
        sql_sessions.logout(rotated.refresh_secret)
        with pytest.raises(InvalidToken):
            sql_sessions.refresh(rotated.refresh_secret, meta=meta)

    def test_register_conflict(self, sql_sessions):
        sql_sessions.register("a@x.com", PASSWORD, "A")

        with pytest.raises(Conflict):
            sql_sessions.register("A@X.com", PASSWORD, "B")

    def test_expired_refresh(self, sql_sessions, sql_storage, clock):
        registered = sql_sessions.register("a@x.com", PASSWORD, "A")
        clock.advance(days=31)

        with pytest.raises(TokenExpired):
            sql_sessions.refresh(registered.refresh_secret)
        assert sql_storage.find_refresh_token(digest_secret(registered.refresh_secret)).revoked is True
        with pytest.raises(InvalidToken):
            sql_sessions.refresh(registered.refresh_secret)

    def test_replay_revokes_chain(self, sql_sessions, sql_storage):
        registered = sql_sessions.register("a@x.com", PASSWORD, "A")
        first = sql_sessions.refresh(registered.refresh_secret)
        second = sql_sessions.refresh(first.refresh_secret)

        with pytest.raises(InvalidToken):
            sql_sessions.refresh(registered.refresh_secret)
        assert sql_storage.find_refresh_token(digest_secret(second.refresh_secret)).revoked is True
        with pytest.raises(InvalidToken):
            sql_sessions.refresh(second.refresh_secret)

    def test_verify_email(self, sql_sessions, sql_storage, mailer):
        registered = sql_sessions.register("a@x.com", PASSWORD, "A")

        user = sql_sessions.verify_email(mailer.sent[0]["token"])
        assert user.email_verified is True
        assert sql_storage.get_user(registered.user.id).email_verification_hash is None
