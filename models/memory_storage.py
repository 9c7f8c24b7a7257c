"""
In-memory credential store with the same surface as DBStorage.

Used by the unit tests and selectable with STORAGE_BACKEND=memory. A single
lock guards every read and conditional write; callers get copies, never the
stored objects, so nothing mutates a record outside the lock.
"""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, Optional

from models.db_storage import USER_MUTABLE_FIELDS
from models.refresh_token import RefreshToken
from models.user import User
from utils.errors import Conflict
from utils.timeutil import as_utc


def _clone(obj):
    values = {column.key: getattr(obj, column.key, None) for column in obj.__table__.columns}
    return type(obj)(**values)


class MemoryStorage:
    def __init__(self):
        self._lock = threading.Lock()
        self._users: Dict[str, User] = {}
        self._tokens: Dict[str, RefreshToken] = {}
        # retired hash -> record id
        self._retired: Dict[str, str] = {}

    def reload(self):
        with self._lock:
            self._users.clear()
            self._tokens.clear()
            self._retired.clear()

    def close(self):
        pass

    # users

    def add_user(self, user: User) -> User:
        with self._lock:
            if any(u.email == user.email for u in self._users.values()):
                raise Conflict()
            self._users[user.id] = _clone(user)
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return _clone(user) if user else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return _clone(user)
        return None

    def update_user(self, user_id: str, **fields) -> Optional[User]:
        unknown = set(fields) - USER_MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"fields not updatable: {sorted(unknown)}")
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            for key, value in fields.items():
                setattr(user, key, value)
            return _clone(user)

    def find_user_by_verification_hash(self, verification_hash: str) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.email_verification_hash == verification_hash:
                    return _clone(user)
        return None

    def mark_email_verified(self, user_id: str, verification_hash: str, when: datetime) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if user is None or user.email_verification_hash != verification_hash:
                return False
            user.email_verified = True
            user.email_verification_hash = None
            user.email_verification_expires_at = None
            user.updated_at = when
            return True

    # refresh tokens

    def add_refresh_token(self, record: RefreshToken) -> RefreshToken:
        with self._lock:
            self._tokens[record.id] = _clone(record)
        return record

    def find_refresh_token(self, token_hash: str) -> Optional[RefreshToken]:
        with self._lock:
            for record in self._tokens.values():
                if record.token_hash == token_hash:
                    return _clone(record)
        return None

    def find_refresh_token_by_retired_hash(self, token_hash: str) -> Optional[RefreshToken]:
        with self._lock:
            record = self._tokens.get(self._retired.get(token_hash))
            return _clone(record) if record else None

    def rotate_refresh_token(
        self,
        record_id: str,
        current_hash: str,
        new_hash: str,
        expires_at: datetime,
        rotated_at: datetime,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> bool:
        with self._lock:
            record = self._tokens.get(record_id)
            if record is None or record.revoked or record.token_hash != current_hash:
                return False
            if as_utc(record.expires_at) <= rotated_at:
                return False
            self._retired[current_hash] = record_id
            record.token_hash = new_hash
            record.expires_at = expires_at
            record.updated_at = rotated_at
            record.ip = ip
            record.user_agent = user_agent
            return True

    def revoke_refresh_token(self, token_hash: str, revoked_at: datetime) -> int:
        with self._lock:
            count = 0
            for record in self._tokens.values():
                if record.token_hash == token_hash and not record.revoked:
                    self._revoke(record, revoked_at)
                    count += 1
            return count

    def revoke_refresh_token_by_id(self, record_id: str, revoked_at: datetime) -> int:
        with self._lock:
            record = self._tokens.get(record_id)
            if record is None or record.revoked:
                return 0
            self._revoke(record, revoked_at)
            return 1

    @staticmethod
    def _revoke(record: RefreshToken, revoked_at: datetime):
        record.revoked = True
        record.revoked_at = revoked_at
        record.updated_at = revoked_at
