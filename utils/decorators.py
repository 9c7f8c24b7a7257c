from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import current_app, g, request

from utils.errors import InvalidToken, TokenExpired, Unauthenticated
from utils.logger import get_logger
from utils.security import TokenCodec

logger = get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    subject_id: str
    role: str


class RequestGate:
    """Turns the bearer material of a request into an Identity, or rejects it.

    Every failure (missing, malformed, forged, expired) surfaces as the same
    Unauthenticated error; the reason is only logged.
    """

    def __init__(self, codec: TokenCodec, access_cookie_name: str = "access_token"):
        self.codec = codec
        self.access_cookie_name = access_cookie_name

    def extract(self, req) -> Optional[str]:
        auth = req.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            token = auth.split(" ", 1)[1].strip()
            if token:
                return token
        return req.cookies.get(self.access_cookie_name) or None

    def authenticate(self, token: Optional[str]) -> Identity:
        if not token:
            logger.debug("request rejected: no access token")
            raise Unauthenticated()
        try:
            claims = self.codec.validate(token)
        except (InvalidToken, TokenExpired) as exc:
            logger.debug("request rejected: %s", exc.__class__.__name__)
            raise Unauthenticated() from exc
        return Identity(subject_id=claims.subject, role=claims.role)


def auth_services():
    """The AuthServices bundle create_app() stored on the current app."""
    return current_app.extensions["auth"]


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            gate: RequestGate = auth_services().gate
            g.identity = gate.authenticate(gate.extract(request))
            return fn(*args, **kwargs)

        return wrapper

    return decorator
