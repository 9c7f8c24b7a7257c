"""
Verification mail hand-off.

Delivery itself lives outside this service; the session core only needs
something with `send_verification(email, name, token)`. The default just
records that a mail was due.
"""
from __future__ import annotations

from utils.logger import get_logger

logger = get_logger(__name__)


class LoggingMailer:
    def send_verification(self, email: str, name: str | None, token: str) -> bool:
        # the token is a live secret; only the recipient is logged
        logger.info("verification email queued for %s", email)
        return True
