"""
Domain errors raised by the token lifecycle core.

Every error carries a machine readable `code` and the HTTP `status` the API
layer renders it with (see api/errors.py). The core never builds responses
itself; it raises one of these and lets the boundary translate.
"""
from __future__ import annotations


class AuthError(Exception):
    code = "AUTH_ERROR"
    status = 400
    default_message = "Authentication error"

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InvalidInput(AuthError):
    code = "INVALID_INPUT"
    status = 400
    default_message = "Invalid input"


class Conflict(AuthError):
    code = "CONFLICT"
    status = 409
    default_message = "User already exists with the email"


class InvalidCredentials(AuthError):
    code = "INVALID_CREDENTIALS"
    status = 401
    default_message = "Invalid email or password"


class InvalidToken(AuthError):
    code = "INVALID_TOKEN"
    status = 401
    default_message = "Invalid token"


class InvalidSignature(InvalidToken):
    default_message = "Token signature verification failed"


class MalformedToken(InvalidToken):
    default_message = "Malformed token"


class TokenExpired(AuthError):
    code = "TOKEN_EXPIRED"
    status = 401
    default_message = "Token expired"


class Unauthenticated(AuthError):
    code = "UNAUTHENTICATED"
    status = 401
    default_message = "Authentication required"


class EmailNotVerified(AuthError):
    code = "EMAIL_NOT_VERIFIED"
    status = 403
    default_message = "Email address has not been verified"


class Internal(AuthError):
    code = "INTERNAL_ERROR"
    status = 500
    default_message = "An unexpected error occurred"


class StorageError(Internal):
    default_message = "Credential store unavailable"
