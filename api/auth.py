"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/verify-email

Access tokens are short-lived JWTs; refresh tokens are opaque secrets stored
server-side only as a sha256 digest and rotated on every use. Both travel as
HttpOnly cookies; the refresh secret is never put in a response body.
"""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from models.schemas.user import UserOutSchema
from utils.decorators import auth_services
from utils.errors import TokenExpired
from utils.sessions import RequestMeta

bp = Blueprint("auth", __name__, url_prefix="/auth")

user_out_schema = UserOutSchema()


def request_meta() -> RequestMeta:
    return RequestMeta(ip=request.remote_addr, user_agent=request.headers.get("User-Agent"))


def _cookie_options() -> dict:
    cfg = current_app.config
    return {
        "httponly": True,
        "secure": cfg["COOKIE_SECURE"],
        "samesite": cfg["COOKIE_SAMESITE"],
        "domain": cfg["COOKIE_DOMAIN"],
        "path": "/",
    }


def set_session_cookies(response, access_token: str, refresh_secret: str):
    settings = auth_services().settings
    opts = _cookie_options()
    response.set_cookie(
        current_app.config["ACCESS_COOKIE_NAME"],
        access_token,
        max_age=int(settings.access_token_ttl.total_seconds()),
        **opts,
    )
    response.set_cookie(
        current_app.config["REFRESH_COOKIE_NAME"],
        refresh_secret,
        max_age=int(settings.refresh_token_ttl.total_seconds()),
        **opts,
    )
    return response


def clear_session_cookies(response, access: bool = True, refresh: bool = True):
    opts = _cookie_options()
    if access:
        response.delete_cookie(current_app.config["ACCESS_COOKIE_NAME"], **opts)
    if refresh:
        response.delete_cookie(current_app.config["REFRESH_COOKIE_NAME"], **opts)
    return response


def _session_response(result, status: int):
    body = {"user": user_out_schema.dump(result.user), "access_token": result.access_token}
    if result.access_token:
        body["token_type"] = "bearer"
        body["expires_in"] = auth_services().codec.ttl_seconds
    response = jsonify(body)
    response.status_code = status
    if result.access_token and result.refresh_secret:
        set_session_cookies(response, result.access_token, result.refresh_secret)
    return response


def _presented_refresh_secret():
    secret = request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])
    if secret:
        return secret
    payload = request.get_json(silent=True) or {}
    return payload.get("refresh_token") if isinstance(payload, dict) else None


@bp.post("/register")
def register():
    """
    Register a new user and open a session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [email, password, name]
          properties:
            email: { type: string }
            password: { type: string }
            name: { type: string }
    responses:
      201:
        description: Created; access and refresh cookies set
      400:
        description: Invalid input
      409:
        description: Email already registered
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        payload = {}
    result = auth_services().sessions.register(
        payload.get("email"), payload.get("password"), payload.get("name"), meta=request_meta()
    )
    return _session_response(result, 201)


@bp.post("/login")
def login():
    """
    Login: returns the access token and sets the session cookies
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK
      400:
        description: Invalid input
      401:
        description: Invalid credentials
      403:
        description: Email not verified
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        payload = {}
    result = auth_services().sessions.login(payload.get("email"), payload.get("password"), meta=request_meta())
    return _session_response(result, 200)


@bp.post("/refresh")
def refresh():
    """
    Rotate the refresh token and issue a new access token
    ---
    tags:
      - Auth
    description: Reads the refresh cookie, or `refresh_token` from the JSON body.
    responses:
      200:
        description: OK; rotated cookies set
      401:
        description: Invalid, rotated, revoked or expired refresh token
    """
    try:
        result = auth_services().sessions.refresh(_presented_refresh_secret(), meta=request_meta())
    except TokenExpired as err:
        response = jsonify({"error": err.code, "message": err.message, "status": err.status})
        response.status_code = err.status
        return clear_session_cookies(response)

    response = jsonify(
        {
            "access_token": result.access_token,
            "token_type": "bearer",
            "expires_in": auth_services().codec.ttl_seconds,
        }
    )
    return set_session_cookies(response, result.access_token, result.refresh_secret)


@bp.post("/logout")
def logout():
    """
    Logout: revokes the refresh token and clears the session cookies
    ---
    tags:
      - Auth
    responses:
      200:
        description: Always succeeds
    """
    auth_services().sessions.logout(_presented_refresh_secret())
    response = jsonify({"message": "Logged out successfully"})
    return clear_session_cookies(response)


@bp.post("/verify-email")
def verify_email():
    """
    Confirm an email address with the token sent at registration
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
    responses:
      200:
        description: Verified
      401:
        description: Unknown or expired token
    """
    payload = request.get_json(silent=True) or {}
    token = payload.get("token") if isinstance(payload, dict) else None
    token = token or request.args.get("token")
    user = auth_services().sessions.verify_email(token)
    return jsonify({"message": "Email verified successfully", "success": True, "user": user_out_schema.dump(user)}), 200
