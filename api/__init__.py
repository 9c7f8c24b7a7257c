from __future__ import annotations

from dataclasses import dataclass

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import DEFAULT_JWT_SECRET, get_config
from .errors import register_error_handlers
from models import make_storage
from utils.decorators import RequestGate
from utils.logger import get_logger, set_level
from utils.mailer import LoggingMailer
from utils.security import TokenCodec
from utils.sessions import SessionManager
from utils.settings import AuthSettings
from utils.timeutil import utcnow

logger = get_logger(__name__)

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Session Auth API",
        "version": "1.0.0",
        "description": "Registration, login and rotating refresh-token sessions.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


@dataclass(frozen=True)
class AuthServices:
    settings: AuthSettings
    storage: object
    codec: TokenCodec
    gate: RequestGate
    sessions: SessionManager


def create_app(config_name: str | None = None, storage=None, clock=None, mailer=None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.

    The auth settings are frozen once here and injected into the token codec
    and session manager; `storage`, `clock` and `mailer` may be supplied by
    tests instead of being built from config.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    set_level(app.config["LOG_LEVEL"])
    if app.config["APP_ENV"] in ("prod", "production") and app.config["JWT_SECRET"] == DEFAULT_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set in production")

    # Cross-Origin Resource Sharing; credentials are needed for the session cookies
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    settings = AuthSettings.from_mapping(app.config)
    clock = clock or utcnow
    if storage is None:
        storage = make_storage(
            app.config["STORAGE_BACKEND"], app.config.get("DATABASE_URL"), echo=app.config.get("SQL_ECHO", False)
        )
    codec = TokenCodec(settings, clock=clock)
    app.extensions["auth"] = AuthServices(
        settings=settings,
        storage=storage,
        codec=codec,
        gate=RequestGate(codec, access_cookie_name=app.config["ACCESS_COOKIE_NAME"]),
        sessions=SessionManager(storage, codec, settings, clock=clock, mailer=mailer or LoggingMailer()),
    )

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1")
    app.register_blueprint(users_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Session Auth API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    logger.info("app created env=%s storage=%s", app.config["APP_ENV"], type(storage).__name__)
    return app
