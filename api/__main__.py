"""
Development server for the auth API: `python -m api`.

Cookies are issued without the Secure flag unless COOKIE_SECURE is set, so
use this over plain http only. In production serve `api:create_app()` from a
WSGI server (gunicorn/uwsgi) behind TLS.
"""
import os

from utils.logger import get_logger

from . import create_app

logger = get_logger(__name__)

app = create_app(os.getenv("APP_ENV"))

if __name__ == "__main__":
    host = os.getenv("FLASK_RUN_HOST", "127.0.0.1")
    port = int(os.getenv("FLASK_RUN_PORT", "8000"))
    debug = os.getenv("FLASK_DEBUG", str(app.config.get("DEBUG", False))).lower() in ("1", "true", "yes")
    if not app.config["COOKIE_SECURE"]:
        logger.warning("session cookies are not marked Secure; do not expose this server publicly")
    app.run(host=host, port=port, debug=debug)
