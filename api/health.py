from flask import Blueprint

from utils.decorators import auth_services

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Liveness check with the active token settings
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
            storage:
              type: string
              example: DBStorage
            access_token_ttl:
              type: integer
              example: 900
    """
    services = auth_services()
    return {
        "status": "ok",
        "version": "1.0.0",
        "storage": type(services.storage).__name__,
        "access_token_ttl": services.codec.ttl_seconds,
    }, 200
