import logging

from flask import Blueprint
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from api import __version__
from models import storage

logger = logging.getLogger(__name__)

bp = Blueprint("health", __name__)


def _database_ok() -> bool:
    try:
        with storage.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("health check: database unreachable")
        return False
    return True


@bp.get("/health")
def health():
    """
    Liveness and database connectivity
    ---
    tags:
      - Health
    responses:
      200:
        description: API and database are up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            database:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
      503:
        description: Database unreachable
    """
    if not _database_ok():
        return {"status": "degraded", "database": "unavailable", "version": __version__}, 503
    return {"status": "ok", "database": "ok", "version": __version__}, 200
