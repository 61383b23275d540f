import logging
from sqlalchemy import text

from sqlchat.core.database import open_target_engine
from sqlchat.core.exceptions import UnsupportedDialectError
from sqlchat.domain.errors import classify_connection_error

logger = logging.getLogger(__name__)

_PING_QUERIES = {
    "oracle": "SELECT 1 FROM DUAL",
}


def check_connection(config) -> dict:
    """Open a connection, run a trivial ping query and always release it."""
    try:
        with open_target_engine(config) as engine:
            with engine.connect() as conn:
                conn.execute(text(_PING_QUERIES.get(config.database_type, "SELECT 1")))
    except UnsupportedDialectError as e:
        return {"success": False, "message": str(e), "category": "unsupported-dialect"}
    except Exception as e:
        category, message = classify_connection_error(e)
        logger.warning("Connection test failed (%s): %s", category, e)
        return {"success": False, "message": message, "category": category}
    return {"success": True, "message": "Connection successful", "category": None}
