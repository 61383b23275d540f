import logging
from langchain_core.runnables import RunnableConfig

from sqlchat.core.config import settings
from sqlchat.domain.sql_security import check_sql
from sqlchat.workflow.state import GenerationState

logger = logging.getLogger(__name__)


def validate_sql_node(state: GenerationState, config: RunnableConfig = None) -> dict:
    configurable = config.get("configurable", {}) if config else {}
    sql = state.get("candidate")
    schema = state.get("schema")

    verdict = check_sql(
        sql,
        strict=configurable.get("strict", settings.STRICT_MODE),
        parser_check=configurable.get("parser_check", settings.SQL_PARSER_CHECK),
        dialect=getattr(schema, "database_type", None),
    )
    record = {
        "attempt": state.get("attempt", 0),
        "sql": sql,
        "error": None if verdict.valid else verdict.message,
    }

    if verdict.valid:
        return {"accepted": True, "attempts": [record]}

    logger.warning("Attempt %d rejected (%s): %s", state.get("attempt", 0) + 1, verdict.reason, verdict.message)
    return {
        "accepted": False,
        "last_error": verdict.message,
        "attempt": state.get("attempt", 0) + 1,
        "attempts": [record],
    }
