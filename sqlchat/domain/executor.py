import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import ArgumentError, DBAPIError, SQLAlchemyError

from sqlchat.core.config import settings
from sqlchat.core.database import open_target_engine
from sqlchat.core.dialects import get_dialect
from sqlchat.domain import errors
from sqlchat.domain.sql_security import check_sql

logger = logging.getLogger(__name__)

SECURITY_REJECTED = "security-rejected"
NOT_FOUND = "not-found"
CONNECTION_FAILED = "connection-failed"
TIMED_OUT = "timeout"
OTHER = "other"


@dataclass
class ExecutionResult:
    success: bool
    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    execution_time_ms: int = 0
    error: Optional[str] = None
    error_category: Optional[str] = None
    connection_category: Optional[str] = None

    @property
    def columns(self) -> List[str]:
        return list(self.rows[0].keys()) if self.rows else []


def _jsonable(value):
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


class QueryExecutor:
    """
    Runs one validated SELECT against a target database on a connection that
    lives only for this call.
    """
    def __init__(self, strict: Optional[bool] = None, parser_check: Optional[bool] = None):
        self.strict = settings.STRICT_MODE if strict is None else strict
        self.parser_check = settings.SQL_PARSER_CHECK if parser_check is None else parser_check

    def execute(self, config, sql: str) -> ExecutionResult:
        # Unknown dialects raise here, before any connection is attempted
        dialect = get_dialect(config.database_type)

        verdict = check_sql(sql, strict=self.strict, parser_check=self.parser_check, dialect=dialect.name)
        if not verdict.valid:
            logger.warning("Refusing to execute rejected SQL (%s)", verdict.reason)
            return ExecutionResult(success=False, error=verdict.message, error_category=SECURITY_REJECTED)

        start = time.perf_counter()
        try:
            with open_target_engine(config) as engine:
                try:
                    conn = engine.connect()
                except Exception as e:
                    return self._connection_failure(e, start)
                with conn:
                    # Raw driver call: no bind-parameter parsing of the generated text
                    result = conn.exec_driver_sql(sql, execution_options={"no_parameters": True})
                    try:
                        labels = list(result.keys())
                        rows = []
                        for raw in result:
                            # Labels, not physical names; a repeated label keeps the last value
                            record = {}
                            for label, value in zip(labels, raw):
                                record[label] = _jsonable(value)
                            rows.append(record)
                    finally:
                        result.close()
        except (ArgumentError, ImportError) as e:
            # raised while building the engine when the dialect or its DBAPI module is not installed
            return self._connection_failure(e, start)
        except (DBAPIError, SQLAlchemyError) as e:
            elapsed = int((time.perf_counter() - start) * 1000)
            message = str(getattr(e, "orig", None) or e).strip()
            if errors.is_schema_not_found(message):
                category = NOT_FOUND
            elif errors.is_timeout_error(e):
                category = TIMED_OUT
            else:
                category = OTHER
            logger.warning("Query failed after %d ms (%s): %s", elapsed, category, message)
            return ExecutionResult(success=False, execution_time_ms=elapsed, error=message, error_category=category)

        elapsed = int((time.perf_counter() - start) * 1000)
        logger.info("Query executed in %d ms, %d rows", elapsed, len(rows))
        return ExecutionResult(success=True, rows=rows, row_count=len(rows), execution_time_ms=elapsed)

    def _connection_failure(self, e: Exception, start: float) -> ExecutionResult:
        elapsed = int((time.perf_counter() - start) * 1000)
        category, message = errors.classify_connection_error(e)
        logger.error("Connection to target database failed (%s): %s", category, e)
        return ExecutionResult(
            success=False,
            execution_time_ms=elapsed,
            error=message,
            error_category=CONNECTION_FAILED,
            connection_category=category,
        )
