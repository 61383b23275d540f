"""
Security gate for model-generated SQL.

`validate_sql` is a keyword blocklist plus a few structural checks, applied
before every execution. It is not a grammar check: stacked SELECTs pass it,
and a function named like a blocked word (REPLACE) is rejected. `parse_check`
is an optional stricter pass built on sqlglot that requires a single read-only
SELECT tree; it is off unless SQL_PARSER_CHECK is set.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional
import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from sqlchat.core.exceptions import SqlValidationError

logger = logging.getLogger(__name__)

EMPTY = "empty"
NOT_SELECT = "not-select"
MISSING_FROM = "missing-from"
FORBIDDEN_KEYWORD = "forbidden-keyword"
UNBALANCED_SYNTAX = "unbalanced-syntax"
PARSE_REJECTED = "parse-rejected"

FORBIDDEN_KEYWORDS = (
    "INSERT", "UPDATE", "DELETE", "DROP", "ALTER", "TRUNCATE", "CREATE",
    "REPLACE", "GRANT", "REVOKE", "EXEC", "EXECUTE", "CALL", "LOAD",
    "OUTFILE", "INFILE", "DUMPFILE", "MERGE",
)

SELECT_PATTERN = re.compile(r"^\s*SELECT\s+", re.IGNORECASE)
FROM_PATTERN = re.compile(r"\s+FROM\s+", re.IGNORECASE)
FORBIDDEN_PATTERN = re.compile(r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b", re.IGNORECASE)

_FENCE_PATTERN = re.compile(r"```(?:sql)?", re.IGNORECASE)
_LABEL_PATTERN = re.compile(r"^\s*SQL(?:Query)?\s*:\s*", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

_SQLGLOT_DIALECTS = {
    "mysql": "mysql",
    "postgresql": "postgres",
    "sqlserver": "tsql",
    "oracle": "oracle",
    "sqlite": "sqlite",
}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None
    keyword: Optional[str] = None
    message: str = ""

    def raise_if_invalid(self):
        if not self.valid:
            raise SqlValidationError(self.reason, self.message, self.keyword)


ACCEPTED = ValidationResult(valid=True)


def _reject(reason: str, message: str, keyword: Optional[str] = None) -> ValidationResult:
    return ValidationResult(valid=False, reason=reason, keyword=keyword, message=message)


def validate_sql(sql: Optional[str], strict: bool = True) -> ValidationResult:
    """
    Accept or reject a candidate query.

    Checks run in a fixed order and the first failure wins, so the same input
    always yields the same reason. With `strict=False` the keyword scan is
    skipped; the structural checks always run.
    """
    if sql is None or not sql.strip():
        return _reject(EMPTY, "Query is empty")

    if not SELECT_PATTERN.match(sql):
        return _reject(NOT_SELECT, "Only SELECT queries are allowed")

    if not FROM_PATTERN.search(sql):
        return _reject(MISSING_FROM, "Query must contain a FROM clause")

    if strict:
        match = FORBIDDEN_PATTERN.search(sql)
        if match:
            keyword = match.group(1).upper()
            return _reject(FORBIDDEN_KEYWORD, f"Forbidden keyword detected: {keyword}", keyword)

    if sql.count("'") % 2 != 0:
        return _reject(UNBALANCED_SYNTAX, "Unmatched single quote in query")
    if sql.count('"') % 2 != 0:
        return _reject(UNBALANCED_SYNTAX, "Unmatched double quote in query")
    if sql.count("(") != sql.count(")"):
        return _reject(UNBALANCED_SYNTAX, "Unmatched parentheses in query")

    return ACCEPTED


def parse_check(sql: str, dialect: Optional[str] = None) -> ValidationResult:
    """
    Stricter gate: the text must parse as exactly one SELECT (or set operation
    of SELECTs) with no data-changing node anywhere in the tree.
    """
    try:
        parsed = sqlglot.parse(sql, read=_SQLGLOT_DIALECTS.get(dialect or ""))
    except SqlglotError as e:
        logger.warning("SQL parse error: %s", e)
        return _reject(PARSE_REJECTED, "Query could not be parsed")

    statements = [s for s in parsed if s is not None]
    if len(statements) != 1:
        return _reject(PARSE_REJECTED, "Exactly one statement is allowed")

    statement = statements[0]
    if not isinstance(statement, (exp.Select, exp.Union, exp.Intersect, exp.Except)):
        return _reject(PARSE_REJECTED, f"Statement type {statement.key.upper()} is not allowed")

    nested = statement.find(exp.Insert, exp.Update, exp.Delete, exp.Drop, exp.Create, exp.Alter, exp.Command)
    if nested is not None:
        return _reject(PARSE_REJECTED, f"Nested {nested.key.upper()} is not allowed")

    return ACCEPTED


def check_sql(sql: Optional[str], strict: bool = True, parser_check: bool = False,
              dialect: Optional[str] = None) -> ValidationResult:
    result = validate_sql(sql, strict=strict)
    if result.valid and parser_check:
        return parse_check(sql, dialect)
    return result


def clean_query(raw: Optional[str]) -> str:
    """
    Normalize model output into a bare SQL string: drop markdown fences and a
    leading `SQL:` / `SQLQuery:` label, collapse whitespace, strip wrapping
    quotes and trailing semicolons.
    """
    if not raw:
        return ""
    text = _FENCE_PATTERN.sub("", raw)
    text = _LABEL_PATTERN.sub("", text.strip())
    text = _WHITESPACE.sub(" ", text).strip()

    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("\"", "'", "`"):
        text = text[1:-1].strip()

    return text.rstrip(";").strip()
