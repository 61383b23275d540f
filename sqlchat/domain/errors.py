"""
Classification of driver and backend failures into the categories the chat
layer reports to users. Matching is done on error text and type names, so it
is best effort: drivers word the same failure differently.
"""
import re
from typing import Iterator, List, Optional, Tuple

AUTH_FAILED = "auth-failed"
UNKNOWN_DATABASE = "unknown-database"
HOST_UNREACHABLE = "host-unreachable"
TIMEOUT = "timeout"
DRIVER_MISSING = "driver-missing"
OTHER = "other"

_AUTH_PHRASES = ("access denied", "password authentication failed", "login failed", "ora-01017")
_UNREACHABLE_PHRASES = (
    "communications link failure",
    "connection refused",
    "can't connect",
    "could not connect",
    "could not translate host name",
    "name or service not known",
    "unable to open database file",
    "adaptive server is unavailable",
)
_DRIVER_PHRASES = ("no suitable driver", "can't load plugin", "no module named")
_TIMEOUT_PHRASES = ("timeout", "timed out")

_UNKNOWN_DB_PATTERNS = (
    re.compile(r"Unknown database '([^']+)'", re.IGNORECASE),
    re.compile(r'database "([^"]+)" does not exist', re.IGNORECASE),
    re.compile(r'Cannot open database "([^"]+)"', re.IGNORECASE),
)

_MISSING_IDENTIFIER_PATTERNS = (
    re.compile(r"Unknown column '([^']+)'", re.IGNORECASE),
    re.compile(r"Table '([^']+)' doesn't exist", re.IGNORECASE),
    re.compile(r"no such table: ([\w.]+)", re.IGNORECASE),
    re.compile(r"no such column: ([\w.]+)", re.IGNORECASE),
    re.compile(r'(?:column|relation) "([^"]+)" does not exist', re.IGNORECASE),
    re.compile(r"Invalid (?:column|object) name '([^']+)'", re.IGNORECASE),
    re.compile(r'"([^"]+)": invalid identifier', re.IGNORECASE),
    re.compile(r"(?:Column|Table) \"?([\w.]+)\"? not found", re.IGNORECASE),
)

_NOT_FOUND_PHRASES = (
    "unknown column",
    "doesn't exist",
    "does not exist",
    "no such table",
    "no such column",
    "invalid column name",
    "invalid object name",
    "invalid identifier",
    "not found",
)


def iter_causes(exc: Optional[BaseException]) -> Iterator[BaseException]:
    """Walk an exception and everything it was raised from or during."""
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__ or exc.__context__


def is_timeout_error(exc: Optional[BaseException]) -> bool:
    for e in iter_causes(exc):
        if isinstance(e, TimeoutError) or "timeout" in type(e).__name__.lower():
            return True
        text = str(e).lower()
        if any(p in text for p in _TIMEOUT_PHRASES):
            return True
    return False


def _chain_text(exc: BaseException) -> str:
    return " | ".join(f"{type(e).__name__}: {e}" for e in iter_causes(exc))


def classify_connection_error(exc: BaseException) -> Tuple[str, str]:
    """
    Map a connection failure to (category, human readable message).
    """
    text = _chain_text(exc)
    lowered = text.lower()

    if any(p in lowered for p in _AUTH_PHRASES):
        return AUTH_FAILED, "Authentication failed: invalid username or password"

    for pattern in _UNKNOWN_DB_PATTERNS:
        match = pattern.search(text)
        if match:
            return UNKNOWN_DATABASE, f"Database '{match.group(1)}' does not exist"
    if "unknown database" in lowered:
        return UNKNOWN_DATABASE, "Database does not exist"

    if any(p in lowered for p in _UNREACHABLE_PHRASES):
        return HOST_UNREACHABLE, "Cannot connect to database server. Please check host and port"

    if is_timeout_error(exc):
        return TIMEOUT, "Connection timeout. Database server is not responding"

    if "nosuchmoduleerror" in lowered or any(p in lowered for p in _DRIVER_PHRASES):
        return DRIVER_MISSING, "Database driver not found for this database type"

    first_line = str(exc).strip().splitlines()[0] if str(exc).strip() else type(exc).__name__
    return OTHER, first_line


def is_schema_not_found(message: Optional[str]) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(p in lowered for p in _NOT_FOUND_PHRASES)


def extract_missing_identifier(message: Optional[str]) -> Optional[str]:
    if not message:
        return None
    for pattern in _MISSING_IDENTIFIER_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


def schema_not_found_message(token: Optional[str], available_tables: List[str]) -> str:
    subject = f"'{token}'" if token else "a table or column your question refers to"
    lines = [f"I couldn't find {subject} in this database."]
    if available_tables:
        lines.append("Available tables: " + ", ".join(available_tables) + ".")
        lines.append("Try rephrasing your question using one of these tables.")
    else:
        lines.append("The database does not seem to contain any tables yet.")
    return "\n".join(lines)


def validation_failure_message(reason: Optional[str], keyword: Optional[str] = None) -> str:
    if reason == "forbidden-keyword" and keyword:
        return (
            f"I can only run read-only queries, and the generated query contained '{keyword}'. "
            "Please ask a question that reads data instead of changing it."
        )
    return (
        "I wasn't able to build a safe SELECT query for that question. "
        "Could you rephrase it or be more specific about the data you want?"
    )


TIMEOUT_MESSAGE = (
    "The request took too long and timed out. Please try again, or ask a simpler question."
)

GENERIC_ERROR_MESSAGE = "Sorry, something went wrong while answering your question. Please try again."
