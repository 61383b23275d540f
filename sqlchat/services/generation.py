import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlchat.core.config import settings
from sqlchat.core.exceptions import SqlGenerationError
from sqlchat.workflow.graph import create_generation_graph

logger = logging.getLogger(__name__)

_graph_app = None


def get_generation_graph():
    global _graph_app
    if not _graph_app:
        logger.info("Initializing generation graph...")
        _graph_app = create_generation_graph()
    return _graph_app


@dataclass
class GeneratedQuery:
    sql: str
    attempts: List[dict] = field(default_factory=list)


class SqlGenerationOrchestrator:
    """
    Drives generate -> validate with feedback until a candidate is accepted or
    max_retries + 1 attempts have been rejected.
    """
    def __init__(self, llm_client, max_retries: Optional[int] = None,
                 strict: Optional[bool] = None, parser_check: Optional[bool] = None):
        self.llm_client = llm_client
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.strict = settings.STRICT_MODE if strict is None else strict
        self.parser_check = settings.SQL_PARSER_CHECK if parser_check is None else parser_check

    def generate(self, question: str, schema) -> GeneratedQuery:
        config = {
            "configurable": {
                "llm_client": self.llm_client,
                "temperature": settings.TEMPERATURE_QUERY,
                "strict": self.strict,
                "parser_check": self.parser_check,
            },
            # two steps per attempt plus slack
            "recursion_limit": 2 * (self.max_retries + 1) + 5,
        }
        inputs = {
            "question": question,
            "schema": schema,
            "attempt": 0,
            "max_retries": self.max_retries,
            "candidate": None,
            "accepted": False,
            "last_error": None,
            "attempts": [],
        }

        final_state = get_generation_graph().invoke(inputs, config=config)

        if not final_state.get("accepted"):
            attempts = self.max_retries + 1
            logger.error("SQL generation exhausted after %d attempts: %s", attempts, final_state.get("last_error"))
            raise SqlGenerationError(final_state.get("last_error") or "unknown error", attempts)

        return GeneratedQuery(sql=final_state["candidate"], attempts=final_state.get("attempts", []))
