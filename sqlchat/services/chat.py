"""
The ask pipeline: quota check, schema fetch, SQL generation, execution,
answer synthesis and turn persistence.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Union
from pydantic import BaseModel

from sqlchat.core.config import settings
from sqlchat.core.exceptions import (
    ChatBotError,
    ConnectionFailedError,
    DatabaseConfigNotFoundError,
    GenerationTimeoutError,
    LLMBackendError,
    LLMConfigurationError,
    QuotaExceededError,
    SchemaExtractionError,
    SchemaNotFoundError,
    SqlGenerationError,
    SqlValidationError,
    UnsupportedDialectError,
)
from sqlchat.core.llm import TextGenerationClient
from sqlchat.domain import errors
from sqlchat.domain import executor as execution
from sqlchat.domain.executor import QueryExecutor
from sqlchat.domain.intent import handle_non_database_question
from sqlchat.services.ai_settings import AiSettingsService
from sqlchat.services.answer import AnswerSynthesizer
from sqlchat.services.conversation import ConversationTracker
from sqlchat.services.generation import SqlGenerationOrchestrator
from sqlchat.services.schema import SchemaService
from sqlchat.services.usage import UsageGovernor

logger = logging.getLogger(__name__)


class ChatResponse(BaseModel):
    success: bool
    question: str
    sql_query: Optional[str] = None
    result_rows: Optional[List[Dict[str, Any]]] = None
    answer: str
    error: Optional[str] = None
    session_id: Optional[str] = None


@dataclass
class _Prepared:
    """Everything needed to synthesize an answer once the query has run."""
    user_id: int
    config_id: int
    session_id: str
    question: str
    sql: str
    rows: List[Dict[str, Any]]
    row_count: int
    demo: bool
    synthesizer: AnswerSynthesizer


class ChatBotService:
    def __init__(
        self,
        schema_service: Optional[SchemaService] = None,
        executor: Optional[QueryExecutor] = None,
        tracker: Optional[ConversationTracker] = None,
        governor: Optional[UsageGovernor] = None,
        ai_settings: Optional[AiSettingsService] = None,
        client_factory: Optional[Callable[[Any], Any]] = None,
        max_retries: Optional[int] = None,
        row_cap: Optional[int] = None,
    ):
        self.schema_service = schema_service or SchemaService()
        self.executor = executor or QueryExecutor()
        self.tracker = tracker or ConversationTracker()
        self.governor = governor or UsageGovernor()
        self.ai_settings = ai_settings or AiSettingsService()
        self.client_factory = client_factory or TextGenerationClient
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.row_cap = settings.RESULT_ROW_CAP if row_cap is None else row_cap

    # --- helpers ---

    def _fail(self, user_id, config_id, session_id, question, answer, error, sql=None) -> ChatResponse:
        self.tracker.save_turn(
            user_id=user_id,
            database_config_id=config_id,
            session_id=session_id,
            question=question,
            sql_query=sql,
            answer=answer,
            error_message=error,
        )
        return ChatResponse(
            success=False,
            question=question,
            sql_query=sql,
            answer=answer,
            error=error,
            session_id=session_id,
        )

    def _translate_failure(self, e: Exception) -> tuple:
        """(answer, error) for an exception raised anywhere in the pipeline."""
        if isinstance(e, QuotaExceededError):
            answer = (
                f"You have exceeded your daily limit of {e.limit} queries on the demo tier. "
                "Add your own API key in AI settings or try again tomorrow."
            )
            return answer, str(e)
        if isinstance(e, SchemaNotFoundError):
            return errors.schema_not_found_message(e.token, e.available_tables), str(e)
        if isinstance(e, GenerationTimeoutError) or errors.is_timeout_error(e):
            return errors.TIMEOUT_MESSAGE, "Request timed out"
        if isinstance(e, ConnectionFailedError):
            return f"I couldn't reach your database. {e}", str(e)
        if isinstance(e, SqlGenerationError):
            return errors.validation_failure_message(None), str(e)
        if isinstance(e, SqlValidationError):
            return errors.validation_failure_message(e.reason, e.keyword), str(e)
        if isinstance(e, LLMBackendError):
            return f"The AI service could not answer right now: {e}", str(e)
        if isinstance(e, LLMConfigurationError):
            return f"{e}. Please check your AI settings.", str(e)
        if isinstance(e, DatabaseConfigNotFoundError):
            return "I couldn't find that database connection. Please select a database first.", str(e)
        if isinstance(e, UnsupportedDialectError):
            return f"{e}. Please check the database configuration.", str(e)
        if isinstance(e, SchemaExtractionError):
            return f"I couldn't read the structure of your database. {e}", str(e)
        if isinstance(e, ChatBotError):
            return str(e), str(e)
        logger.error("Unexpected error while answering question: %s", e, exc_info=True)
        return errors.GENERIC_ERROR_MESSAGE, f"Error: {e}"

    def _raise_for_execution(self, result, schema):
        if result.error_category == execution.NOT_FOUND:
            token = errors.extract_missing_identifier(result.error)
            raise SchemaNotFoundError(token, schema.table_names(), message=result.error)
        if result.error_category == execution.CONNECTION_FAILED:
            raise ConnectionFailedError(result.connection_category, result.error)
        if result.error_category == execution.TIMED_OUT:
            raise GenerationTimeoutError(result.error)
        if result.error_category == execution.SECURITY_REJECTED:
            raise SqlValidationError(None, result.error)
        raise ChatBotError(f"The query could not be executed: {result.error}")

    def _prepare(self, question: str, config_id: int, user_id: int) -> Union[ChatResponse, _Prepared]:
        """
        Runs the pipeline up to answer synthesis. Returns a finished
        ChatResponse on every early exit.
        """
        question = (question or "").strip()
        if not question:
            return self._fail(user_id, config_id, None, "", "Please ask a question.", "Question cannot be empty")

        canned = handle_non_database_question(question)
        if canned is not None:
            self.tracker.save_turn(user_id, config_id, None, question, answer=canned, is_greeting=True)
            return ChatResponse(success=True, question=question, answer=canned)

        session_id = None
        sql = None
        try:
            ai_settings = self.ai_settings.get_settings(user_id)
            demo = ai_settings.is_using_demo_mode()
            if demo and self.governor.has_exceeded_limit(user_id):
                logger.warning("User %s exceeded the demo daily limit", user_id)
                raise QuotaExceededError(self.governor.daily_limit)

            config = self.schema_service.get_config(config_id, user_id)
            session_id = self.tracker.get_or_create_session(user_id, config_id)
            schema = self.schema_service.get_schema(config)

            client = self.client_factory(ai_settings)
            generated = SqlGenerationOrchestrator(client, max_retries=self.max_retries).generate(question, schema)
            sql = generated.sql

            result = self.executor.execute(config, sql)
            if not result.success:
                self._raise_for_execution(result, schema)
        except Exception as e:
            if isinstance(e, SqlValidationError):
                # rejected SQL is never stored or shown
                sql = None
            answer, error = self._translate_failure(e)
            return self._fail(user_id, config_id, session_id, question, answer, error, sql=sql)

        return _Prepared(
            user_id=user_id,
            config_id=config_id,
            session_id=session_id,
            question=question,
            sql=sql,
            rows=result.rows,
            row_count=result.row_count,
            demo=demo,
            synthesizer=AnswerSynthesizer(client, row_cap=self.row_cap),
        )

    def _complete(self, prepared: _Prepared, answer: str) -> ChatResponse:
        if prepared.demo:
            try:
                self.governor.increment(prepared.user_id)
            except Exception as e:
                logger.error("Failed to record demo usage: %s", e, exc_info=True)

        shown = prepared.rows[:self.row_cap]
        self.tracker.save_turn(
            user_id=prepared.user_id,
            database_config_id=prepared.config_id,
            session_id=prepared.session_id,
            question=prepared.question,
            sql_query=prepared.sql,
            sql_result=shown,
            answer=answer,
        )
        return ChatResponse(
            success=True,
            question=prepared.question,
            sql_query=prepared.sql,
            result_rows=shown,
            answer=answer,
            session_id=prepared.session_id,
        )

    # --- public API ---

    def ask(self, question: str, database_config_id: int, user_id: int) -> ChatResponse:
        prepared = self._prepare(question, database_config_id, user_id)
        if isinstance(prepared, ChatResponse):
            return prepared

        try:
            answer = prepared.synthesizer.synthesize(
                prepared.question, prepared.sql, prepared.rows, total=prepared.row_count
            )
        except Exception as e:
            answer, error = self._translate_failure(e)
            return self._fail(user_id, database_config_id, prepared.session_id, prepared.question,
                              answer, error, sql=prepared.sql)

        return self._complete(prepared, answer)

    def ask_stream(self, question: str, database_config_id: int, user_id: int) -> Iterator[str]:
        """
        Same pipeline as `ask`, but the answer arrives as text fragments.
        Early exits yield their whole answer as one fragment. The full streamed
        text is persisted once the stream finishes.
        """
        prepared = self._prepare(question, database_config_id, user_id)
        if isinstance(prepared, ChatResponse):
            yield prepared.answer
            return

        parts = []
        try:
            for fragment in prepared.synthesizer.stream(
                prepared.question, prepared.sql, prepared.rows, total=prepared.row_count
            ):
                parts.append(fragment)
                yield fragment
        except GeneratorExit:
            # consumer went away mid-stream
            self._fail(user_id, database_config_id, prepared.session_id, prepared.question,
                       "".join(parts), "Stream cancelled", sql=prepared.sql)
            raise
        except Exception as e:
            answer, error = self._translate_failure(e)
            self._fail(user_id, database_config_id, prepared.session_id, prepared.question,
                       "".join(parts) or answer, error, sql=prepared.sql)
            yield ("\n\n" if parts else "") + answer
            return

        self._complete(prepared, "".join(parts))

    def history_by_user(self, user_id: int, limit: Optional[int] = None):
        return self.tracker.history_by_user(user_id, limit)

    def history_by_session(self, session_id: str):
        return self.tracker.history_by_session(session_id)
