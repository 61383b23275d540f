from typing import List, Optional


class ChatBotError(Exception):
    """Base class for every error raised by the ask pipeline."""


class SqlValidationError(ChatBotError):
    """Candidate SQL was rejected by the security gate."""

    def __init__(self, reason: str, message: str, keyword: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.keyword = keyword


class SqlGenerationError(ChatBotError):
    """Every generation attempt was rejected."""

    def __init__(self, last_error: str, attempts: int):
        super().__init__(
            f"Failed to generate valid SQL after {attempts} attempts: {last_error}"
        )
        self.last_error = last_error
        self.attempts = attempts


class SchemaNotFoundError(ChatBotError):
    def __init__(self, token: Optional[str], available_tables: List[str], message: str = ""):
        super().__init__(message or f"Table or column not found: {token}")
        self.token = token
        self.available_tables = available_tables


class ConnectionFailedError(ChatBotError):
    def __init__(self, category: str, message: str):
        super().__init__(message)
        self.category = category


class QuotaExceededError(ChatBotError):
    def __init__(self, limit: int):
        super().__init__("Daily query limit exceeded")
        self.limit = limit


class GenerationTimeoutError(ChatBotError):
    pass


class LLMBackendError(ChatBotError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500


class LLMConfigurationError(ChatBotError):
    """The selected provider has no usable credentials."""


class UnsupportedDialectError(ChatBotError):
    def __init__(self, dialect: str):
        super().__init__(f"Unsupported database type: {dialect}")
        self.dialect = dialect


class DatabaseConfigNotFoundError(ChatBotError):
    def __init__(self, config_id: int):
        super().__init__(f"Database configuration not found: {config_id}")
        self.config_id = config_id


class SchemaExtractionError(ChatBotError):
    pass
