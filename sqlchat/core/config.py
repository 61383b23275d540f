from typing import List
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global configuration.
    Each field is read from the environment variable of the same name first,
    then from `.env`.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application database (configs, cached schemas, sessions, turns, usage)
    APP_DB_URL: str = Field(
        default="sqlite:///./sqlchat.db",
        validation_alias=AliasChoices("APP_DB_URL", "DATABASE_URL"),
    )

    # LLM - shared demo tier
    DEMO_API_BASE: str = "https://openrouter.ai/api/v1"
    DEMO_API_KEY: str = ""
    DEMO_MODEL: str = "anthropic/claude-3.5-sonnet"

    # LLM - user supplied keys
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_MODEL_NAME: str = "gpt-4o-mini"
    ANTHROPIC_API_BASE: str = "https://api.anthropic.com/v1/"
    ANTHROPIC_MODEL_NAME: str = "claude-3-5-sonnet-latest"

    TEMPERATURE_QUERY: float = 0.1
    TEMPERATURE_ANSWER: float = 0.7
    MAX_TOKENS: int = 2000
    LLM_TIMEOUT: float = 60.0  # seconds

    # Pipeline
    MAX_RETRIES: int = 2
    RESULT_ROW_CAP: int = 50
    DAILY_QUERY_LIMIT: int = 10
    STRICT_MODE: bool = True
    SQL_PARSER_CHECK: bool = False

    # Target databases
    CONNECT_TIMEOUT: int = 10
    EXCLUDED_TABLES: List[str] = [
        "alembic_version",
        "flyway_schema_history",
        "databasechangelog",
        "databasechangeloglock",
        "schema_migrations",
    ]

    # Secrets at rest (Fernet key, urlsafe base64)
    ENCRYPTION_KEY: str = ""

    # API
    CORS_ORIGINS: List[str] = ["*"]


settings = Settings()
