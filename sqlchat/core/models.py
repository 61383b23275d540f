from datetime import date, datetime, timezone
from typing import Optional
from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel, JSON


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DatabaseConfig(SQLModel, table=True):
    """A user's registered target database. Written by the config store, read here."""
    __tablename__ = "database_configs"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    name: str
    database_type: str = Field(default="mysql")  # mysql, postgresql, sqlserver, oracle, h2, sqlite
    host: Optional[str] = None
    port: Optional[int] = None
    database_name: Optional[str] = None
    schema_name: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None  # In prod, this should be encrypted
    file_path: Optional[str] = None  # file based dialects
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class DatabaseSchema(SQLModel, table=True):
    __tablename__ = "database_schemas"

    id: Optional[int] = Field(default=None, primary_key=True)
    database_config_id: int = Field(index=True, unique=True, foreign_key="database_configs.id")
    schema_json: str
    extracted_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class ConversationSession(SQLModel, table=True):
    __tablename__ = "conversation_sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(index=True, unique=True)
    user_id: int = Field(index=True)
    database_config_id: int
    started_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    last_activity_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    is_active: bool = Field(default=True)


class Conversation(SQLModel, table=True):
    """One persisted question/answer turn. Append-only."""
    __tablename__ = "conversations"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    database_config_id: Optional[int] = None
    session_id: Optional[str] = Field(default=None, index=True)
    question: str
    sql_query: Optional[str] = None
    sql_result: Optional[list] = Field(default=None, sa_type=JSON)
    answer: Optional[str] = None
    is_greeting: bool = Field(default=False)
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class DemoQueryUsage(SQLModel, table=True):
    __tablename__ = "demo_query_usage"
    __table_args__ = (UniqueConstraint("user_id", "usage_date", name="uq_demo_usage_user_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    usage_date: date
    query_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class UserAiSettings(SQLModel, table=True):
    __tablename__ = "user_ai_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, unique=True)
    provider: str = Field(default="demo")  # demo, openai, claude
    model: Optional[str] = Field(default="anthropic/claude-3.5-sonnet")
    api_key_encrypted: Optional[str] = None  # Fernet token, see core/security.py
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    def has_api_key(self) -> bool:
        return bool(self.api_key_encrypted)

    def is_using_demo_mode(self) -> bool:
        return (self.provider or "demo").lower() == "demo"
