import pytest
from sqlalchemy import create_engine

from sqlchat.core.database import AppDatabase
from sqlchat.core.models import DatabaseConfig
from sqlchat.domain.executor import QueryExecutor
from sqlchat.services.ai_settings import AiSettingsService
from sqlchat.services.chat import ChatBotService
from sqlchat.services.conversation import ConversationTracker
from sqlchat.services.schema import SchemaService
from sqlchat.services.usage import UsageGovernor


class FakeLLMClient:
    """
    Stand-in for TextGenerationClient. Replays `responses` in order, repeating
    the last one; `stream` yields `chunks`.
    """
    def __init__(self, responses=None, chunks=None):
        self.responses = list(responses or [])
        self.chunks = list(chunks or [])
        self.prompts = []

    def complete(self, prompt, temperature):
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError("unexpected model call")
        return self.responses[min(len(self.prompts), len(self.responses)) - 1]

    def stream(self, prompt, temperature):
        self.prompts.append(prompt)
        for chunk in self.chunks:
            yield chunk


@pytest.fixture
def fake_llm():
    return FakeLLMClient


@pytest.fixture
def app_db(tmp_path):
    return AppDatabase(f"sqlite:///{tmp_path / 'app.db'}")


@pytest.fixture
def users_db(tmp_path):
    """SQLite target database with users(id, name, email)."""
    path = tmp_path / "target.db"
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        conn.exec_driver_sql("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT)")
        conn.exec_driver_sql(
            "INSERT INTO users (name, email) VALUES "
            "('Alice', 'alice@example.com'), ('Bob', 'bob@example.com')"
        )
    engine.dispose()
    return path


@pytest.fixture
def users_config(users_db):
    return DatabaseConfig(id=1, user_id=1, name="target", database_type="sqlite", file_path=str(users_db))


@pytest.fixture
def registered_config(app_db, users_db):
    """users_db registered for user 1 in the app database; returns its id."""
    with app_db.get_session() as session:
        config = DatabaseConfig(user_id=1, name="target", database_type="sqlite", file_path=str(users_db))
        session.add(config)
        session.commit()
        session.refresh(config)
        return config.id


@pytest.fixture
def build_service(app_db):
    """ChatBotService wired to the temporary app database and a given fake client."""
    def _build(client, executor=None, daily_limit=10):
        return ChatBotService(
            schema_service=SchemaService(app_db=app_db),
            executor=executor or QueryExecutor(),
            tracker=ConversationTracker(app_db=app_db),
            governor=UsageGovernor(app_db=app_db, daily_limit=daily_limit),
            ai_settings=AiSettingsService(app_db=app_db),
            client_factory=lambda ai_settings: client,
            max_retries=2,
            row_cap=50,
        )

    return _build
