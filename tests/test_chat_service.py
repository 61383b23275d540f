import json
import re
from datetime import date

from sqlchat.core.models import DemoQueryUsage
from sqlchat.domain import executor as execution
from sqlchat.domain.executor import ExecutionResult
from sqlchat.domain.intent import GREETING_REPLY


class FailingExecutor:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def execute(self, config, sql):
        self.calls.append(sql)
        return self.result


def _answer_rows(prompt):
    payload = prompt.split("Query results (JSON): ", 1)[1].split("\n", 1)[0]
    return json.loads(payload)


def test_show_all_users(build_service, fake_llm, registered_config):
    client = fake_llm(responses=["SELECT * FROM users", "Here's what I found: Alice and Bob."])
    service = build_service(client)

    response = service.ask("Show all users", registered_config, 1)

    assert response.success
    assert re.match(r"^SELECT .*FROM users", response.sql_query)
    assert [r["name"] for r in response.result_rows] == ["Alice", "Bob"]
    assert all("email" in r for r in response.result_rows)
    assert not re.search(r"\bid\b", response.answer)
    assert all("id" not in row for row in _answer_rows(client.prompts[1]))
    assert response.session_id


def test_successful_turn_is_persisted_and_counted(build_service, fake_llm, registered_config):
    service = build_service(fake_llm(responses=["SELECT name FROM users", "Two users."]))

    response = service.ask("Show all users", registered_config, 1)

    history = service.history_by_user(1)
    assert len(history) == 1
    assert history[0].sql_query == "SELECT name FROM users"
    assert history[0].sql_result == [{"name": "Alice"}, {"name": "Bob"}]
    assert history[0].session_id == response.session_id
    assert service.governor.current_count(1) == 1


def test_own_api_key_is_not_counted(build_service, fake_llm, registered_config):
    service = build_service(fake_llm(responses=["SELECT name FROM users", "Two users."]))
    service.ai_settings.update_settings(1, "openai", api_key="sk-test")

    assert service.ask("Show all users", registered_config, 1).success
    assert service.governor.current_count(1) == 0


def test_quota_exhausted_makes_no_model_call(build_service, fake_llm, registered_config, app_db):
    with app_db.get_session() as session:
        session.add(DemoQueryUsage(user_id=1, usage_date=date.today(), query_count=10))
        session.commit()
    client = fake_llm()
    service = build_service(client)

    response = service.ask("Show all users", registered_config, 1)

    assert not response.success
    assert response.error == "Daily query limit exceeded"
    assert "exceeded" in response.answer
    assert client.prompts == []
    assert service.governor.current_count(1) == 10


def test_missing_column_names_token_and_tables(build_service, fake_llm, registered_config):
    executor = FailingExecutor(ExecutionResult(
        success=False,
        error="Unknown column 'foo' in 'field list'",
        error_category=execution.NOT_FOUND,
    ))
    client = fake_llm(responses=["SELECT foo FROM users"])
    service = build_service(client, executor=executor)

    response = service.ask("Show the foo of every user", registered_config, 1)

    assert not response.success
    assert "foo" in response.answer
    assert "users" in response.answer
    assert len(client.prompts) == 1
    assert service.governor.current_count(1) == 0
    assert service.history_by_user(1)[0].error_message == "Unknown column 'foo' in 'field list'"


def test_generation_exhaustion_is_reported_politely(build_service, fake_llm, registered_config):
    client = fake_llm(responses=["DELETE FROM users"])
    service = build_service(client)

    response = service.ask("Delete everyone", registered_config, 1)

    assert not response.success
    assert "after 3 attempts" in response.error
    assert "rephrase" in response.answer
    assert len(client.prompts) == 3


def test_greeting_skips_pipeline(build_service, fake_llm, registered_config):
    client = fake_llm()
    service = build_service(client)

    response = service.ask("hello", registered_config, 1)

    assert response.success
    assert response.answer == GREETING_REPLY
    assert client.prompts == []
    assert service.history_by_user(1)[0].is_greeting


def test_empty_question(build_service, fake_llm, registered_config):
    response = build_service(fake_llm()).ask("   ", registered_config, 1)
    assert not response.success
    assert response.error == "Question cannot be empty"


def test_unknown_database_config(build_service, fake_llm, registered_config):
    response = build_service(fake_llm()).ask("Show all users", 999, 1)
    assert not response.success
    assert "couldn't find that database" in response.answer


def test_other_users_config_is_not_found(build_service, fake_llm, registered_config):
    response = build_service(fake_llm()).ask("Show all users", registered_config, 2)
    assert not response.success
    assert "couldn't find that database" in response.answer


def test_follow_up_questions_share_a_session(build_service, fake_llm, registered_config):
    service = build_service(fake_llm(responses=[
        "SELECT name FROM users", "Two users.", "SELECT name FROM users", "Two users.",
    ]))

    first = service.ask("Show all users", registered_config, 1)
    second = service.ask("Show all users again", registered_config, 1)

    assert first.session_id == second.session_id
    assert len(service.history_by_session(first.session_id)) == 2


def test_stream_persists_full_answer(build_service, fake_llm, registered_config):
    client = fake_llm(responses=["SELECT name, email FROM users"], chunks=["Here's ", "what ", "I found."])
    service = build_service(client)

    fragments = list(service.ask_stream("Show all users", registered_config, 1))

    assert fragments == ["Here's ", "what ", "I found."]
    turn = service.history_by_user(1)[0]
    assert turn.answer == "Here's what I found."
    assert turn.error_message is None
    assert service.governor.current_count(1) == 1


def test_stream_early_exit_yields_whole_answer(build_service, fake_llm, registered_config):
    fragments = list(build_service(fake_llm()).ask_stream("hi", registered_config, 1))
    assert fragments == [GREETING_REPLY]


def test_cancelled_stream_is_recorded(build_service, fake_llm, registered_config):
    client = fake_llm(responses=["SELECT name FROM users"], chunks=["Here's ", "what ", "I found."])
    service = build_service(client)

    stream = service.ask_stream("Show all users", registered_config, 1)
    assert next(stream) == "Here's "
    stream.close()

    turn = service.history_by_user(1)[0]
    assert turn.answer == "Here's "
    assert turn.error_message == "Stream cancelled"
    assert service.governor.current_count(1) == 0


def test_empty_question_is_still_recorded(build_service, fake_llm, registered_config):
    service = build_service(fake_llm())
    service.ask("", registered_config, 1)
    assert service.history_by_user(1)[0].error_message == "Question cannot be empty"


def test_unreachable_database_answer(build_service, fake_llm, registered_config):
    executor = FailingExecutor(ExecutionResult(
        success=False,
        error="Cannot connect to database server. Please check host and port",
        error_category=execution.CONNECTION_FAILED,
        connection_category="host-unreachable",
    ))
    response = build_service(fake_llm(responses=["SELECT name FROM users"]), executor=executor).ask(
        "Show all users", registered_config, 1)

    assert not response.success
    assert response.answer.startswith("I couldn't reach your database.")
    assert response.sql_query == "SELECT name FROM users"


def test_security_rejected_execution_keeps_no_sql(build_service, fake_llm, registered_config):
    executor = FailingExecutor(ExecutionResult(
        success=False,
        error="Only SELECT queries are allowed",
        error_category=execution.SECURITY_REJECTED,
    ))
    service = build_service(fake_llm(responses=["SELECT name FROM users"]), executor=executor)
    response = service.ask("Show all users", registered_config, 1)

    assert not response.success
    assert response.sql_query is None
    turn = service.history_by_user(1)[0]
    assert turn.sql_query is None
    assert turn.error_message == "Only SELECT queries are allowed"
