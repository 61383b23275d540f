import pytest

from sqlchat.core.exceptions import SqlGenerationError
from sqlchat.domain.schema.models import Column, SchemaDocument, Table
from sqlchat.services.generation import SqlGenerationOrchestrator
from sqlchat.workflow.graph import create_generation_graph, route_after_validation


@pytest.fixture
def schema():
    users = Table(
        name="users",
        columns=[
            Column(name="id", type="INTEGER", nullable=False, ordinal_position=1),
            Column(name="name", type="TEXT", nullable=False, ordinal_position=2),
        ],
        primary_keys=["id"],
    )
    return SchemaDocument(database_type="sqlite", tables=[users])


def test_accepted_on_first_attempt(fake_llm, schema):
    client = fake_llm(responses=["```sql\nSELECT name FROM users;\n```"])

    generated = SqlGenerationOrchestrator(client, max_retries=2).generate("Show users", schema)

    assert generated.sql == "SELECT name FROM users"
    assert len(client.prompts) == 1
    assert len(generated.attempts) == 1


def test_retry_feeds_back_rejection(fake_llm, schema):
    client = fake_llm(responses=["DELETE FROM users", "SELECT name FROM users"])

    generated = SqlGenerationOrchestrator(client, max_retries=2).generate("Show users", schema)

    assert generated.sql == "SELECT name FROM users"
    assert len(client.prompts) == 2
    assert "PREVIOUS ERROR" not in client.prompts[0]
    assert "PREVIOUS ERROR" in client.prompts[1]
    assert [a["error"] is None for a in generated.attempts] == [False, True]


def test_exhausts_after_max_retries_plus_one(fake_llm, schema):
    client = fake_llm(responses=["DELETE FROM users"])

    with pytest.raises(SqlGenerationError) as excinfo:
        SqlGenerationOrchestrator(client, max_retries=2).generate("Remove everyone", schema)

    assert len(client.prompts) == 3
    assert excinfo.value.attempts == 3
    assert "after 3 attempts" in str(excinfo.value)


def test_zero_retries_means_single_attempt(fake_llm, schema):
    client = fake_llm(responses=["UPDATE users SET name = 'x'"])
    with pytest.raises(SqlGenerationError):
        SqlGenerationOrchestrator(client, max_retries=0).generate("Rename", schema)
    assert len(client.prompts) == 1


@pytest.mark.parametrize("state, route", [
    ({"accepted": True, "attempt": 0, "max_retries": 2}, "accepted"),
    ({"accepted": False, "attempt": 1, "max_retries": 2}, "retry"),
    ({"accepted": False, "attempt": 2, "max_retries": 2}, "retry"),
    ({"accepted": False, "attempt": 3, "max_retries": 2}, "exhausted"),
])
def test_route_after_validation(state, route):
    assert route_after_validation(state) == route


def test_graph_passes_run_config_to_nodes(fake_llm, schema):
    client = fake_llm(responses=["SELECT name FROM users"])
    graph = create_generation_graph()

    final_state = graph.invoke(
        {
            "question": "Show users",
            "schema": schema,
            "attempt": 0,
            "max_retries": 0,
            "candidate": None,
            "accepted": False,
            "last_error": None,
            "attempts": [],
        },
        config={"configurable": {"llm_client": client, "temperature": 0.0}},
    )

    assert final_state["accepted"]
    assert final_state["candidate"] == "SELECT name FROM users"
    assert len(client.prompts) == 1
