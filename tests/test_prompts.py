import json

from sqlchat.domain.prompts import build_answer_prompt, build_examples, build_generation_prompt, visible_rows
from sqlchat.domain.schema.models import Column, ForeignKeyEdge, SchemaDocument, Table


def _schema(database_type="mysql"):
    customers = Table(
        name="customers",
        columns=[
            Column(name="id", type="INT", nullable=False, ordinal_position=1),
            Column(name="name", type="VARCHAR", ordinal_position=2),
            Column(name="city", type="VARCHAR", ordinal_position=3),
        ],
        primary_keys=["id"],
    )
    orders = Table(
        name="orders",
        columns=[
            Column(name="id", type="INT", nullable=False, ordinal_position=1),
            Column(name="customer_id", type="INT", ordinal_position=2),
            Column(name="total", type="DECIMAL", ordinal_position=3),
        ],
        primary_keys=["id"],
        foreign_keys=[ForeignKeyEdge(column="customer_id", referenced_table="customers", referenced_column="id")],
    )
    return SchemaDocument(database_name="shop", database_type=database_type, tables=[customers, orders])


def test_generation_prompt_lists_schema_and_question():
    prompt = build_generation_prompt("How many orders?", _schema())

    assert "Table: customers" in prompt
    assert "FK: customer_id -> customers.id" in prompt
    assert '"How many orders?"' in prompt
    assert "PREVIOUS ERROR" not in prompt
    assert prompt.rstrip().endswith("SQL:")


def test_generation_prompt_carries_previous_error():
    prompt = build_generation_prompt("How many orders?", _schema(), previous_error="Query must start with SELECT")
    assert "=== PREVIOUS ERROR ===" in prompt
    assert "Query must start with SELECT" in prompt


def test_examples_follow_dialect_limit_syntax():
    assert "SELECT TOP 10 name, city FROM customers" in build_examples(_schema("sqlserver"))
    assert "FETCH FIRST 10 ROWS ONLY" in build_examples(_schema("oracle"))
    assert "LIMIT 10" in build_examples(_schema("mysql"))


def test_examples_join_along_foreign_key():
    examples = build_examples(_schema())
    assert "JOIN customers p ON c.customer_id = p.id" in examples


def test_examples_for_empty_schema():
    assert build_examples(SchemaDocument(database_type="mysql")) == "(no tables)"


def test_visible_rows_drop_identifier_columns():
    rows = [{"id": 1, "customer_id": 3, "name": "Alice", "created_at": "x", "updated_at": "y"}]
    assert visible_rows("Show all customers", rows) == [{"name": "Alice"}]


def test_visible_rows_keep_ids_when_asked():
    rows = [{"id": 1, "name": "Alice"}]
    assert visible_rows("show the id of each customer", rows) == rows


def test_answer_prompt_for_empty_result():
    prompt = build_answer_prompt("Show customers in Paris", "SELECT name FROM customers WHERE city = 'Paris'", [])
    assert "NO RESULTS FOUND" in prompt
    assert "Rows returned: 0" in prompt


def test_answer_prompt_caps_rows_and_mentions_overflow():
    rows = [{"id": i, "name": f"c{i}"} for i in range(60)]
    prompt = build_answer_prompt("Show all customers", "SELECT * FROM customers", rows, total=60, cap=50)

    payload = prompt.split("Query results (JSON): ", 1)[1].split("\n", 1)[0]
    shown = json.loads(payload)
    assert len(shown) == 50
    assert all("id" not in row for row in shown)
    assert "Showing 50 of 60 results" in prompt
