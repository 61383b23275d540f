"""
Prompt builders for SQL generation and answer synthesis.
"""
import json
from typing import Any, Dict, List, Optional

from sqlchat.core.dialects import get_dialect
from sqlchat.core.exceptions import UnsupportedDialectError
from sqlchat.domain.schema.models import SchemaDocument

# Columns the answer never shows unless the question asks for them
HIDDEN_COLUMNS = {"id", "created_at", "updated_at"}

GENERATION_TEMPLATE = """Generate a {dialect} SQL query that answers the question below.

=== AVAILABLE SCHEMA (ONLY USE THESE) ===
{schema}

=== RULES ===
- Output exactly one SELECT statement. Never INSERT, UPDATE, DELETE, or change the schema.
- Use ONLY the tables and columns listed above, spelled exactly as shown.
- Never select id columns unless the question explicitly asks for them; pick meaningful columns instead.
- Close every quote and parenthesis you open.
- {syntax_hint}.
- Return ONLY the SQL query, no markdown and no explanations.

=== EXAMPLES ===
{examples}
{previous_error}
=== QUESTION ===
"{question}"

SQL:"""

PREVIOUS_ERROR_TEMPLATE = """
=== PREVIOUS ERROR ===
The previous attempt was rejected: {error}
Fix it: produce a single valid SELECT using identifiers from AVAILABLE SCHEMA.
"""

ANSWER_TEMPLATE = """You are a friendly database assistant explaining query results.

=== CONTEXT ===
User question: "{question}"
SQL query executed: {sql}
Rows returned: {total}
Query results (JSON): {rows}

{instructions}"""

EMPTY_RESULT_INSTRUCTIONS = """=== SITUATION: NO RESULTS FOUND ===
1. Politely explain that no data matched.
2. Restate what the user was looking for.
3. Suggest specific alternatives: check spelling, broaden the criteria, or try a related question.
4. DO NOT invent data. Be honest that nothing was found."""

RESULT_INSTRUCTIONS = """=== SITUATION: RESULTS FOUND ===
1. Start with a short acknowledgment such as "Here's what I found:".
2. Present the data as a clean markdown table with capitalized headers.
3. Never show identifier columns (id, *_id, created_at, updated_at) unless the question asks for them.
4. Show at most {cap} rows.{overflow}
5. Keep it concise. Do not invent values that are not in the results."""


def _pick_columns(table, limit: int = 3) -> List[str]:
    cols = [c.name for c in table.columns if c.name.lower() != "id" and not c.name.lower().endswith("_id")]
    return cols[:limit] or [c.name for c in table.columns[:limit]] or ["*"]


def build_examples(schema: SchemaDocument) -> str:
    """Worked examples built from the real schema, so the model sees valid names."""
    if not schema.tables:
        return "(no tables)"

    try:
        dialect = get_dialect(schema.database_type)
    except UnsupportedDialectError:
        dialect = get_dialect("postgresql")

    first = schema.tables[0]
    examples = [
        f'Q: "How many {first.name} are there?"\nSQL: SELECT COUNT(*) AS total FROM {first.name}',
        f'Q: "Show some {first.name}"\nSQL: '
        + dialect.limit_example(first.name, ", ".join(_pick_columns(first)), 10),
    ]

    for table in schema.tables:
        if not table.foreign_keys:
            continue
        fk = table.foreign_keys[0]
        parent = schema.get_table(fk.referenced_table)
        if parent is None:
            continue
        child_cols = [f"c.{c}" for c in _pick_columns(table, 2) if c != "*"]
        parent_cols = [f"p.{c}" for c in _pick_columns(parent, 1) if c != "*"]
        select_list = ", ".join(child_cols + parent_cols) or "*"
        examples.append(
            f'Q: "Show {table.name} with their {parent.name}"\n'
            f"SQL: SELECT {select_list} FROM {table.name} c "
            f"JOIN {parent.name} p ON c.{fk.column} = p.{fk.referenced_column}"
        )
        break

    return "\n\n".join(examples)


def build_generation_prompt(question: str, schema: SchemaDocument, previous_error: Optional[str] = None) -> str:
    try:
        syntax_hint = get_dialect(schema.database_type).syntax_hint
    except UnsupportedDialectError:
        syntax_hint = "Use standard SQL"

    return GENERATION_TEMPLATE.format(
        dialect=schema.database_type.upper(),
        schema=schema.to_prompt_text(),
        syntax_hint=syntax_hint,
        examples=build_examples(schema),
        previous_error=PREVIOUS_ERROR_TEMPLATE.format(error=previous_error) if previous_error else "",
        question=question,
    )


def visible_rows(question: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop identifier and audit columns unless the question mentions ids."""
    if "id" in question.lower().split():
        return rows
    return [
        {k: v for k, v in row.items() if k.lower() not in HIDDEN_COLUMNS and not k.lower().endswith("_id")}
        for row in rows
    ]


def build_answer_prompt(question: str, sql: str, rows: List[Dict[str, Any]],
                        total: Optional[int] = None, cap: int = 50) -> str:
    total = len(rows) if total is None else total
    shown = visible_rows(question, rows[:cap])

    if not rows:
        instructions = EMPTY_RESULT_INSTRUCTIONS
    else:
        overflow = ""
        if total > cap:
            overflow = (f' There are {total} rows; show the first {cap} and say '
                        f'"Showing {cap} of {total} results (maximum display limit)."')
        instructions = RESULT_INSTRUCTIONS.format(cap=cap, overflow=overflow)

    return ANSWER_TEMPLATE.format(
        question=question,
        sql=sql,
        total=total,
        rows=json.dumps(shown, ensure_ascii=False, default=str),
        instructions=instructions,
    )
