import pytest

from sqlchat.core.exceptions import SqlValidationError
from sqlchat.domain.sql_security import (
    FORBIDDEN_KEYWORDS,
    check_sql,
    clean_query,
    parse_check,
    validate_sql,
)


@pytest.mark.parametrize("sql", [
    "WITH x AS (SELECT 1) SELECT * FROM x",
    "SHOW TABLES",
    "  (SELECT name FROM users)",
    "EXPLAIN SELECT name FROM users",
    "-- comment\nSELECT name FROM users",
])
def test_rejects_anything_not_starting_with_select(sql):
    result = validate_sql(sql)
    assert not result.valid
    assert result.reason == "not-select"


@pytest.mark.parametrize("sql", ["", "   ", None])
def test_rejects_blank_input(sql):
    result = validate_sql(sql)
    assert not result.valid
    assert result.reason == "empty"


def test_requires_from_clause():
    result = validate_sql("SELECT 1")
    assert result.reason == "missing-from"


@pytest.mark.parametrize("keyword", FORBIDDEN_KEYWORDS)
def test_rejects_every_forbidden_keyword_as_whole_word(keyword):
    sql = f"SELECT name FROM users WHERE note = 'x' ; {keyword.lower()} something"
    result = validate_sql(sql)
    assert not result.valid
    assert result.reason == "forbidden-keyword"
    assert result.keyword == keyword


def test_forbidden_keyword_is_case_insensitive_inside_valid_select():
    result = validate_sql("SELECT name FROM users WHERE id IN (SELECT id FROM t); DrOp TABLE users")
    assert result.reason == "forbidden-keyword"
    assert result.keyword == "DROP"


def test_keyword_inside_identifier_is_not_a_match():
    assert validate_sql("SELECT updated_at, created_by FROM orders").valid
    assert validate_sql("SELECT name FROM deleted_items").valid


def test_non_strict_mode_skips_keyword_scan():
    assert validate_sql("SELECT REPLACE(name, 'a', 'b') FROM users", strict=False).valid
    assert not validate_sql("SELECT REPLACE(name, 'a', 'b') FROM users").valid


@pytest.mark.parametrize("sql", [
    "SELECT name FROM users WHERE name = 'Bob",
    'SELECT "name FROM users',
    "SELECT COUNT(* FROM users",
    "SELECT name) FROM users",
])
def test_rejects_unbalanced_quotes_and_parentheses(sql):
    result = validate_sql(sql)
    assert not result.valid
    assert result.reason == "unbalanced-syntax"


def test_validation_is_idempotent():
    for sql in ["SELECT name FROM users", "DELETE FROM users", "SELECT (1 FROM t", "SELECT 1"]:
        assert validate_sql(sql) == validate_sql(sql)


def test_raise_if_invalid_carries_reason_and_keyword():
    with pytest.raises(SqlValidationError) as info:
        validate_sql("SELECT * FROM users; TRUNCATE users").raise_if_invalid()
    assert info.value.reason == "forbidden-keyword"
    assert info.value.keyword == "TRUNCATE"


def test_parse_check_rejects_stacked_selects_the_blocklist_accepts():
    sql = "SELECT name FROM users; SELECT email FROM users"
    assert validate_sql(sql).valid
    result = check_sql(sql, parser_check=True)
    assert not result.valid
    assert result.reason == "parse-rejected"


def test_parse_check_accepts_plain_select_and_union():
    assert parse_check("SELECT name FROM users WHERE id > 3").valid
    assert parse_check("SELECT name FROM a UNION SELECT name FROM b").valid


@pytest.mark.parametrize("raw,expected", [
    ("```sql\nSELECT name\nFROM users\n```", "SELECT name FROM users"),
    ("SQL: SELECT name FROM users", "SELECT name FROM users"),
    ("SQLQuery:   SELECT  name   FROM users;", "SELECT name FROM users"),
    ('"SELECT name FROM users"', "SELECT name FROM users"),
    ("```\nSELECT name FROM users WHERE name = 'Bob'\n```", "SELECT name FROM users WHERE name = 'Bob'"),
    ("", ""),
])
def test_clean_query(raw, expected):
    assert clean_query(raw) == expected
