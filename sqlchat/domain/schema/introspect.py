import logging
from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import inspect

from sqlchat.core.config import settings
from sqlchat.core.database import open_target_engine
from sqlchat.core.dialects import get_dialect
from sqlchat.core.exceptions import SchemaExtractionError, UnsupportedDialectError
from sqlchat.domain.errors import classify_connection_error
from sqlchat.domain.schema.models import Column, ForeignKeyEdge, Index, SchemaDocument, Table

logger = logging.getLogger(__name__)

_KNOWN_RULES = {"CASCADE", "SET NULL", "SET DEFAULT", "RESTRICT", "NO ACTION"}


def _rule(value: Optional[str]) -> str:
    if not value:
        return "NO ACTION"
    normalized = " ".join(str(value).upper().split())
    return normalized if normalized in _KNOWN_RULES else "UNKNOWN"


def _column_size(col_type) -> Optional[int]:
    for attr in ("length", "precision"):
        value = getattr(col_type, attr, None)
        if isinstance(value, int):
            return value
    return None


def _type_name(col_type) -> str:
    try:
        return str(col_type)
    except Exception:
        # Some reflected types (NullType, dialect specific) cannot compile without a dialect
        return type(col_type).__name__.upper()


class SchemaIntrospector:
    """
    Reads a target database's metadata into a SchemaDocument.
    Any failure aborts the whole extraction; the connection is always released.
    """
    def __init__(self, excluded_tables: Optional[List[str]] = None):
        excluded = settings.EXCLUDED_TABLES if excluded_tables is None else excluded_tables
        self.excluded_tables = {t.lower() for t in excluded}

    def extract(self, config) -> SchemaDocument:
        dialect = get_dialect(config.database_type)
        scope = dialect.metadata_scope(config)
        logger.info("Extracting schema for %s database '%s' (scope=%s)",
                    dialect.name, config.database_name or config.file_path, scope)

        try:
            with open_target_engine(config) as engine:
                inspector = inspect(engine)
                tables = [
                    self._extract_table(inspector, name, scope)
                    for name in inspector.get_table_names(schema=scope)
                    if name.lower() not in self.excluded_tables
                ]
        except UnsupportedDialectError:
            raise
        except Exception as e:
            category, message = classify_connection_error(e)
            logger.error("Schema extraction failed (%s): %s", category, e)
            raise SchemaExtractionError(f"Failed to extract schema: {message}") from e

        logger.info("Extracted %d tables", len(tables))
        return SchemaDocument(
            database_name=config.database_name,
            database_type=dialect.name,
            extracted_at=datetime.now(timezone.utc),
            tables=tables,
        )

    def _extract_table(self, inspector, table_name: str, scope: Optional[str]) -> Table:
        columns = [
            Column(
                name=col["name"],
                type=_type_name(col["type"]),
                size=_column_size(col["type"]),
                nullable=bool(col.get("nullable", True)),
                default_value=None if col.get("default") is None else str(col["default"]),
                ordinal_position=position,
                remarks=col.get("comment"),
            )
            for position, col in enumerate(inspector.get_columns(table_name, schema=scope), start=1)
        ]

        pk = inspector.get_pk_constraint(table_name, schema=scope) or {}
        primary_keys = list(pk.get("constrained_columns") or [])

        foreign_keys = []
        for fk in inspector.get_foreign_keys(table_name, schema=scope):
            options = fk.get("options") or {}
            for local, remote in zip(fk.get("constrained_columns") or [], fk.get("referred_columns") or []):
                foreign_keys.append(ForeignKeyEdge(
                    name=fk.get("name"),
                    column=local,
                    referenced_table=fk["referred_table"],
                    referenced_column=remote,
                    update_rule=_rule(options.get("onupdate")),
                    delete_rule=_rule(options.get("ondelete")),
                ))

        indexes = []
        for idx in inspector.get_indexes(table_name, schema=scope):
            for position, column in enumerate(idx.get("column_names") or [], start=1):
                if column is None:
                    # expression index
                    continue
                indexes.append(Index(
                    name=idx.get("name") or "",
                    column=column,
                    unique=bool(idx.get("unique")),
                    ordinal_position=position,
                ))

        return Table(
            name=table_name,
            columns=columns,
            primary_keys=primary_keys,
            foreign_keys=foreign_keys,
            indexes=indexes,
        )
