"""
Dialect strategy table for target databases.

Each entry knows its default port, the SQLAlchemy driver used to reach it, how
to scope metadata lookups (catalog vs schema pattern) and how the dialect
limits rows, which the generation prompt needs for its worked examples.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from sqlalchemy.engine import URL

from sqlchat.core.exceptions import UnsupportedDialectError


def _no_scope(config) -> Optional[str]:
    return None


def _catalog_is_database(config) -> Optional[str]:
    return config.database_name


def _schema_or_public(config) -> Optional[str]:
    return config.schema_name or "public"


def _schema_if_set(config) -> Optional[str]:
    return config.schema_name or None


@dataclass(frozen=True)
class DialectSpec:
    name: str
    drivername: str
    default_port: Optional[int]
    limit_template: str  # placeholders: {columns} {table} {n}
    catalog: Callable = _no_scope
    schema_pattern: Callable = _no_scope
    timeout_arg: Optional[str] = None
    file_based: bool = False
    syntax_hint: str = "Use standard SQL"

    def metadata_scope(self, config) -> Optional[str]:
        """
        Value handed to the inspector as `schema=`.
        Catalog-scoped dialects use the database name, schema-scoped ones the pattern.
        """
        return self.schema_pattern(config) or self.catalog(config)

    def limit_example(self, table: str, columns: str = "*", n: int = 10) -> str:
        return self.limit_template.format(table=table, columns=columns, n=n)


DIALECTS: Dict[str, DialectSpec] = {
    "mysql": DialectSpec(
        name="mysql",
        drivername="mysql+pymysql",
        syntax_hint="Use LIMIT N to limit rows; quote identifiers with backticks: `name`",
        default_port=3306,
        limit_template="SELECT {columns} FROM {table} LIMIT {n}",
        catalog=_catalog_is_database,
        timeout_arg="connect_timeout",
    ),
    "postgresql": DialectSpec(
        name="postgresql",
        drivername="postgresql+psycopg2",
        syntax_hint="Use LIMIT N to limit rows; lowercase identifiers need no quotes, others use double quotes",
        default_port=5432,
        limit_template="SELECT {columns} FROM {table} LIMIT {n}",
        schema_pattern=_schema_or_public,
        timeout_arg="connect_timeout",
    ),
    "sqlserver": DialectSpec(
        name="sqlserver",
        drivername="mssql+pymssql",
        syntax_hint="Use TOP N right after SELECT to limit rows; quote identifiers with brackets: [name]",
        default_port=1433,
        limit_template="SELECT TOP {n} {columns} FROM {table}",
        schema_pattern=_schema_if_set,
        timeout_arg="login_timeout",
    ),
    "oracle": DialectSpec(
        name="oracle",
        drivername="oracle+oracledb",
        syntax_hint="Use FETCH FIRST N ROWS ONLY to limit rows; never end the query with a semicolon",
        default_port=1521,
        limit_template="SELECT {columns} FROM {table} FETCH FIRST {n} ROWS ONLY",
        schema_pattern=_schema_if_set,
        timeout_arg="tcp_connect_timeout",
    ),
    # No maintained SQLAlchemy dialect exists for H2; connecting reports a missing driver.
    "h2": DialectSpec(
        name="h2",
        drivername="h2",
        default_port=9092,
        limit_template="SELECT {columns} FROM {table} LIMIT {n}",
        schema_pattern=_schema_if_set,
    ),
    "sqlite": DialectSpec(
        name="sqlite",
        drivername="sqlite",
        syntax_hint="Use LIMIT N to limit rows; date functions are date(), strftime()",
        default_port=None,
        limit_template="SELECT {columns} FROM {table} LIMIT {n}",
        file_based=True,
    ),
}


def get_dialect(database_type: str) -> DialectSpec:
    key = (database_type or "").strip().lower()
    if key == "postgres":
        key = "postgresql"
    elif key == "mssql":
        key = "sqlserver"
    spec = DIALECTS.get(key)
    if spec is None:
        raise UnsupportedDialectError(database_type)
    return spec


def build_url(config) -> URL:
    """
    Build the connection URL for a target database.
    Raises UnsupportedDialectError before anything touches the network.
    """
    spec = get_dialect(config.database_type)
    if spec.file_based:
        # read-only; a missing file is an error instead of a new empty database
        path = config.file_path or config.database_name
        return URL.create(spec.drivername, database=f"file:{path}", query={"mode": "ro", "uri": "true"})

    return URL.create(
        spec.drivername,
        username=config.username,
        password=config.password,
        host=config.host or "localhost",
        port=config.port or spec.default_port,
        database=config.database_name,
    )


def connect_args(config, timeout: int) -> dict:
    spec = get_dialect(config.database_type)
    if spec.timeout_arg:
        return {spec.timeout_arg: timeout}
    return {}
