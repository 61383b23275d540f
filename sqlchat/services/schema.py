import logging
from typing import Optional
from sqlmodel import select

from sqlchat.core.database import get_app_db
from sqlchat.core.exceptions import DatabaseConfigNotFoundError
from sqlchat.core.models import DatabaseConfig, DatabaseSchema, utcnow
from sqlchat.domain.schema.introspect import SchemaIntrospector
from sqlchat.domain.schema.models import SchemaDocument

logger = logging.getLogger(__name__)


class SchemaService:
    """
    Config lookup plus a per-database cache of extracted schema documents.
    A refresh replaces the cached document as a whole.
    """
    def __init__(self, app_db=None, introspector: Optional[SchemaIntrospector] = None):
        self._app_db = app_db
        self.introspector = introspector or SchemaIntrospector()

    @property
    def app_db(self):
        return self._app_db or get_app_db()

    def get_config(self, config_id: int, user_id: Optional[int] = None) -> DatabaseConfig:
        with self.app_db.get_session() as session:
            config = session.get(DatabaseConfig, config_id)
            if config is None or (user_id is not None and config.user_id != user_id):
                raise DatabaseConfigNotFoundError(config_id)
            return config

    def get_schema(self, config: DatabaseConfig) -> SchemaDocument:
        with self.app_db.get_session() as session:
            cached = session.exec(
                select(DatabaseSchema).where(DatabaseSchema.database_config_id == config.id)
            ).first()
            if cached is not None:
                return SchemaDocument.from_json(cached.schema_json)
        return self.refresh_schema(config)

    def refresh_schema(self, config: DatabaseConfig) -> SchemaDocument:
        document = self.introspector.extract(config)
        with self.app_db.get_session() as session:
            cached = session.exec(
                select(DatabaseSchema).where(DatabaseSchema.database_config_id == config.id)
            ).first()
            if cached is None:
                cached = DatabaseSchema(database_config_id=config.id, schema_json=document.to_json())
            else:
                cached.schema_json = document.to_json()
                cached.extracted_at = utcnow()
            session.add(cached)
            session.commit()
        logger.info("Cached schema for database config %s (%d tables)", config.id, len(document.tables))
        return document
