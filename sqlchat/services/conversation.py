import logging
import uuid
from typing import Any, Dict, List, Optional
from sqlmodel import select

from sqlchat.core.database import get_app_db
from sqlchat.core.models import Conversation, ConversationSession, utcnow

logger = logging.getLogger(__name__)


class ConversationTracker:
    """
    Sessions per (user, target database) and the append-only turn history.
    """
    def __init__(self, app_db=None):
        self._app_db = app_db

    @property
    def app_db(self):
        return self._app_db or get_app_db()

    def get_or_create_session(self, user_id: int, database_config_id: int) -> str:
        """
        Reuse the user's most recent active session if it belongs to the same
        database; otherwise start a new one and retire older ones for the pair.
        """
        with self.app_db.get_session() as session:
            latest = session.exec(
                select(ConversationSession)
                .where(ConversationSession.user_id == user_id)
                .where(ConversationSession.is_active == True)  # noqa: E712
                .order_by(ConversationSession.last_activity_at.desc(), ConversationSession.id.desc())
            ).first()

            if latest and latest.database_config_id == database_config_id:
                latest.last_activity_at = utcnow()
                session.add(latest)
                session.commit()
                return latest.session_id

            stale = session.exec(
                select(ConversationSession)
                .where(ConversationSession.user_id == user_id)
                .where(ConversationSession.database_config_id == database_config_id)
                .where(ConversationSession.is_active == True)  # noqa: E712
            ).all()
            for old in stale:
                old.is_active = False
                session.add(old)

            session_id = str(uuid.uuid4())
            session.add(ConversationSession(
                session_id=session_id,
                user_id=user_id,
                database_config_id=database_config_id,
            ))
            session.commit()
            logger.info("Started conversation session %s for user %s", session_id, user_id)
            return session_id

    def save_turn(
        self,
        user_id: int,
        database_config_id: Optional[int],
        session_id: Optional[str],
        question: str,
        sql_query: Optional[str] = None,
        sql_result: Optional[List[Dict[str, Any]]] = None,
        answer: Optional[str] = None,
        is_greeting: bool = False,
        error_message: Optional[str] = None,
    ) -> Optional[Conversation]:
        """Persist one turn. Failures are logged and never reach the caller."""
        try:
            with self.app_db.get_session() as session:
                turn = Conversation(
                    user_id=user_id,
                    database_config_id=database_config_id,
                    session_id=session_id,
                    question=question,
                    sql_query=sql_query,
                    sql_result=sql_result,
                    answer=answer,
                    is_greeting=is_greeting,
                    error_message=error_message,
                )
                session.add(turn)
                session.commit()
                session.refresh(turn)
                return turn
        except Exception as e:
            logger.error("Failed to save conversation turn: %s", e, exc_info=True)
            return None

    def history_by_user(self, user_id: int, limit: Optional[int] = None) -> List[Conversation]:
        with self.app_db.get_session() as session:
            statement = (
                select(Conversation)
                .where(Conversation.user_id == user_id)
                .order_by(Conversation.created_at.desc(), Conversation.id.desc())
            )
            if limit:
                statement = statement.limit(limit)
            return list(session.exec(statement).all())

    def history_by_session(self, session_id: str) -> List[Conversation]:
        with self.app_db.get_session() as session:
            statement = (
                select(Conversation)
                .where(Conversation.session_id == session_id)
                .order_by(Conversation.created_at.asc(), Conversation.id.asc())
            )
            return list(session.exec(statement).all())
