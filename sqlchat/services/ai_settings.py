import logging
from typing import Optional
from sqlmodel import select

from sqlchat.core.config import settings
from sqlchat.core.database import get_app_db
from sqlchat.core.exceptions import LLMConfigurationError
from sqlchat.core.models import UserAiSettings, utcnow
from sqlchat.core.security import decrypt_secret, encrypt_secret

logger = logging.getLogger(__name__)

PROVIDERS = ("demo", "openai", "claude")


class AiSettingsService:
    """Per-user model provider choice. Users without settings get the demo tier."""

    def __init__(self, app_db=None):
        self._app_db = app_db

    @property
    def app_db(self):
        return self._app_db or get_app_db()

    def _find(self, session, user_id: int) -> Optional[UserAiSettings]:
        return session.exec(select(UserAiSettings).where(UserAiSettings.user_id == user_id)).first()

    def get_settings(self, user_id: int) -> UserAiSettings:
        with self.app_db.get_session() as session:
            ai_settings = self._find(session, user_id)
            if ai_settings is None:
                ai_settings = UserAiSettings(user_id=user_id, provider="demo", model=settings.DEMO_MODEL)
                session.add(ai_settings)
                session.commit()
                session.refresh(ai_settings)
                logger.info("Created default demo AI settings for user %s", user_id)
            return ai_settings

    def update_settings(self, user_id: int, provider: str, model: Optional[str] = None,
                        api_key: Optional[str] = None) -> UserAiSettings:
        provider = (provider or "").lower()
        if provider not in PROVIDERS:
            raise LLMConfigurationError(f"Unknown AI provider: {provider}")
        if provider != "demo" and not api_key:
            raise LLMConfigurationError(f"An API key is required for provider '{provider}'")

        with self.app_db.get_session() as session:
            ai_settings = self._find(session, user_id) or UserAiSettings(user_id=user_id)
            ai_settings.provider = provider
            ai_settings.model = model or (settings.DEMO_MODEL if provider == "demo" else None)
            ai_settings.api_key_encrypted = None if provider == "demo" else encrypt_secret(api_key)
            ai_settings.updated_at = utcnow()
            session.add(ai_settings)
            session.commit()
            session.refresh(ai_settings)
            return ai_settings

    def get_decrypted_api_key(self, user_id: int) -> Optional[str]:
        return decrypt_secret(self.get_settings(user_id).api_key_encrypted)

    def is_demo_mode(self, user_id: int) -> bool:
        return self.get_settings(user_id).is_using_demo_mode()

    def delete_settings(self, user_id: int) -> bool:
        with self.app_db.get_session() as session:
            ai_settings = self._find(session, user_id)
            if ai_settings is None:
                return False
            session.delete(ai_settings)
            session.commit()
            return True
