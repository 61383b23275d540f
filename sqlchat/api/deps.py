import functools

from sqlchat.services.ai_settings import AiSettingsService
from sqlchat.services.chat import ChatBotService
from sqlchat.services.schema import SchemaService


@functools.lru_cache(maxsize=1)
def get_chat_service() -> ChatBotService:
    return ChatBotService()


def get_ai_settings_service() -> AiSettingsService:
    return get_chat_service().ai_settings


def get_schema_service() -> SchemaService:
    return get_chat_service().schema_service
