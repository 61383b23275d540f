from datetime import datetime
from typing import Any, Optional, List
from pydantic import BaseModel, ConfigDict, Field

from sqlchat.services.chat import ChatResponse  # noqa: F401


# --- Chat Schemas ---
class ChatRequest(BaseModel):
    question: str = Field(..., min_length=1)
    database_config_id: int
    user_id: int


class ConversationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: Optional[str] = None
    database_config_id: Optional[int] = None
    question: str
    sql_query: Optional[str] = None
    sql_result: Optional[List[Any]] = None
    answer: Optional[str] = None
    is_greeting: bool = False
    error_message: Optional[str] = None
    created_at: datetime


class UsageRead(BaseModel):
    user_id: int
    demo_mode: bool
    used: int
    remaining: int
    daily_limit: int


# --- AI Settings Schemas ---
class AiSettingsUpdate(BaseModel):
    provider: str = "demo"  # demo, openai, claude
    model: Optional[str] = None
    api_key: Optional[str] = None


class AiSettingsRead(BaseModel):
    user_id: int
    provider: str
    model: Optional[str] = None
    has_api_key: bool
    demo_mode: bool


# --- Database Schemas ---
class ConnectionTestRead(BaseModel):
    success: bool
    message: str
    category: Optional[str] = None
