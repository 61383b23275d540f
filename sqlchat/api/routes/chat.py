import json
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from sqlchat.api.deps import get_chat_service
from sqlchat.api.schemas import ChatRequest, ChatResponse, ConversationRead, UsageRead
from sqlchat.services.chat import ChatBotService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

DONE = "data: [DONE]\n\n"


def sse_frames(fragments):
    """Wrap answer fragments as SSE frames, closed by an explicit [DONE] marker."""
    for fragment in fragments:
        yield f"data: {json.dumps({'content': fragment}, ensure_ascii=False)}\n\n"
    yield DONE


# Sync handlers: each request runs in its own worker thread
@router.post("/ask", response_model=ChatResponse)
def ask(request: ChatRequest, service: ChatBotService = Depends(get_chat_service)):
    return service.ask(request.question, request.database_config_id, request.user_id)


@router.post("/ask/stream")
def ask_stream(request: ChatRequest, service: ChatBotService = Depends(get_chat_service)):
    fragments = service.ask_stream(request.question, request.database_config_id, request.user_id)
    return StreamingResponse(
        sse_frames(fragments),
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
        media_type="text/event-stream"
    )


@router.get("/history/{user_id}", response_model=List[ConversationRead])
def history_by_user(user_id: int, limit: Optional[int] = None,
                    service: ChatBotService = Depends(get_chat_service)):
    return service.history_by_user(user_id, limit)


@router.get("/sessions/{session_id}", response_model=List[ConversationRead])
def history_by_session(session_id: str, service: ChatBotService = Depends(get_chat_service)):
    return service.history_by_session(session_id)


@router.get("/usage/{user_id}", response_model=UsageRead)
def usage(user_id: int, service: ChatBotService = Depends(get_chat_service)):
    governor = service.governor
    used = governor.current_count(user_id)
    return UsageRead(
        user_id=user_id,
        demo_mode=service.ai_settings.is_demo_mode(user_id),
        used=used,
        remaining=max(0, governor.daily_limit - used),
        daily_limit=governor.daily_limit,
    )
