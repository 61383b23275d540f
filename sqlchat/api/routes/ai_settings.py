from fastapi import APIRouter, Depends, HTTPException

from sqlchat.api.deps import get_ai_settings_service
from sqlchat.api.schemas import AiSettingsRead, AiSettingsUpdate
from sqlchat.core.exceptions import LLMConfigurationError
from sqlchat.services.ai_settings import AiSettingsService

router = APIRouter(prefix="/ai-settings", tags=["ai-settings"])


def _to_read(ai_settings) -> AiSettingsRead:
    return AiSettingsRead(
        user_id=ai_settings.user_id,
        provider=ai_settings.provider,
        model=ai_settings.model,
        has_api_key=ai_settings.has_api_key(),
        demo_mode=ai_settings.is_using_demo_mode(),
    )


@router.get("/{user_id}", response_model=AiSettingsRead)
def get_settings(user_id: int, service: AiSettingsService = Depends(get_ai_settings_service)):
    return _to_read(service.get_settings(user_id))


@router.put("/{user_id}", response_model=AiSettingsRead)
def update_settings(user_id: int, body: AiSettingsUpdate,
                    service: AiSettingsService = Depends(get_ai_settings_service)):
    try:
        return _to_read(service.update_settings(user_id, body.provider, body.model, body.api_key))
    except LLMConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{user_id}")
def delete_settings(user_id: int, service: AiSettingsService = Depends(get_ai_settings_service)):
    if not service.delete_settings(user_id):
        raise HTTPException(status_code=404, detail="AI settings not found")
    return {"ok": True}
