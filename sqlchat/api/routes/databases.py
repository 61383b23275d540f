import logging
from fastapi import APIRouter, Depends, HTTPException

from sqlchat.api.deps import get_schema_service
from sqlchat.api.schemas import ConnectionTestRead
from sqlchat.core.exceptions import SchemaExtractionError
from sqlchat.services.connection import check_connection
from sqlchat.services.schema import SchemaService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/databases", tags=["databases"])


@router.post("/{config_id}/schema/refresh")
def refresh_schema(config_id: int, user_id: int, service: SchemaService = Depends(get_schema_service)):
    config = service.get_config(config_id, user_id)
    try:
        document = service.refresh_schema(config)
    except SchemaExtractionError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"database_config_id": config_id, "tables": document.table_names(),
            "extracted_at": document.extracted_at}


@router.post("/{config_id}/test", response_model=ConnectionTestRead)
def test_database_connection(config_id: int, user_id: int, service: SchemaService = Depends(get_schema_service)):
    config = service.get_config(config_id, user_id)
    return check_connection(config)
