import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from app.dependencies import get_interaction_log
from services.interaction_log import InteractionLog, LLMRequestType, LogStatus

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", status_code=201)
async def store_log_entry(
    payload: Dict[str, Any] = Body(...),
    interaction_log: InteractionLog = Depends(get_interaction_log),
):
    """Store a client-side log entry as submitted"""
    entry = interaction_log.add_raw(payload)
    return {"success": True, "message": "Log entry stored successfully", "logEntry": entry}


@router.get("")
async def get_log_entries(
    request_type: Optional[LLMRequestType] = Query(None, alias="requestType"),
    status: Optional[LogStatus] = Query(None),
    latest: Optional[int] = Query(None, ge=1),
    interaction_log: InteractionLog = Depends(get_interaction_log),
):
    """Client-submitted entries plus server-recorded model interactions"""
    if request_type is not None:
        interactions = interaction_log.get_logs_by_request_type(request_type)
    elif status is not None:
        interactions = interaction_log.get_logs_by_status(status)
    elif latest is not None:
        interactions = interaction_log.get_latest_logs(latest)
    else:
        interactions = interaction_log.get_logs()

    if request_type is not None and status is not None:
        interactions = [entry for entry in interactions if entry.status == status]

    return {
        "success": True,
        "logs": interaction_log.get_raw(),
        "interactions": [entry.model_dump(mode="json") for entry in interactions],
    }


@router.get("/{log_id}")
async def get_log_entry(log_id: str, interaction_log: InteractionLog = Depends(get_interaction_log)):
    entry = interaction_log.get_log_by_id(log_id)
    if entry is None:
        return JSONResponse(status_code=404, content={"success": False, "error": "Log entry not found"})
    return {"success": True, "interaction": entry.model_dump(mode="json")}
