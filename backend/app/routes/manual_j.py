import json
import re
import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field
from sqlmodel import Session

from app.config import ManualJConfig
from app.database import get_session
from app.dependencies import (
    get_chat_assistant,
    get_config,
    get_interaction_log,
    get_manual_j_chain,
    get_optional_user_id,
    get_project_store,
    require_user_id,
)
from services.chat_service import ChatAssistant
from services.error_types import InputValidationError, ManualJError, ProjectStoreError
from services.interaction_log import InteractionLog, LLMRequestType, LogStatus
from services.manual_j_chain import ManualJChain
from services.project_store import ProjectStore
from utils.logging_utils import Timer

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_LOCATION_LENGTH = 100
LOCATION_DISALLOWED = re.compile(r"[^\w\s,-]")
UPLOAD_STAGE = "upload"


class VersionSummary(BaseModel):
    version_number: int = Field(alias="versionNumber")
    change_reason: str = Field(alias="changeReason")
    is_active: bool = Field(alias="isActive")
    created_at: str = Field(alias="createdAt")

    model_config = {"populate_by_name": True}


class AssumptionsUpdate(BaseModel):
    """Edited assumptions: either the model's JSON object or free text"""
    assumptions: Union[Dict[str, Any], str]
    change_reason: Optional[str] = Field(None, alias="changeReason", max_length=255)

    model_config = {"populate_by_name": True}


class ChatRequest(BaseModel):
    project_id: str = Field("", alias="projectId")
    history: Any = None

    model_config = {"populate_by_name": True}


class ChatResponse(BaseModel):
    message: str


def sanitize_location(raw: Optional[str]) -> str:
    """Trim, drop characters other than word chars, spaces, commas and hyphens, cap length"""
    if not raw:
        return ""
    return LOCATION_DISALLOWED.sub("", raw.strip())[:MAX_LOCATION_LENGTH]


def validate_upload(pdf: Optional[UploadFile], content: bytes, location: str, config: ManualJConfig) -> None:
    """
    Raises:
        InputValidationError: With one of MISSING_PDF, MISSING_LOCATION,
            INVALID_FILE_TYPE, FILE_TOO_SMALL, FILE_TOO_LARGE as its code
    """
    if pdf is None:
        raise InputValidationError("No PDF file uploaded.", stage=UPLOAD_STAGE, code="MISSING_PDF")
    if not location:
        raise InputValidationError("Location is required.", stage=UPLOAD_STAGE, code="MISSING_LOCATION")

    upload_config = config.file_upload_config()
    if pdf.content_type not in upload_config.allowed_types:
        raise InputValidationError(
            upload_config.invalid_type_message,
            stage=UPLOAD_STAGE,
            details={"provided": pdf.content_type},
            code="INVALID_FILE_TYPE",
        )

    size = len(content)
    if size < upload_config.min_size_bytes:
        raise InputValidationError(
            upload_config.size_too_small_message,
            stage=UPLOAD_STAGE,
            details={"size": size, "minSize": upload_config.min_size_bytes},
            code="FILE_TOO_SMALL",
        )
    if size > upload_config.max_size_bytes:
        raise InputValidationError(
            upload_config.size_limit_exceeded_message,
            stage=UPLOAD_STAGE,
            details={"size": size, "maxSize": upload_config.max_size_bytes},
            code="FILE_TOO_LARGE",
        )


def _log_failure(
    interaction_log: InteractionLog,
    request_type: LLMRequestType,
    request_summary: str,
    error: ManualJError,
    timer: Timer,
) -> None:
    interaction_log.log_interaction(
        request_type,
        request_summary,
        json.dumps({"error": error.message, "stage": error.stage}),
        timer.duration_ms,
        LogStatus.ERROR,
        error_message=str(error),
    )


@router.post("/init")
async def init_manual_j(
    pdf: Optional[UploadFile] = File(None),
    location: Optional[str] = Form(None),
    user_id: Optional[str] = Depends(get_optional_user_id),
    config: ManualJConfig = Depends(get_config),
    chain: ManualJChain = Depends(get_manual_j_chain),
    store: ProjectStore = Depends(get_project_store),
    interaction_log: InteractionLog = Depends(get_interaction_log),
    session: Session = Depends(get_session),
):
    """
    Run the full Manual J chain on an uploaded plan set and store the
    outcome as a new project with version 1.
    """
    location = sanitize_location(location)
    content = await pdf.read() if pdf is not None else b""
    validate_upload(pdf, content, location, config)
    user_id = require_user_id(user_id)

    logger.info(f"Starting Manual J calculation for {location} ({len(content)} bytes)")
    request_summary = json.dumps({"location": location, "pdfSize": len(content)})

    with Timer(f"Manual J calculation for {location}", logger) as timer:
        try:
            result = await chain.run(content, location)
        except ManualJError as e:
            _log_failure(interaction_log, LLMRequestType.MANUAL_J_CALCULATION, request_summary, e, timer)
            raise

    interaction_log.log_interaction(
        LLMRequestType.MANUAL_J_CALCULATION,
        request_summary,
        json.dumps(result.to_response()),
        timer.duration_ms,
        LogStatus.SUCCESS,
    )

    project, version = store.create_project_with_initial_version(session, user_id, location, result)

    return {
        "projectId": project.id,
        "versionNumber": version.version_number,
        **result.to_response(),
    }


@router.get("/{project_id}/results")
async def get_results(
    project_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    store: ProjectStore = Depends(get_project_store),
    session: Session = Depends(get_session),
):
    project = store.get_project(session, project_id, require_user_id(user_id))
    versions = store.list_versions(session, project_id)
    active = next((v.version_number for v in reversed(versions) if v.is_active), None)

    return {
        "projectId": project.id,
        "name": project.name,
        "location": project.location,
        "status": project.status,
        "versionNumber": active,
        "staticData": project.static_data,
        "dynamicAssumptions": project.dynamic_assumptions,
        "manualJResults": project.manual_j_results,
        "chartData": project.chart_data,
        "csvData": project.csv_data,
    }


@router.put("/{project_id}/assumptions")
async def update_assumptions(
    project_id: str,
    update: AssumptionsUpdate,
    user_id: Optional[str] = Depends(get_optional_user_id),
    chain: ManualJChain = Depends(get_manual_j_chain),
    store: ProjectStore = Depends(get_project_store),
    interaction_log: InteractionLog = Depends(get_interaction_log),
    session: Session = Depends(get_session),
):
    """Recalculate loads with edited assumptions and store a new version"""
    user_id = require_user_id(user_id)
    project = store.get_project(session, project_id, user_id)

    if isinstance(update.assumptions, dict):
        assumptions = json.dumps(update.assumptions, indent=2)
    else:
        assumptions = update.assumptions

    request_summary = json.dumps({"projectId": project_id, "recalculation": True})

    with Timer(f"Recalculation for project {project_id}", logger) as timer:
        try:
            result = await chain.recalculate(project.static_data, assumptions)
        except ManualJError as e:
            _log_failure(interaction_log, LLMRequestType.MANUAL_J_CALCULATION, request_summary, e, timer)
            raise

    interaction_log.log_interaction(
        LLMRequestType.MANUAL_J_CALCULATION,
        request_summary,
        json.dumps(result.to_response()),
        timer.duration_ms,
        LogStatus.SUCCESS,
    )

    version = store.add_version(
        session,
        project_id,
        result,
        update.change_reason or "Updated assumptions",
        user_id=user_id,
    )

    return {
        "projectId": project_id,
        "versionNumber": version.version_number,
        "dynamicAssumptions": result.dynamic_assumptions,
        "manualJResults": result.manual_j_results,
        "chartData": result.chart_data,
        "csvData": result.csv_data,
    }


@router.get("/{project_id}/versions", response_model=List[VersionSummary], response_model_by_alias=True)
async def list_versions(
    project_id: str,
    user_id: Optional[str] = Depends(get_optional_user_id),
    store: ProjectStore = Depends(get_project_store),
    session: Session = Depends(get_session),
):
    store.get_project(session, project_id, require_user_id(user_id))
    return [
        VersionSummary(
            version_number=v.version_number,
            change_reason=v.change_reason,
            is_active=v.is_active,
            created_at=v.created_at.isoformat(),
        )
        for v in store.list_versions(session, project_id)
    ]


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    assistant: ChatAssistant = Depends(get_chat_assistant),
    interaction_log: InteractionLog = Depends(get_interaction_log),
    session: Session = Depends(get_session),
):
    request_summary = json.dumps({"projectId": request.project_id})

    with Timer(f"Chat reply for project {request.project_id}", logger) as timer:
        try:
            message = await assistant.reply(session, request.project_id, request.history)
        except (InputValidationError, ProjectStoreError):
            raise
        except ManualJError as e:
            _log_failure(interaction_log, LLMRequestType.CHAT, request_summary, e, timer)
            raise

    interaction_log.log_interaction(
        LLMRequestType.CHAT,
        request_summary,
        message,
        timer.duration_ms,
        LogStatus.SUCCESS,
    )
    return ChatResponse(message=message)
