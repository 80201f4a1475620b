"""
FastAPI dependencies resolving the shared services built at startup
"""

from typing import Optional

from fastapi import Header, Request

from app.config import ManualJConfig
from services.chat_service import ChatAssistant
from services.error_types import AuthenticationRequiredError
from services.interaction_log import InteractionLog
from services.manual_j_chain import ManualJChain
from services.project_store import ProjectStore


def get_config(request: Request) -> ManualJConfig:
    return request.app.state.config


def get_manual_j_chain(request: Request) -> ManualJChain:
    return request.app.state.services.manual_j_chain()


def get_chat_assistant(request: Request) -> ChatAssistant:
    return request.app.state.services.chat_assistant()


def get_project_store(request: Request) -> ProjectStore:
    return request.app.state.project_store


def get_interaction_log(request: Request) -> InteractionLog:
    return request.app.state.interaction_log


def get_optional_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """User id set by the upstream session layer, if any"""
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()


def require_user_id(user_id: Optional[str]) -> str:
    if user_id is None:
        raise AuthenticationRequiredError(
            "Authentication required",
            details={"reason": "Valid session and user required"},
            code="AUTH_REQUIRED",
        )
    return user_id
