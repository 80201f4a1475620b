"""
Chat assistant - answers questions about a stored calculation

The project's static data and current assumptions are sent as the first
message so the model answers in the context of that building.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from app.config import ManualJConfig
from services import prompts
from services.error_types import (
    InputValidationError,
    ModelEmptyResponseError,
    categorize_exception,
)
from services.model_client import ModelClient
from services.project_store import ProjectStore

logger = logging.getLogger(__name__)

CHAT_STAGE = "chat"


def normalize_history(history: Any) -> List[Dict[str, str]]:
    """
    Validate chat history and map it to model roles.

    Raises:
        InputValidationError: History is not a non-empty list of messages with content
    """
    if not isinstance(history, list):
        raise InputValidationError("Message history must be an array", stage=CHAT_STAGE)
    if not history:
        raise InputValidationError("Message history cannot be empty", stage=CHAT_STAGE)

    messages = []
    for index, message in enumerate(history):
        if not isinstance(message, dict):
            raise InputValidationError(
                "Each message must be an object with role and content",
                stage=CHAT_STAGE,
                details={"index": index},
            )
        content = message.get("content")
        if not isinstance(content, str) or not content.strip():
            raise InputValidationError(
                "Message content cannot be empty", stage=CHAT_STAGE, details={"index": index}
            )
        role = "user" if message.get("role") == "user" else "assistant"
        messages.append({"role": role, "content": content})
    return messages


class ChatAssistant:
    """Conversational assistant over a stored project"""

    def __init__(self, client: ModelClient, store: ProjectStore, config: Optional[ManualJConfig] = None):
        self.client = client
        self.store = store
        self.config = config or ManualJConfig()

    async def reply(self, session: Session, project_id: str, history: Any) -> str:
        if not project_id:
            raise InputValidationError("Project ID is required", stage=CHAT_STAGE)

        messages = normalize_history(history)
        static_data, assumptions = self.store.get_project_context(session, project_id)

        context_message = {
            "role": "user",
            "content": prompts.chat_context_message(static_data, assumptions),
        }

        try:
            message = await asyncio.wait_for(
                self.client.chat([context_message, *messages]),
                timeout=self.config.request_timeout_seconds,
            )
        except Exception as e:
            error = categorize_exception(e, CHAT_STAGE)
            logger.error(f"Chat call failed for project {project_id} ({error.kind}): {error.message}")
            if error is e:
                raise
            raise error from e

        if not message:
            logger.error("Chat model returned empty response")
            raise ModelEmptyResponseError("No response generated from the AI model", stage=CHAT_STAGE)
        if len(message.strip()) < self.config.min_response_chars:
            logger.warning("Unusually short response from chat model")
            raise ModelEmptyResponseError(
                "Generated response is too short or incomplete",
                stage=CHAT_STAGE,
                details={"length": len(message)},
            )

        return message
