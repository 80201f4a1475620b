"""
Generative model client - the chain's only door to the AI service

ModelClient is the capability the chain depends on: a vision call that
takes a document, a reasoning call that takes a text prompt, and a chat
call for the assistant. OpenAIModelClient implements it on AsyncOpenAI
and is built once by the host process, then injected.
"""

import base64
import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from openai import AsyncOpenAI

from app.config import ManualJConfig

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


@runtime_checkable
class ModelClient(Protocol):
    """Abstraction over the vision, reasoning and chat endpoints"""

    async def generate_from_document(self, instruction: str, document_b64: str, mime_type: str = PDF_MIME_TYPE) -> str:
        ...

    async def generate_text(self, prompt: str) -> str:
        ...

    async def chat(self, messages: List[Dict[str, str]]) -> str:
        ...


def encode_document(data: bytes) -> str:
    """Binary-to-text transport encoding for document payloads"""
    return base64.b64encode(data).decode("ascii")


def build_file_part(document_b64: str, mime_type: str, filename: str = "building-plans.pdf") -> Dict[str, Any]:
    """Content part carrying an inline base64 document"""
    return {
        "type": "file",
        "file": {
            "filename": filename,
            "file_data": f"data:{mime_type};base64,{document_b64}",
        },
    }


class OpenAIModelClient:
    """
    ModelClient backed by OpenAI chat completions.

    Errors from the SDK propagate unchanged; the chain categorizes them.
    Retries are owned by the chain, so the SDK's own retries are disabled.
    """

    def __init__(self, config: ManualJConfig, client: Optional[AsyncOpenAI] = None):
        self.config = config
        self.client = client or AsyncOpenAI(
            api_key=config.require_api_key(),
            timeout=config.request_timeout_seconds,
            max_retries=0,
        )

        # Generation settings per logical endpoint
        self.model_configs = {
            "vision": {
                "model": config.vision_model,
                "temperature": config.vision_temperature,
                "max_completion_tokens": config.max_output_tokens,
            },
            "reasoning": {
                "model": config.reasoning_model,
                "temperature": config.reasoning_temperature,
                "max_completion_tokens": config.max_output_tokens,
            },
        }
        logger.info(
            f"Model client ready (vision={config.vision_model}, reasoning={config.reasoning_model}, "
            f"timeout={config.request_timeout_seconds}s)"
        )

    async def generate_from_document(self, instruction: str, document_b64: str, mime_type: str = PDF_MIME_TYPE) -> str:
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": instruction},
                    build_file_part(document_b64, mime_type),
                ],
            }
        ]
        return await self._complete("vision", messages)

    async def generate_text(self, prompt: str) -> str:
        return await self._complete("reasoning", [{"role": "user", "content": prompt}])

    async def chat(self, messages: List[Dict[str, str]]) -> str:
        return await self._complete("reasoning", messages)

    async def close(self) -> None:
        await self.client.close()

    async def _complete(self, endpoint: str, messages: List[Dict[str, Any]]) -> str:
        settings = self.model_configs[endpoint]
        response = await self.client.chat.completions.create(messages=messages, **settings)

        if not response.choices:
            return ""
        content = response.choices[0].message.content
        return content or ""
