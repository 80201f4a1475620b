"""
Custom Error Types for the Manual J calculation chain

Every error raised out of the chain is tagged with the stage that produced
it, a machine-readable kind, and the HTTP status the API layer should map
it to. Only transport failures and rate limiting are retryable.
"""

import asyncio
import logging
import re
from typing import Optional, Dict, Any

import openai

logger = logging.getLogger(__name__)

AUTH_MESSAGE_PATTERN = re.compile(r"api key|unauthorized|\b401\b")
RATE_LIMIT_MESSAGE_PATTERN = re.compile(r"rate limit|quota|\b429\b")
TRANSPORT_MESSAGE_PATTERN = re.compile(r"timeout|connection|network")


class ManualJError(Exception):
    """Base exception for all Manual J chain errors."""

    kind = "manual_j_error"
    http_status = 500
    retryable = False

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.details = details or {}
        self.code = code or self.kind.upper()

    def __str__(self):
        prefix = f"[{self.stage}] " if self.stage else ""
        if self.details:
            return f"{prefix}{self.message} | Details: {self.details}"
        return f"{prefix}{self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "details": self.details or None,
        }


class InputValidationError(ManualJError):
    """
    Input rejected before any external call.

    Examples:
    - Empty PDF payload
    - Blank location
    - Empty chat history
    """
    kind = "input_validation"
    http_status = 400


class AuthenticationRequiredError(ManualJError):
    """The request carried no authenticated user."""
    kind = "auth_required"
    http_status = 401


class ModelAuthError(ManualJError):
    """The model service rejected our credentials."""
    kind = "model_auth"
    http_status = 401


class ModelRateLimitError(ManualJError):
    """The model service is throttling requests or the quota is exhausted."""
    kind = "model_rate_limit"
    http_status = 429
    retryable = True


class ModelEmptyResponseError(ManualJError):
    """The call succeeded but the completion was empty or too short."""
    kind = "model_empty_response"


class ModelMalformedResponseError(ManualJError):
    """A completion that must be structured (JSON) could not be parsed."""
    kind = "model_malformed_response"


class TransportError(ManualJError):
    """
    Network failure reaching the model service.

    Examples:
    - Connection refused or reset
    - Request timeout
    """
    kind = "transport"
    retryable = True


class ModelServiceError(ManualJError):
    """Any other upstream failure (5xx, bad request, content filtering)."""
    kind = "model_service"


class ConfigurationError(ManualJError):
    """
    Configuration errors that prevent proper operation.

    Examples:
    - Missing API keys
    - Invalid configuration values
    """
    kind = "configuration"


class ProjectStoreError(ManualJError):
    """Persisting a project or one of its versions failed."""
    kind = "project_store"


class ProjectNotFoundError(ProjectStoreError):
    """The requested project does not exist or belongs to another user."""
    kind = "project_not_found"
    http_status = 404


def categorize_exception(e: Exception, stage: Optional[str] = None) -> ManualJError:
    """
    Categorize an exception raised by a model call into the chain's taxonomy.

    Args:
        e: Exception to categorize
        stage: Name of the stage the call belonged to

    Returns:
        Categorized ManualJError carrying the original message
    """
    if isinstance(e, ManualJError):
        if e.stage is None:
            e.stage = stage
        return e

    error_message = str(e) or type(e).__name__
    details = {"original_type": type(e).__name__}

    # openai-specific exceptions first: they carry the HTTP status
    if isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ModelAuthError(f"Authentication error with AI service: {error_message}", stage, details)
    if isinstance(e, openai.RateLimitError):
        return ModelRateLimitError(f"AI service rate limit exceeded: {error_message}", stage, details)
    if isinstance(e, (openai.APITimeoutError, openai.APIConnectionError)):
        return TransportError(f"Could not reach AI service: {error_message}", stage, details)
    if isinstance(e, openai.APIStatusError):
        details["status_code"] = e.status_code
        return ModelServiceError(f"AI service call failed: {error_message}", stage, details)

    if isinstance(e, (asyncio.TimeoutError, TimeoutError)):
        return TransportError(f"AI service call timed out: {error_message}", stage, details)
    if isinstance(e, ConnectionError):
        return TransportError(f"Network error reaching AI service: {error_message}", stage, details)

    lowered = error_message.lower()
    if AUTH_MESSAGE_PATTERN.search(lowered):
        return ModelAuthError(f"Authentication error with AI service: {error_message}", stage, details)
    if RATE_LIMIT_MESSAGE_PATTERN.search(lowered):
        return ModelRateLimitError(f"AI service rate limit exceeded: {error_message}", stage, details)
    if TRANSPORT_MESSAGE_PATTERN.search(lowered):
        return TransportError(f"Network error reaching AI service: {error_message}", stage, details)

    return ModelServiceError(f"AI service call failed: {error_message}", stage, details)


def log_error_with_context(error: ManualJError, context: Dict[str, Any]):
    """
    Log error with additional context information.

    Args:
        error: Error to log
        context: Additional context (project_id, location, etc.)
    """
    log_data = {
        'error_type': type(error).__name__,
        'error_kind': error.kind,
        'error_stage': error.stage,
        'error_message': error.message,
        'details': error.details,
        'context': context
    }

    if error.http_status >= 500:
        logger.error(f"Manual J error in {error.stage or 'unknown stage'}: {error.message}", extra=log_data)
    else:
        logger.warning(f"Manual J request rejected ({error.kind}): {error.message}", extra=log_data)
