import asyncio

import httpx
import openai
import pytest

from services.error_types import (
    InputValidationError,
    ManualJError,
    ModelAuthError,
    ModelRateLimitError,
    ModelServiceError,
    ProjectNotFoundError,
    ProjectStoreError,
    TransportError,
    categorize_exception,
)

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def status_error(cls, status_code, message="upstream said no"):
    return cls(message, response=httpx.Response(status_code, request=REQUEST), body=None)


@pytest.mark.parametrize("exc,expected", [
    (status_error(openai.AuthenticationError, 401), ModelAuthError),
    (status_error(openai.PermissionDeniedError, 403), ModelAuthError),
    (status_error(openai.RateLimitError, 429), ModelRateLimitError),
    (openai.APIConnectionError(request=REQUEST), TransportError),
    (openai.APITimeoutError(request=REQUEST), TransportError),
    (status_error(openai.InternalServerError, 503), ModelServiceError),
    (status_error(openai.BadRequestError, 400), ModelServiceError),
    (asyncio.TimeoutError(), TransportError),
    (ConnectionResetError("reset"), TransportError),
])
def test_openai_and_network_errors_are_categorized(exc, expected):
    error = categorize_exception(exc, "calculate_results")

    assert type(error) is expected
    assert error.stage == "calculate_results"
    assert error.details["original_type"] == type(exc).__name__


@pytest.mark.parametrize("message,expected", [
    ("Invalid API key supplied", ModelAuthError),
    ("HTTP 401 Unauthorized", ModelAuthError),
    ("Quota exceeded for project", ModelRateLimitError),
    ("got status 429", ModelRateLimitError),
    ("socket timeout while reading", TransportError),
    ("network is unreachable", TransportError),
    ("something odd happened", ModelServiceError),
    ("prompt exceeded 4010 tokens", ModelServiceError),
    ("request 14290 failed validation", ModelServiceError),
])
def test_plain_exceptions_fall_back_to_message_matching(message, expected):
    assert type(categorize_exception(RuntimeError(message), "chat")) is expected


def test_manual_j_errors_pass_through_and_gain_a_stage():
    original = InputValidationError("Location is required")

    error = categorize_exception(original, "input")

    assert error is original
    assert error.stage == "input"


def test_existing_stage_is_not_overwritten():
    original = ModelAuthError("bad key", stage="extract_static_data")

    assert categorize_exception(original, "chat").stage == "extract_static_data"


def test_only_transport_and_rate_limit_are_retryable():
    retryable = {cls for cls in (InputValidationError, ModelAuthError, ModelRateLimitError,
                                 ModelServiceError, TransportError, ProjectStoreError) if cls.retryable}

    assert retryable == {ModelRateLimitError, TransportError}


def test_to_dict_carries_code_stage_and_details():
    error = InputValidationError(
        "No PDF file uploaded.", stage="upload", details={"field": "pdf"}, code="MISSING_PDF"
    )

    assert error.to_dict() == {
        "type": "InputValidationError",
        "code": "MISSING_PDF",
        "stage": "upload",
        "message": "No PDF file uploaded.",
        "details": {"field": "pdf"},
    }


def test_code_defaults_to_kind():
    assert TransportError("down").to_dict()["code"] == "TRANSPORT"
    assert TransportError("down").to_dict()["details"] is None


def test_str_includes_stage_prefix():
    assert str(ModelServiceError("boom", stage="generate_visualization")) == "[generate_visualization] boom"


def test_project_not_found_is_a_store_error_with_404():
    error = ProjectNotFoundError("Project p1 not found")

    assert isinstance(error, ProjectStoreError)
    assert isinstance(error, ManualJError)
    assert error.http_status == 404
