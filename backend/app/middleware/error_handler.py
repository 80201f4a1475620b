from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import traceback
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from core.environment import get_env_bool
from services.error_types import ManualJError, log_error_with_context

logger = logging.getLogger(__name__)


def create_error_response(
    error_type: str,
    message: str,
    code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Create structured error response"""
    error = {"type": error_type, "code": code or error_type, "message": message}
    if details:
        error["details"] = details
    return {"error": error, "timestamp": datetime.now(timezone.utc).isoformat()}


async def manual_j_error_handler(request: Request, exc: ManualJError):
    log_error_with_context(exc, {"method": request.method, "path": request.url.path})
    content = {"error": exc.to_dict(), "timestamp": datetime.now(timezone.utc).isoformat()}
    return JSONResponse(status_code=exc.http_status, content=content)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc.errors()}")
    content = create_error_response(
        "InputValidationError",
        "Request body failed validation",
        code="INVALID_REQUEST",
        details={"problems": [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()
        ]},
    )
    return JSONResponse(status_code=400, content=content)


async def traceback_exception_handler(request: Request, exc: Exception):
    tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(tb)

    if get_env_bool("DEBUG"):
        content = create_error_response("InternalServerError", tb)
    else:
        content = create_error_response("InternalServerError", "Internal server error")

    return JSONResponse(status_code=500, content=content)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ManualJError, manual_j_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, traceback_exception_handler)
