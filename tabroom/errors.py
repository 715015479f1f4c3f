"""
tabroom/errors.py
Centralized HTTP error contract

Every error response has the same shape:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "retryable": false,
    "details": {} (optional)
}

HTTP STATUS CODE DISCIPLINE:
- 400: Invalid input / not enough teams for a draw
- 403: Requester not assigned to the debate
- 404: Resource does not exist
- 409: Roster conflict (team full, seat taken, concurrent join)
- 422: Request body failed schema validation (Pydantic)
- 423: Round is published and frozen
- 500: Storage or internal failure, never caused by user input

Clients retry only when "retryable" is true.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from tabroom.exceptions import TabroomError

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"

    NOT_ASSIGNED = "NOT_ASSIGNED"
    NOT_FOUND = "NOT_FOUND"

    TEAM_FULL = "TEAM_FULL"
    ROLE_TAKEN = "ROLE_TAKEN"
    RESERVATION_CONFLICT = "RESERVATION_CONFLICT"

    INSUFFICIENT_TEAMS = "INSUFFICIENT_TEAMS"
    ROUND_PUBLISHED = "ROUND_PUBLISHED"

    STORAGE_FAILURE = "STORAGE_FAILURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response model"""
    success: bool = False
    error: str
    message: str
    code: str
    retryable: bool = False
    details: Optional[Dict[str, Any]] = None


ERROR_MAPPING = {
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Validation Error",
    423: "Locked",
    500: "Internal Error",
}


def error_body(
    status_code: int,
    message: str,
    code: str,
    retryable: bool = False,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    content = {
        "success": False,
        "error": ERROR_MAPPING.get(status_code, "Error"),
        "message": message,
        "code": code,
        "retryable": retryable,
    }
    if details:
        content["details"] = details
    return content


def domain_error_response(exc: TabroomError) -> JSONResponse:
    """Convert a domain exception to its JSON response"""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, exc.message, exc.code, exc.retryable),
    )


# =============================================================================
# Handlers
# =============================================================================

async def tabroom_error_handler(request: Request, exc: TabroomError):
    if exc.status_code >= 500:
        log_id = str(uuid.uuid4())[:8]
        logger.error(f"[{log_id}] {exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(
                exc.status_code, exc.message, exc.code, exc.retryable,
                details={"log_id": log_id},
            ),
        )

    logger.warning(f"API error on {request.url.path}: {exc.code} - {exc.message}")
    return domain_error_response(exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    error_details = [
        {
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(
            422, "Request validation failed", ErrorCode.VALIDATION_ERROR,
            details={"errors": error_details},
        ),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP exception on {request.url.path}: {exc.detail}")

    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(
            exc.status_code,
            str(exc.detail),
            ErrorCode.INTERNAL_ERROR if exc.status_code >= 500 else ErrorCode.INVALID_INPUT,
        ),
    )


async def global_exception_handler(request: Request, exc: Exception):
    log_id = str(uuid.uuid4())[:8]
    logger.error(f"[{log_id}] Unhandled exception on {request.url.path}: {type(exc).__name__}: {str(exc)}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            500,
            "An unexpected error occurred. Please try again later.",
            ErrorCode.INTERNAL_ERROR,
            details={"log_id": log_id},
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TabroomError, tabroom_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)


def get_error_summary() -> Dict[str, Any]:
    """Return summary of error handling system for documentation"""
    return {
        "service": "tabroom-error-handler",
        "response_structure": {
            "success": "boolean (always false for errors)",
            "error": "string (error type)",
            "message": "string (human-readable)",
            "code": "string (machine-readable)",
            "retryable": "boolean (true only for lost races)",
            "details": "object (optional)"
        },
        "status_codes": {str(code): label for code, label in ERROR_MAPPING.items()},
        "error_codes": [
            attr for attr in dir(ErrorCode)
            if not attr.startswith('_')
        ]
    }
