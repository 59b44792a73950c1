"""
Domain errors raised by the quiz services and their HTTP mapping
FILE: quizcore/core/errors.py
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class QuizCoreError(Exception):
    """Base exception for all quiz domain errors"""

    status_code = 500
    kind = "InternalError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(QuizCoreError):
    """Raised when a referenced attempt or quiz does not exist"""
    status_code = 404
    kind = "NotFound"


class ForbiddenError(QuizCoreError):
    """Raised when the acting user does not own the record"""
    status_code = 403
    kind = "Forbidden"


class StateConflictError(QuizCoreError):
    """Raised when a mutation is attempted outside the allowed state"""
    status_code = 409
    kind = "StateConflict"


class DeadlineExceededError(QuizCoreError):
    """Raised when an attempt's time limit has elapsed"""
    status_code = 400
    kind = "DeadlineExceeded"


class ValidationFailureError(QuizCoreError):
    """Raised on structurally impossible input"""
    status_code = 422
    kind = "ValidationFailure"


class QuizGenerationError(QuizCoreError):
    """Raised when the LLM fails to produce a usable question list"""
    status_code = 502
    kind = "QuizGenerationFailed"


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to JSON responses"""

    @app.exception_handler(QuizCoreError)
    async def handle_quiz_core_error(request: Request, err: QuizCoreError):
        if err.status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path} - {err.kind}: {err.message}")
        else:
            logger.warning(f"⚠️ {request.method} {request.url.path} - {err.kind}: {err.message}")

        return JSONResponse(
            status_code=err.status_code,
            content={"detail": err.message, "error": err.kind}
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, err: Exception):
        logger.error(f"❌ Unexpected error on {request.method} {request.url.path}: {err}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "An unexpected error occurred", "error": "InternalError"}
        )
