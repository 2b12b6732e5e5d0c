"""
Exceptions

Business exceptions and the global exception handlers
"""
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from loguru import logger

from .response import error_response


class AppException(Exception):
    """Base application exception"""

    def __init__(
        self,
        message: str = "Internal server error",
        code: int = 500,
        data: dict = None
    ):
        self.message = message
        self.code = code
        self.data = data
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource does not exist"""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message=message, code=404)


class BadRequestException(AppException):
    """Invalid request parameters"""

    def __init__(self, message: str = "Bad request"):
        super().__init__(message=message, code=400)


class ConflictException(AppException):
    """Resource already exists"""

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message=message, code=409)


class UnauthorizedException(AppException):
    """Missing or invalid credentials"""

    def __init__(self, message: str = "Invalid or missing API key"):
        super().__init__(message=message, code=401)


class RateLimitExceeded(AppException):
    """Too many requests from one client"""

    def __init__(self, message: str = "Too many requests, please try again later.", retry_after: int = 0):
        super().__init__(message=message, code=429, data={"retry_after": retry_after})


# ========== Ranking / generation errors ==========

class NoCandidatesError(AppException):
    """There is no candidate population to rank"""

    def __init__(self, message: str = "No candidates found in the system"):
        super().__init__(message=message, code=404)


class ClassifierError(AppException):
    """The LLM could not be reached or returned an unusable answer"""

    def __init__(self, message: str = "AI service request failed"):
        super().__init__(message=message, code=502)


class IdentityCollisionExhausted(AppException):
    """No collision-free email could be derived"""

    def __init__(self, email: str, attempts: int):
        super().__init__(
            message=f"Could not derive a unique email for {email} after {attempts} attempts",
            code=409,
            data={"email": email, "attempts": attempts},
        )


class PartialBatchError(AppException):
    """A generation batch failed part way and was rolled back"""

    def __init__(self, message: str, completed: int, requested: int):
        super().__init__(
            message=message,
            code=502,
            data={"completed_before_failure": completed, "requested": requested, "rolled_back": True},
        )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    logger.warning("{}: {} | Path: {}", type(exc).__name__, exc.message, request.url.path)
    headers = None
    if isinstance(exc, RateLimitExceeded) and exc.data:
        headers = {"Retry-After": str(exc.data["retry_after"])}
    return JSONResponse(
        status_code=exc.code,
        content=error_response(message=exc.message, code=exc.code, data=exc.data),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning("HTTPException: {} | Path: {}", exc.detail, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(message=str(exc.detail), code=exc.status_code)
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    error_messages = []
    for error in errors:
        loc = " -> ".join(str(part) for part in error["loc"])
        error_messages.append(f"{loc}: {error['msg']}")

    message = "; ".join(error_messages)
    logger.warning("ValidationError: {} | Path: {}", message, request.url.path)

    return JSONResponse(
        status_code=422,
        content=error_response(
            message="Request validation failed",
            code=422,
            data={"errors": jsonable_encoder(errors)}
        )
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled Exception: {} | Path: {}", exc, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_response(message="Internal server error", code=500)
    )
