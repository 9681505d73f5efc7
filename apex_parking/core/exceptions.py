import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from apex_parking.schemas.common import APIResponse, APIError
from apex_parking.core.error_codes import ErrorCode

from apex_parking.core.domain_exceptions import DomainException

logger = logging.getLogger(__name__)


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=APIResponse(
            success=False,
            error=APIError(code=code, message=message),
        ).model_dump(),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    code = ErrorCode.UNAUTHORIZED if exc.status_code == 401 else ErrorCode.VALIDATION_ERROR
    return _error_response(exc.status_code, code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request."
    return _error_response(400, ErrorCode.VALIDATION_ERROR, message)


async def domain_exception_handler(request: Request, exc: DomainException):
    return _error_response(exc.status_code, exc.code, exc.message)


async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(500, ErrorCode.INTERNAL_ERROR, "Something went wrong. Please try again.")
