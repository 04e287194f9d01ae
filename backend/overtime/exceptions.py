from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from overtime.models.enums import ErrorKind


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.EMPLOYEE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATUS: status.HTTP_409_CONFLICT,
    ErrorKind.CANNOT_CANCEL: status.HTTP_409_CONFLICT,
    ErrorKind.CANNOT_CORRECT_ACCOUNTED: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE_CONFIG: status.HTTP_409_CONFLICT,
    ErrorKind.REASON_REQUIRED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_DATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.EXCEEDS_BALANCE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NO_BALANCE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NO_ELIGIBLE_ORDERS: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NO_VALID_SUBMISSIONS: status.HTTP_400_BAD_REQUEST,
}


class WorkflowError(AppError):
    """A permission or state-machine violation detected before any write."""

    def __init__(self, kind: ErrorKind) -> None:
        self.kind = kind
        super().__init__(kind.value, status_code=ERROR_STATUS_CODES[kind])


def status_code_for(error: str) -> int:
    """HTTP status for a tagged error; unknown tags are server errors."""
    try:
        return ERROR_STATUS_CODES[ErrorKind(error)]
    except ValueError:
        return status.HTTP_500_INTERNAL_SERVER_ERROR


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
