"""Lifecycle error -> HTTP response mapping."""

from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from src.core.request.errors import (
    AlreadyClaimed,
    DuplicateSubmission,
    ExceedsRequested,
    InvalidField,
    InvalidQuantity,
    InvalidTransition,
    MissingField,
    NotClaimed,
    NotFound,
    RequestError,
    Result,
    UnknownStatusError,
)

STATUS_BY_ERROR: dict[type[RequestError], int] = {
    NotFound: 404,
    AlreadyClaimed: 409,
    NotClaimed: 409,
    InvalidTransition: 409,
    DuplicateSubmission: 409,
    MissingField: 422,
    InvalidField: 422,
    InvalidQuantity: 422,
    ExceedsRequested: 422,
}


class ApiError(Exception):
    """Carries a lifecycle error out of a route handler."""

    def __init__(self, error: RequestError):
        super().__init__(error.code)
        self.error = error

    @property
    def status_code(self) -> int:
        return STATUS_BY_ERROR.get(type(self.error), 400)


def unwrap(result: Result) -> Any:
    if not result.ok:
        raise ApiError(result.error)
    return result.value


def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(
            {"error": exc.error.code, "detail": exc.error.describe()}
        ),
    )


def unknown_status_handler(request: Request, exc: UnknownStatusError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "unknown_status", "detail": {"value": str(exc.value)}},
    )
