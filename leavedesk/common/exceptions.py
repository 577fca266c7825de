"""Error taxonomy and its RFC 7807 rendering.

Services raise the subclasses below; the pure leave rules return
structured results and convert them with ``raise_for_errors()`` /
``raise_for_outcome()``. Database and storage errors are not wrapped:
they propagate and the session dependency rolls back.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

BASE_ERROR_URI = "https://leavedesk.local/errors"
PROBLEM_JSON = "application/problem+json"

logger = logging.getLogger(__name__)


class AppException(Exception):
    """A failure the client can act on. Subclasses fix status, slug and title."""

    status_code: int = 400
    error_type: str = "bad-request"
    title: str = "Bad Request"

    def __init__(
        self,
        detail: str,
        errors: Optional[dict[str, list[str]]] = None,
    ) -> None:
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    status_code = 404
    error_type = "not-found"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        self.title = f"{entity_type} Not Found"
        super().__init__(f"{entity_type} with id '{entity_id}' does not exist.")


class ConflictError(AppException):
    """Duplicate value, or a row the database refused as overlapping."""

    status_code = 409
    error_type = "conflict"
    title = "Conflict"

    def __init__(
        self,
        field: str,
        value: Any,
        *,
        detail: Optional[str] = None,
    ) -> None:
        message = detail or f"'{value}' is already in use."
        super().__init__(
            detail or f"An entry with {field}='{value}' already exists.",
            errors={field: [message]},
        )


class ForbiddenException(AppException):
    """Wrong role, or not the owner of the thing being touched."""

    status_code = 403
    error_type = "forbidden"
    title = "Forbidden"

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(detail)


class InvalidStateException(AppException):
    """The entity's status no longer admits the action (e.g. a decided request)."""

    status_code = 409
    error_type = "invalid-state"
    title = "Invalid State"

    def __init__(
        self,
        detail: str = "This request can no longer be modified.",
    ) -> None:
        super().__init__(detail)


class ValidationException(AppException):
    """Business-rule failures, keyed by field."""

    status_code = 422
    error_type = "validation-error"
    title = "Validation Error"

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__("One or more fields failed validation.", errors=errors)


# ── Rendering ───────────────────────────────────────────────────────

def _problem(
    request: Request,
    *,
    status: int,
    error_type: str,
    title: str,
    detail: str,
    errors: Optional[dict[str, list[str]]] = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{error_type}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.url.path,
    }
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_JSON)


async def _handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    logger.info(
        "%s %s → %d %s", request.method, request.url.path,
        exc.status_code, exc.error_type,
    )
    return _problem(
        request,
        status=exc.status_code,
        error_type=exc.error_type,
        title=exc.title,
        detail=exc.detail,
        errors=exc.errors,
    )


async def _handle_http_exception(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Auth failures and unknown routes, in the same envelope."""
    phrase = HTTPStatus(exc.status_code).phrase
    response = _problem(
        request,
        status=exc.status_code,
        error_type=phrase.lower().replace(" ", "-"),
        title=phrase,
        detail=str(exc.detail),
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def _field_name(loc: tuple) -> str:
    # ("body", "reason") → "reason"; ("query", "page") → "page"
    if len(loc) > 1:
        return ".".join(str(part) for part in loc[1:])
    return str(loc[0]) if loc else "unknown"


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        field_errors.setdefault(_field_name(tuple(err.get("loc", ()))), []).append(
            err.get("msg", "Invalid value")
        )
    return _problem(
        request,
        status=422,
        error_type="validation-error",
        title="Validation Error",
        detail="Request validation failed.",
        errors=field_errors,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, _handle_app_exception)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
