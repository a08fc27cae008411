"""Store error kinds + RFC7807 handler registration.

MenuStore raises the Store* kinds (also from its worker threads) and never
retries; ``register_error_handlers`` maps them to problem+json for the HTTP layer.
"""
from __future__ import annotations

import logging
import traceback
import uuid
from typing import Any

from werkzeug.wrappers.response import Response

from .http_errors import (
    conflict,
    internal_server_error,
    not_found,
    problem,
    unprocessable_entity,
)

log = logging.getLogger(__name__)


class StoreError(Exception):
    """Any I/O or decode failure of the menus table."""

    def __init__(self, message: str, *, op: str | None = None, menu_id: object | None = None):
        super().__init__(message)
        self.message = message
        self.op = op
        self.menu_id = menu_id


class NotFoundError(StoreError):
    """No matching record, or a non-positive id."""

    def __init__(self, menu_id: object | None = None, *, op: str | None = None):
        super().__init__(f"menu not found: id={menu_id}", op=op, menu_id=menu_id)


class EditConflictError(StoreError):
    """Conditional update matched zero rows (stale version, deleted, or unknown id)."""

    def __init__(self, menu_id: object | None = None, *, version: int | None = None):
        super().__init__(
            f"edit conflict: id={menu_id} version={version}", op="update", menu_id=menu_id
        )
        self.version = version


class StoreTimeoutError(StoreError):
    def __init__(self, op: str, timeout: float, *, menu_id: object | None = None):
        super().__init__(f"{op} exceeded deadline of {timeout:g}s", op=op, menu_id=menu_id)
        self.timeout = timeout


class ValidationError(Exception):
    """Raised by the HTTP layer when validate_menu reports problems."""

    def __init__(self, errors: dict[str, str], detail: str = "validation_error"):
        super().__init__(detail)
        self.errors = errors
        self.detail = detail


def register_error_handlers(app: Any) -> None:
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(NotFoundError)
    def _h_not_found(err: NotFoundError) -> Response:
        return not_found(detail="the requested resource could not be found", menu_id=_ident(err))

    @app.errorhandler(EditConflictError)
    def _h_conflict(err: EditConflictError) -> Response:
        return conflict(
            detail="unable to update the record due to an edit conflict, please try again",
            menu_id=_ident(err),
        )

    @app.errorhandler(ValidationError)
    def _h_validation(err: ValidationError) -> Response:
        return unprocessable_entity(err.errors, detail=err.detail)

    @app.errorhandler(StoreTimeoutError)
    def _h_timeout(err: StoreTimeoutError) -> Response:
        incident_id = str(uuid.uuid4())
        log.error("Store deadline exceeded incident_id=%s op=%s timeout=%s", incident_id, err.op, err.timeout)
        return internal_server_error(detail="timeout", incident_id=incident_id)

    @app.errorhandler(StoreError)
    def _h_store(err: StoreError) -> Response:
        incident_id = str(uuid.uuid4())
        log.error(
            "Store failure incident_id=%s op=%s menu_id=%s: %s\n%s",
            incident_id,
            err.op,
            err.menu_id,
            err.message,
            traceback.format_exc(),
        )
        return internal_server_error(incident_id=incident_id)

    @app.errorhandler(HTTPException)
    def _h_http(ex: HTTPException) -> Response:
        status = ex.code or 500
        if status == 404:
            return not_found(detail=ex.description)
        if status >= 500:
            return internal_server_error()
        return problem(status, "about:blank", ex.name, str(ex.description))

    @app.errorhandler(Exception)
    def _h_exception(ex: Exception) -> Response:
        incident_id = str(uuid.uuid4())
        log.error("Unhandled exception incident_id=%s\n%s", incident_id, traceback.format_exc())
        return internal_server_error(incident_id=incident_id)


def _ident(err: StoreError) -> str | None:
    return str(err.menu_id) if err.menu_id is not None else None


__all__ = [
    "StoreError",
    "NotFoundError",
    "EditConflictError",
    "StoreTimeoutError",
    "ValidationError",
    "register_error_handlers",
]
