"""Workflow error kinds and their HTTP rendering.

Recoverable errors subclass ``HTTPException`` so services can raise them
directly and route handlers need no translation layer. Fatal errors
(storage unavailable, invariant violations) are kept apart and rendered
as 5xx responses.
"""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


class WorkflowError(HTTPException):
    code = "workflow_error"
    http_status = 400

    def __init__(self, detail: str):
        super().__init__(status_code=self.http_status, detail=detail)


class Unauthorized(WorkflowError):
    code = "unauthorized"
    http_status = 403


class InvalidState(WorkflowError):
    code = "invalid_state"
    http_status = 409


class DuplicateApproval(WorkflowError):
    code = "duplicate_approval"
    http_status = 409


class ValidationFailed(WorkflowError):
    code = "validation_failed"
    http_status = 400


class PrerequisiteNotMet(WorkflowError):
    code = "prerequisite_not_met"
    http_status = 409


class ConcurrentUpdate(WorkflowError):
    code = "concurrent_update"
    http_status = 409


class InvariantViolation(RuntimeError):
    """A computed value disagrees with its recomputation."""


def commit_or_conflict(db: Session) -> None:
    """Commit the current unit of work or roll it back entirely.

    A writer that lost an optimistic-concurrency race (stale version or a
    duplicate approval row inserted concurrently) gets ``ConcurrentUpdate``.
    """
    try:
        db.commit()
    except (StaleDataError, IntegrityError) as exc:
        db.rollback()
        logger.info("Concurrent update rejected: %s", exc.__class__.__name__)
        raise ConcurrentUpdate("The record was changed by another request; reload and retry") from exc


def _error_body(code: str, detail) -> dict:
    return {"error": code, "detail": detail}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(WorkflowError)
    async def _workflow_error_handler(request: Request, exc: WorkflowError):
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.detail))

    @app.exception_handler(HTTPException)
    async def _http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body("http_error", exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(OperationalError)
    async def _storage_error_handler(request: Request, exc: OperationalError):
        logger.error("Storage unavailable on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=503, content=_error_body("storage_unavailable", "Storage is unavailable"))

    @app.exception_handler(InvariantViolation)
    async def _invariant_error_handler(request: Request, exc: InvariantViolation):
        logger.error("Invariant violation on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content=_error_body("internal_error", "Internal error"))
