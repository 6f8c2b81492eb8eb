import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import is_error_detail_exposed
from .observability.logging import request_id_ctx


logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP status and envelope."""

    status_code = 500
    default_message = "Erreur serveur"

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Requête invalide"


class UnauthenticatedError(AppError):
    status_code = 401
    default_message = "Non authentifié"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Accès refusé"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Ressource introuvable"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflit"


class InternalError(AppError):
    status_code = 500


def _envelope(
    *,
    message: str,
    status: int,
    error: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    if error:
        body["error"] = error
    if details:
        body["details"] = details
    merged = dict(headers or {})
    rid = request_id_ctx.get()
    if rid:
        merged["X-Request-Id"] = rid
    return JSONResponse(body, status_code=status, headers=merged)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):  # type: ignore[override]
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _envelope(message=exc.message, status=exc.status_code, details=exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        detail = exc.detail
        headers = getattr(exc, "headers", None)
        if isinstance(detail, dict):
            message = detail.get("message") or detail.get("error") or "HTTP error"
            return _envelope(message=str(message), status=exc.status_code, details=detail, headers=headers)
        return _envelope(message=str(detail), status=exc.status_code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = "Requête invalide"
        if field:
            message = f"Requête invalide: {field} {first.get('msg', '')}".strip()
        return _envelope(
            message=message,
            status=400,
            details={"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors]},
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
        logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
        internal = InternalError()
        error = str(exc) if is_error_detail_exposed() else None
        return _envelope(message=internal.message, status=internal.status_code, error=error)


__all__ = [
    "AppError",
    "ValidationError",
    "UnauthenticatedError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "InternalError",
    "register_error_handlers",
]
