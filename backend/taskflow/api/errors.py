import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from taskflow.core.errors import AppError, InvalidAccessToken, InvalidCredentials, ValidationError

logger = logging.getLogger(__name__)

_STATUS_TO_CODE = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    429: "rate_limited",
}


def _error_response(status_code: int, message: str, code: str, errors=None, headers=None) -> JSONResponse:
    content = {"detail": message, "code": code}
    if errors is not None:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _field_errors(exc: RequestValidationError) -> dict:
    errors: dict = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return errors


def _render_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message
        )
        return _error_response(500, "Internal server error", "server_error")
    if isinstance(exc, InvalidCredentials):
        # Both causes render identically.
        return _error_response(exc.status_code, exc.message, exc.code)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, InvalidAccessToken) else None
    logger.info("%s on %s %s", type(exc).__name__, request.method, request.url.path)
    return _error_response(exc.status_code, exc.message, exc.code, exc.errors, headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        return _render_app_error(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return _render_app_error(request, ValidationError("Validation failed", errors=_field_errors(exc)))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        code = _STATUS_TO_CODE.get(exc.status_code, "server_error" if exc.status_code >= 500 else "error")
        return _error_response(exc.status_code, str(exc.detail), code, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return _error_response(500, "Internal server error", "server_error")
