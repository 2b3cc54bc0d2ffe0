import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base error carrying the HTTP status it should be rendered with."""

    status_code = 500
    default_message = "Server error"

    def __init__(
        self, message: Optional[str] = None, errors: Optional[List[Dict]] = None
    ):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        if self.errors is not None:
            body["errors"] = self.errors
        return body


class ValidationFailed(ServiceError):
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, errors, message: Optional[str] = None):
        super().__init__(
            message, [e.as_dict() if hasattr(e, "as_dict") else e for e in errors]
        )


class Unauthenticated(ServiceError):
    status_code = 401
    default_message = "Authentication required"


class AccessDenied(ServiceError):
    status_code = 403
    default_message = "Access denied"


class NotFound(ServiceError):
    status_code = 404
    default_message = "Not found"


class Conflict(ServiceError):
    status_code = 409
    default_message = "Conflict"


class ServerError(ServiceError):
    status_code = 500


def _request_validation_errors(exc: RequestValidationError) -> List[Dict]:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body",)]
        # drop the source ("query", "path") prefix but keep nested names
        if loc and loc[0] in ("query", "path", "header"):
            loc = loc[1:]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg")})
    return errors


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "message": "Validation failed",
                "errors": _request_validation_errors(exc),
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"message": "Server error"})
