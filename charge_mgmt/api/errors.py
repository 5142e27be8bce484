"""Exception handlers mapping the domain error taxonomy onto the response envelope"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from charge_mgmt.api.dependencies import get_request_id
from charge_mgmt.api.v1.schemas import ErrorResponse
from charge_mgmt.domain.exceptions import BatchTimeoutError, DomainException

STATUS_KINDS = {
    400: "ValidationError",
    404: "NotFound",
    405: "ValidationError",
    409: "InvalidTransition",
    422: "ValidationError",
    504: "Timeout",
}


def _envelope(status_code: int, error: str, kind: str, data=None) -> JSONResponse:
    body = ErrorResponse(error=error, kind=kind, data=data)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    """Attach envelope-producing handlers to the app"""

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException):
        request_id = get_request_id(request)
        if exc.status_code >= 500:
            logging.error(f"{exc.kind}: {exc.message}", extra={"request_id": request_id})
        else:
            logging.warning(f"{exc.kind}: {exc.message}", extra={"request_id": request_id})

        data = exc.partial if isinstance(exc, BatchTimeoutError) else None
        return _envelope(exc.status_code, exc.message, exc.kind, data)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ())[1:])
            problems.append(f"{location}: {err.get('msg')}" if location else err.get("msg", "invalid"))
        return _envelope(400, "; ".join(problems) or "Invalid request", "ValidationError")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        kind = STATUS_KINDS.get(exc.status_code, "Internal")
        return _envelope(exc.status_code, str(exc.detail), kind)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logging.error(
            f"Unexpected error: {exc}",
            exc_info=exc,
            extra={"request_id": get_request_id(request)},
        )
        return _envelope(500, "Internal server error", "Internal")
