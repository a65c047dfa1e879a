import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cadence_cli.errors import CadenceError

logger = logging.getLogger("cadence.errors")


def _error_body(status_code: int, message: str, **extra):
    body = {"status": status_code, "error": message}
    body.update(extra)
    return body


def register_error_handlers(app: FastAPI):
    @app.exception_handler(CadenceError)
    async def cadence_exc_handler(request: Request, exc: CadenceError):
        logger.warning(
            "%s path=%s status=%s message=%r",
            type(exc).__name__, request.url.path, exc.status_code, exc.message
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.status_code, exc.message),
        )

    @app.exception_handler(HTTPException)
    async def http_exc_handler(request: Request, exc: HTTPException):
        logger.warning(
            "HTTPException path=%s status=%s detail=%r",
            request.url.path, exc.status_code, exc.detail
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.status_code, str(exc.detail) if exc.detail else "HTTP error"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            "ValidationError path=%s errors=%s",
            request.url.path, exc.errors()
        )
        # Missing or malformed fields are a client error, as for any other bad input
        return JSONResponse(
            status_code=400,
            content=_error_body(400, "Validation error", details=jsonable_errors(exc)),
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error at path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body(500, "Internal server error"),
        )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
