from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

import logging

logger = logging.getLogger(__name__)


class ExperimentServiceError(Exception):
    """Base class for errors surfaced to API callers as {"error": message}."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ExperimentServiceError):
    """Caller passed values that violate an input contract."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(ExperimentServiceError):
    """Referenced experiment or variant does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class UpstreamUnavailable(ExperimentServiceError):
    """The experiment repository or event store read failed."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def service_error_handler(request: Request, exc: ExperimentServiceError):
    logger.info("%s %s failed with %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(content={"error": exc.message}, status_code=exc.status_code)


async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(content={"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(content={"error": "Internal server error"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(ExperimentServiceError, service_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
