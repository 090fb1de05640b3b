import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.core.exceptions import StorefrontException


def _field_errors(exc: RequestValidationError):
    fields = []
    for error in exc.errors():
        # drop the leading "body"/"query"/"path" segment
        loc = [str(part) for part in error.get("loc", ())[1:]]
        fields.append({"field": ".".join(loc) or "body", "message": error.get("msg", "invalid")})
    return fields


def setup_exception_handlers(app: FastAPI):
    """Register the JSON error handlers"""

    logger = logging.getLogger("error_handler")

    @app.exception_handler(StorefrontException)
    async def storefront_exception_handler(request: Request, exc: StorefrontException):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} for {request.url.path}: {exc.detail}")
        else:
            logger.info(f"{exc.code} for {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "message": exc.detail,
                "errorCode": exc.code,
                "details": exc.data,
            },
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = _field_errors(exc)
        logger.warning(f"Validation error for {request.url.path}: {fields}")
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "Request validation failed",
                "errorCode": "VALIDATION_ERROR",
                "details": {"fields": fields},
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP error {exc.status_code} for {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "message": exc.detail,
                "errorCode": "HTTP_ERROR",
                "details": None,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error for {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Internal server error",
                "errorCode": "INTERNAL_SERVER_ERROR",
                "details": None,
            },
        )
