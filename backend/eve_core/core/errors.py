# eve_core/core/errors.py

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from eve_core.core.logging_config import trace_id_var


def _describe_validation_error(exc: RequestValidationError) -> str:
    """First validation problem rendered as a readable sentence."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query")]
    field = location[-1] if location else ""
    if first.get("type") in ("missing", "string_too_short"):
        return f"Missing required parameter: {field}" if field else "Missing request body"
    if first.get("type") == "json_invalid":
        return "Malformed JSON body"
    if first.get("type") in ("model_attributes_type", "model_type", "dict_type") and not location:
        return "Request body must be a JSON object"
    if first.get("type") == "union_tag_invalid":
        tag = first.get("ctx", {}).get("tag", "")
        return f"Unsupported operation: {tag}"
    if first.get("type") == "union_tag_not_found":
        return "Missing required parameter: operation"
    if first.get("type") in ("enum", "literal_error") and field in ("operation", "endpoint"):
        value = first.get("input")
        return f"Unsupported OpenAI endpoint: {value}" if field == "endpoint" else f"Unsupported operation: {value}"
    message = first.get("msg", "Invalid value")
    return f"Invalid parameter {field}: {message}" if field else message


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _describe_validation_error(exc)
    logger.bind(trace_id=trace_id_var.get()).info(f"Validation error on {request.method} {request.url.path}: {message}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.bind(trace_id=trace_id_var.get()).opt(exception=exc).error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}"
    )
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
