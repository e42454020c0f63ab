from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import logging

from .exceptions import AutomationError

logger = logging.getLogger(__name__)

async def automation_exception_handler(request: Request, exc: AutomationError):
    """Handle automation exceptions raised by services"""
    logger.error(f"Automation error: {exc.message} - Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "error": exc.__class__.__name__}
    )

async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed request fields are reported as 400"""
    fields = [".".join(str(part) for part in err["loc"] if part != "body") for err in exc.errors()]
    logger.warning(f"Invalid request on {request.url.path}: {fields}")
    return JSONResponse(
        status_code=400,
        content={"message": f"Invalid or missing fields: {', '.join(fields)}", "error": "ValidationError"}
    )

async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Storage errors are passed through to the client"""
    logger.error(f"Database error: {exc} - Path: {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"message": "Database error", "error": str(exc)}
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.exception(f"Unexpected error: {exc} - Path: {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error", "error": str(exc)}
    )

def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(AutomationError, automation_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
