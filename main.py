import logging

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from shortlink_app.config import settings
from shortlink_app.logging_config import setup_logging
from shortlink_app.schemas.url import error_response
from shortlink_app.api.v1 import urls, redirect

setup_logging(level=settings.log_level, json_format=settings.log_json)
logger = logging.getLogger("shortlink_app.main")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="A URL shortener service built with FastAPI",
    debug=settings.debug
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 {"message": ...}"""
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body")
        problems.append(f"{field}: {error['msg']}" if field else error["msg"])
    message = "; ".join(problems) or "Invalid request"
    logger.info(f"Validation error on {request.url.path}: {message}")
    return error_response(status.HTTP_400_BAD_REQUEST, message)


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "environment": settings.environment,
        "storage_backend": settings.storage_backend
    }


######## Include routers
app.include_router(urls.router)
# Catch-all /{short_code} lives here, so this router goes last
app.include_router(redirect.router)


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
