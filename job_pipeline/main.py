import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .api.bulk import router as bulk_router
from .api.health import router as health_router
from .api.jobs import router as jobs_router
from .api.prometheus import router as prometheus_router
from .api.response_builders import (
    build_error_response, build_validation_error_response, build_workflow_error_response,
)
from .config import API_PREFIX, API_VERSION, AUTO_CREATE_SCHEMA
from .db import init_db
from .errors import WorkflowError
from .logging_config import setup_logging
from .middleware import TracingMiddleware
from .services.side_effects import side_effects

# Configure logging at import time
setup_logging()

logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(application: FastAPI):
    logger.info("Job pipeline starting up", extra={"component": "api", "version": API_VERSION})

    if AUTO_CREATE_SCHEMA:
        init_db()

    # Bind the dispatcher queue to the active event loop
    side_effects.initialize()
    await side_effects.start_workers()

    logger.info("Job pipeline ready", extra={
        "component": "api",
        "dispatch_workers": side_effects.worker_pool_size
    })

    try:
        yield
    finally:
        await side_effects.stop_workers()
        logger.info("Job pipeline shutting down", extra={"component": "api"})


app = FastAPI(title="Job Pipeline Workflow API", version=API_VERSION, lifespan=lifespan)

# Add tracing middleware
app.add_middleware(TracingMiddleware)


class ApiVersionHeaderMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-API-Version"] = "v1"
        return response


app.add_middleware(ApiVersionHeaderMiddleware)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    if exc.http_status >= 500:
        logger.error("Workflow request failed", extra={
            "component": "api", "path": request.url.path, "error": exc.code, "detail": exc.message
        })
    return build_workflow_error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
    else:
        detail = "Invalid request"
    return build_validation_error_response(detail)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    error = {401: "Unauthorized", 403: "Forbidden", 404: "NotFound"}.get(exc.status_code, "HTTPError")
    if exc.status_code == 400:
        error = "InvalidPayload"
    return build_error_response(exc.status_code, error, str(exc.detail))


app.include_router(health_router, prefix=API_PREFIX)
app.include_router(prometheus_router, prefix=API_PREFIX)
app.include_router(jobs_router, prefix=API_PREFIX)
app.include_router(bulk_router, prefix=API_PREFIX)


# Server startup configuration
if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("APP_PORT", "8080"))
    uvicorn.run("job_pipeline.main:app", host="0.0.0.0", port=port)
