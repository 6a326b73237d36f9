"""
Response builders for consistent error responses
"""

from typing import Optional

from fastapi.responses import JSONResponse

from ..errors import WorkflowError


def build_error_response(status_code: int, error: str, detail: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": detail or error},
    )


def build_workflow_error_response(exc: WorkflowError) -> JSONResponse:
    """Map a workflow error to its HTTP status and ``{"error", "detail"}`` body"""
    return build_error_response(exc.http_status, exc.code, exc.message)


def build_validation_error_response(detail: str) -> JSONResponse:
    return build_error_response(400, "InvalidPayload", detail)
