"""
Workflow error taxonomy

Every error carries a stable ``code`` which doubles as the per-item error string
of a bulk result, and the HTTP status used when a single-item call fails.
"""


class WorkflowError(Exception):
    code = "WorkflowError"
    http_status = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class NotFound(WorkflowError):
    code = "NotFound"
    http_status = 404


class InvalidPayload(WorkflowError):
    code = "InvalidPayload"
    http_status = 400


class StorageError(WorkflowError):
    code = "StorageError"
    http_status = 500
