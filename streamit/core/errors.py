"""Error taxonomy for the video service.

Policy and validation errors are raised from services and converted to JSON
responses by the handlers installed in ``streamit.main``. Pipeline errors never
reach this layer; the pipeline resolves them to ``status=failed``.
"""
from fastapi import status


class StreamitError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "internal"
    default_message: str = "An internal server error occurred."

    def __init__(self, message: str | None = None, headers: dict[str, str] | None = None):
        self.message = message or self.default_message
        self.headers = headers or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message}


class InvalidMedia(StreamitError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "invalid_media"
    default_message = "invalid file type"


class Unauthenticated(StreamitError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "unauthenticated"
    default_message = "unauthenticated"


class Forbidden(StreamitError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"
    default_message = "forbidden"


class ForbiddenTenantMismatch(Forbidden):
    error_code = "forbidden_tenant_mismatch"
    default_message = "forbidden - tenant mismatch"


class InsufficientRole(Forbidden):
    error_code = "insufficient_role"
    default_message = "insufficient role"


class NotFound(StreamitError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    default_message = "not found"


class InvalidTransition(StreamitError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "invalid_transition"
    default_message = "invalid status transition"


class PayloadTooLarge(StreamitError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    error_code = "payload_too_large"
    default_message = "file too large"


class RangeNotSatisfiable(StreamitError):
    status_code = status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE
    error_code = "range_not_satisfiable"
    default_message = "requested range not satisfiable"

    def __init__(self, total: int, message: str | None = None):
        super().__init__(message, headers={"Content-Range": f"bytes */{total}"})
        self.total = total


class InternalFailure(StreamitError):
    pass


class PipelineBusy(Exception):
    """A processing task is already active for this item."""

    def __init__(self, item_id):
        super().__init__(f"pipeline already running for {item_id}")
        self.item_id = item_id


class ItemGone(Exception):
    """The record was removed while a task still held a reference to it."""

    def __init__(self, item_id):
        super().__init__(f"item {item_id} no longer exists")
        self.item_id = item_id


class ItemSuperseded(Exception):
    """Another writer moved the item out of the state a task expected."""

    def __init__(self, item_id, status: str | None = None):
        super().__init__(f"item {item_id} is now {status or 'released'}")
        self.item_id = item_id
        self.status = status
