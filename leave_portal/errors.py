from __future__ import annotations

from collections.abc import Sequence

from fastapi import Request
from fastapi.responses import JSONResponse

CONFLICT_MESSAGE_SEPARATOR = "; "


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message

    @classmethod
    def not_found(cls, code: str, message: str) -> ApiError:
        return cls(status_code=404, code=code, message=message)

    @classmethod
    def conflict(cls, code: str, messages: Sequence[str]) -> ApiError:
        """A refused write; every collected reason is kept in the message."""
        return cls(status_code=409, code=code, message=CONFLICT_MESSAGE_SEPARATOR.join(messages))


class StorageUnavailableError(Exception):
    """Raised when the backing store cannot answer a query or accept a write.

    Never a validation outcome: callers surface the message verbatim.
    """

    def __init__(self, message: str, *, operation: str):
        super().__init__(message)
        self.message = message
        self.operation = operation


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_payload(*, code: str, message: str, request_id: str) -> dict[str, dict[str, str]]:
    return {"error": {"code": code, "message": message, "request_id": request_id}}


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_payload(code=code, message=message, request_id=get_request_id(request)),
    )
