"""
API - Response Envelope.

Every endpoint answers with:

    {"status": "success" | "fail" | "error", "message": str, "data": ...}

"fail" is a client error (4xx), "error" a server error (5xx).
"""

from typing import Any, Optional

from pydantic import BaseModel


class ApiResponse(BaseModel):
    status: str = "success"
    message: str = ""
    data: Optional[Any] = None


def success(data: Any = None, message: str = "") -> dict:
    return ApiResponse(status="success", message=message, data=data).model_dump()


def failure(message: str, status_code: int, data: Any = None) -> dict:
    status = "fail" if status_code < 500 else "error"
    return ApiResponse(status=status, message=message, data=data).model_dump()
