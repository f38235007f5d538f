"""Response envelope shared by every business endpoint."""

from typing import Any

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    code: str
    message: str
    gateway_code: Any = None


class ApiResponse(BaseModel):
    success: bool
    message: str
    data: Any = None
    error: ErrorDetail | None = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ApiResponse":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, code: str, gateway_code: Any = None) -> "ApiResponse":
        return cls(
            success=False,
            message=message,
            error=ErrorDetail(code=code, message=message, gateway_code=gateway_code),
        )
