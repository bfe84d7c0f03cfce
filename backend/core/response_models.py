"""
Standard API Response Models

Provides the response envelope shared by every endpoint.
"""

from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, Field


T = TypeVar('T')


class StandardResponse(BaseModel, Generic[T]):
    """
    Standard response envelope for all API endpoints

    Usage:
        return StandardResponse.ok(data=order)
    """
    status: Literal["success", "error"] = Field(description="Outcome of the request")
    data: Optional[T] = Field(None, description="Response payload")
    message: Optional[str] = Field(None, description="Optional status message")

    @classmethod
    def ok(cls, data: Optional[T] = None, message: Optional[str] = None) -> "StandardResponse[T]":
        """Create a successful response"""
        return cls(status="success", data=data, message=message)
