"""
Response Utilities

Helper functions for creating standardized API responses.
"""

from typing import Any, Optional

from .response_models import StandardResponse


def create_response(data: Any = None, message: Optional[str] = None) -> StandardResponse:
    """Create a standard successful response"""
    return StandardResponse.ok(data=data, message=message)
