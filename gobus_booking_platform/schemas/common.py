"""
Error envelope shared by every endpoint.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    error_code: str = Field(..., description="Stable code for programmatic handling")
    message: str
    details: Optional[Dict[str, Any]] = Field(None, description="Context such as conflicting seats or field errors")
    suggestions: Optional[List[str]] = None
    retry_after: Optional[int] = Field(None, description="Seconds to wait before retrying")


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: ErrorDetail
    error_id: str = Field(..., description="Identifier to quote when reporting the failure")
    timestamp: datetime

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "error": {
                        "error_code": "SEAT_CONFLICT",
                        "message": "Seats already booked",
                        "details": {"seats": [6]},
                        "suggestions": ["Choose different seats", "Refresh seat availability"],
                    },
                    "error_id": "5f0c2a8e-8d2f-4c53-9a43-3f1f3f6f9d10",
                    "timestamp": "2025-03-01T09:30:00+00:00",
                },
                {
                    "error": {
                        "error_code": "INTERNAL_ERROR",
                        "message": "Reservation could not be completed, please retry",
                        "suggestions": ["Please try again"],
                        "retry_after": 1,
                    },
                    "error_id": "0b8e6f55-1f0e-4b0c-8c1c-7f0f2a8f4e21",
                    "timestamp": "2025-03-01T09:30:01+00:00",
                },
            ]
        }
    }


class SuccessResponse(BaseModel):
    message: str
    data: Optional[Dict[str, Any]] = None
