"""
Common schemas for API responses and error handling.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Schema for detailed error information."""
    
    error_code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    suggestions: Optional[List[str]] = Field(None, description="Helpful suggestions for resolving the error")
    retry_after: Optional[int] = Field(None, description="Seconds to wait before retrying")


class ErrorResponse(BaseModel):
    """Schema for API error responses."""
    
    error: ErrorDetail
    error_id: Optional[str] = Field(None, description="Identifier to correlate with server logs")
    timestamp: Optional[str] = Field(None, description="When the error occurred")
    
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "error": {
                        "error_code": "SEAT_UNAVAILABLE",
                        "message": "Seats not available: 3fa85f64-5717-4562-b3fc-2c963f66afa6",
                        "details": {
                            "seat_ids": ["3fa85f64-5717-4562-b3fc-2c963f66afa6"],
                            "showtime_id": "123e4567-e89b-12d3-a456-426614174000"
                        },
                        "suggestions": [
                            "Choose different seats",
                            "Refresh seat availability"
                        ]
                    },
                    "error_id": "6c1f0c3e-0f7a-4c43-9d43-3f0b5b6b9d1e",
                    "timestamp": "2026-01-01T12:00:00"
                }
            ]
        }
    }


class SuccessResponse(BaseModel):
    """Schema for simple success responses."""
    
    message: str = Field(..., description="Success message")
    data: Optional[Dict[str, Any]] = Field(None, description="Additional response data")


class HealthStatus(BaseModel):
    """Schema for health check responses."""
    
    status: str = Field(..., description="Overall health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: str = Field(..., description="Health check timestamp")
    dependencies: Optional[Dict[str, Dict[str, Any]]] = Field(
        None, 
        description="Status of service dependencies"
    )
