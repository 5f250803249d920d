from typing import Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check payload."""

    status: str
    version: str
    uptime_s: int


class ErrorDetail(BaseModel):
    """Error details model."""

    type: str
    message: str
    status: int
    details: Optional[dict] = None


class ErrorResponse(BaseModel):
    """Error response model."""

    error: ErrorDetail

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "error": {
                        "type": "forbidden",
                        "message": "Domain not allowed",
                        "status": 403,
                        "details": None
                    }
                }
            ]
        }
    }
