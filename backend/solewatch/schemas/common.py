"""Common Pydantic schemas used across the API."""

from typing import Dict, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard API response envelope."""

    status: str = "success"
    data: T
    message: Optional[str] = None


class HealthCheckResponse(BaseModel):
    status: str
    environment: str
    checks: Dict[str, str]
