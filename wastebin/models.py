"""
Pydantic models for request/response validation.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PasteCreate(BaseModel):
    """Schema for creating a new paste."""
    content: str = Field(..., description="Text content (required, non-empty, UTF-8)")
    language: str = Field("", description="Syntax highlighting tag, empty for plain text")
    burn: bool = Field(False, description="Delete the paste once it has been read")
    expiry_minutes: int = Field(..., description="Minutes until expiry (1 to 525600)")


class PasteResponse(BaseModel):
    """Schema for paste creation response."""
    id: str = Field(..., description="Unique paste ID")
    url: str = Field(..., description="Shareable URL to view the paste")
    message: str = Field("Paste created successfully")


class PasteView(BaseModel):
    """Schema for viewing/fetching a paste."""
    id: str = Field(..., description="Unique paste ID")
    content: str = Field(..., description="Paste text content")
    language: str = Field(..., description="Syntax highlighting tag")
    burn: bool = Field(..., description="Whether the paste is burned after reading")
    expiry_timestamp: datetime = Field(..., description="Expiry timestamp (ISO 8601)")
    created_at: datetime = Field(..., description="Creation timestamp (ISO 8601)")


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Schema for error responses."""
    error: str = Field(..., description="Human readable error message")
    code: str = Field(..., description="Stable error code")
    reason: Optional[str] = Field(None, description="Failing stage for health checks")


class HealthCheck(BaseModel):
    """Schema for health check response."""
    ok: bool = Field(..., description="Is the application healthy?")


class DatabaseHealth(BaseModel):
    """Schema for the database health check response."""
    status: str
    service: str = "database"
    timestamp: datetime
