"""Pydantic response schemas for the pixgate API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned for any failed image request."""

    err: str = Field(description="Short, stable description of the failure class")
    msg: str = Field(description="Diagnostic message from the failing component")
