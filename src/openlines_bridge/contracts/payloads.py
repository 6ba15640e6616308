"""
API Payload Models

Pydantic models for the service API request and response bodies.
"""

from typing import Any

from pydantic import BaseModel, Field


class SendTestRequest(BaseModel):
    """Body of POST /api/test-send."""

    to: str = Field(..., description="Recipient phone number, country code without + or 00")
    message: str = Field(..., description="Message text (caption for media sends)")
    media_url: str = Field("", description="Public URL of the media to send")
    media_type: str = Field("", description="image, video, audio or document")


class SuccessResponse(BaseModel):
    success: bool


class ConnectionStatus(BaseModel):
    """Result of the upstream connectivity check."""

    whatsapp: bool = False
    bitrix24: bool = False
    whatsapp_info: dict[str, Any] | None = None
    bitrix24_info: dict[str, Any] | None = None
    errors: list[str] = Field(default_factory=list)
