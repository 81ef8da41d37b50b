"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for the health check endpoint."""

    status: Literal["ok"] = Field(default="ok", description="Service status")
    service: str = Field(default="auth2", description="Service name")
    environment: str = Field(description="Current app environment (e.g. dev, prod)")
    database: Literal["connected", "disconnected"] | None = Field(
        default=None,
        description="Database connectivity status when check is performed",
    )
    email_delivery: Literal["enabled", "disabled"] = Field(
        description="Whether verification emails are actually sent (SEND_EMAILS)",
    )
    sms_delivery: Literal["enabled", "disabled"] = Field(
        description="Whether SMS codes go out through carrier gateways (SEND_SMS)",
    )
