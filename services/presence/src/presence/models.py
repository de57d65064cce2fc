"""Pydantic models for request/response validation."""

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Session models
# ---------------------------------------------------------------------------


class SigninResponse(BaseModel):
    """Response from signing in."""

    nick: str
    users: List[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error body for rejected requests."""

    error: str
    detail: str


# ---------------------------------------------------------------------------
# Client configuration
# ---------------------------------------------------------------------------


class ClientConfigResponse(BaseModel):
    """Settings handed to the client worker at startup."""

    model_config = ConfigDict(populate_by_name=True)

    ws_url: str = Field(..., alias="WSURL")
    root_url: str = Field(..., alias="ROOTURL")
    debug: bool = Field(False, alias="DEBUG")


# ---------------------------------------------------------------------------
# Health/Root models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    users: int = 0
    connected: int = 0


class RootResponse(BaseModel):
    """Root endpoint response."""

    service: str
    status: str
    endpoints: Dict[str, str]
