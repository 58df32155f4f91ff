"""
Image Generation Schemas

Request/response models for image generation, quota, storage and
provider diagnostics endpoints.
"""

from __future__ import annotations

from typing import Literal, get_args
from uuid import UUID

from pydantic import BaseModel, Field

ImageStyle = Literal["photorealistic", "artistic", "cartoon", "minimalist"]
AspectRatio = Literal["1:1", "16:9", "9:16", "3:4", "4:3"]

IMAGE_STYLES: tuple[str, ...] = get_args(ImageStyle)
ASPECT_RATIOS: tuple[str, ...] = get_args(AspectRatio)
DEFAULT_STYLE: ImageStyle = "photorealistic"


class GenerationRequest(BaseModel):
    """Request body for image generation on a note."""

    style: ImageStyle = Field(default=DEFAULT_STYLE, description="Visual style")
    aspect_ratio: AspectRatio | None = Field(
        default=None,
        description="Requested ratio; chosen from the prompt when unset",
    )
    use_existing_images: bool = Field(
        default=False,
        description="Use the note's current images as style reference",
    )


class GenerationResult(BaseModel):
    """Successful generation payload (real or fallback image)."""

    image_url: str = Field(description="Durable URL of the stored image")
    prompt: str = Field(description="Prompt actually used, '[Fallback: ...]' prefixed on fallback")
    image_id: UUID = Field(description="Stored object id")
    generations_remaining: int = Field(ge=0, description="Quota hint for today")
    is_fallback: bool = Field(default=False, description="True if a placeholder was stored")
    aspect_ratio: AspectRatio = Field(description="Ratio sent to the provider")


class ScheduledGeneration(BaseModel):
    """Response for a generation queued in the background."""

    note_id: int
    status: str = Field(default="scheduled")
    message: str


class QuotaStatus(BaseModel):
    """Today's generation usage for the caller."""

    used: int = Field(ge=0)
    limit: int = Field(gt=0)
    remaining: int = Field(ge=0)


class StoredObjectResponse(BaseModel):
    """Response for an uploaded object."""

    object_id: UUID
    url: str
    mime_type: str
    size: int


class ConnectionTestRequest(BaseModel):
    """Request body for a provider connectivity test."""

    prompt: str = Field(
        default="photorealistic style: beautiful sunset over mountains",
        min_length=1,
        max_length=500,
    )


class ConnectionTestResult(BaseModel):
    """Outcome of a provider connectivity test."""

    success: bool
    message: str
    image_preview: str | None = Field(
        default=None, description="First 100 chars of the returned image URL"
    )


class DiagnosticsRequest(BaseModel):
    """Request body for provider diagnostics."""

    error_message: str | None = Field(default=None, description="Error text to analyze")
    test_generation: bool = Field(default=False, description="Also run a live test call")


class ProviderStatusResponse(BaseModel):
    api_key_present: bool
    api_key_valid: bool
    has_credits: bool
    model_available: bool
    last_error: str | None = None


class ErrorAnalysisResponse(BaseModel):
    error_type: str
    severity: Literal["low", "medium", "high", "critical"]
    category: str
    root_cause: str
    solutions: list[str] = Field(default_factory=list)
    fallback_available: bool = True


class DiagnosticsResponse(BaseModel):
    status: ProviderStatusResponse
    analysis: ErrorAnalysisResponse
    test: ConnectionTestResult | None = None
    recommendations: list[str] = Field(default_factory=list)
    can_proceed: bool
