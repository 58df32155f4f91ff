"""
Provider Diagnostics

Inspects the image provider setup and explains provider error messages.

Used by the diagnostics endpoint and scripts/check_provider.py to answer:
is the credential present and accepted, are there credits left, is the
configured model served, and what does a given error message mean.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Final

import httpx

from notecanvas.services.providers import ConnectionTest, ImageProvider

logger = logging.getLogger(__name__)


@dataclass
class ProviderStatus:
    api_key_present: bool = False
    api_key_valid: bool = False
    has_credits: bool = False
    model_available: bool = False
    last_error: str | None = None


@dataclass
class ErrorAnalysis:
    error_type: str = "unknown"
    severity: str = "medium"
    category: str = "general"
    root_cause: str = "Undefined error"
    solutions: list[str] = field(default_factory=list)
    fallback_available: bool = True


@dataclass(frozen=True)
class _ErrorPattern:
    pattern: re.Pattern[str]
    error_type: str
    severity: str
    category: str
    root_cause: str
    solutions: tuple[str, ...]


# Checked in order, first match wins
ERROR_PATTERNS: Final[tuple[_ErrorPattern, ...]] = (
    _ErrorPattern(
        re.compile(r"insufficient.*credit", re.IGNORECASE),
        "insufficient_credits",
        "high",
        "billing",
        "Provider account has insufficient credits for image generation",
        (
            "Add credits to the provider account",
            "Switch to a free tier model if available",
            "Rely on fallback placeholder images meanwhile",
        ),
    ),
    _ErrorPattern(
        re.compile(r"api.*key.*invalid|invalid.*api.*key", re.IGNORECASE),
        "invalid_api_key",
        "critical",
        "authentication",
        "Provider API key is invalid or expired",
        (
            "Verify the key in the provider dashboard",
            "Regenerate the key if expired",
            "Check the OPENROUTER_API_KEY environment variable",
        ),
    ),
    _ErrorPattern(
        re.compile(r"model.*not.*available|no endpoints", re.IGNORECASE),
        "model_unavailable",
        "high",
        "service",
        "The configured image model is not available",
        (
            "Check the provider model status page",
            "Set IMAGE_MODEL to an alternative image model",
            "Wait for the model to become available",
        ),
    ),
    _ErrorPattern(
        re.compile(r"rate.*limit", re.IGNORECASE),
        "rate_limited",
        "medium",
        "throttling",
        "Provider rate limit exceeded",
        (
            "Reduce generation frequency",
            "Queue requests for later processing",
            "Upgrade the provider plan",
        ),
    ),
    _ErrorPattern(
        re.compile(r"undefined|no image in provider response|keyerror", re.IGNORECASE),
        "undefined_property",
        "medium",
        "code",
        "Provider response did not have the expected structure",
        (
            "Validate the provider response structure",
            "Check whether the model returns images for this request",
        ),
    ),
    _ErrorPattern(
        re.compile(r"network.*error|fetch.*failed|connection|timeout|unreachable", re.IGNORECASE),
        "network_error",
        "medium",
        "connectivity",
        "Network connectivity issues with the provider",
        (
            "Check outbound connectivity",
            "Increase IMAGE_TIMEOUT",
            "Rely on fallback placeholder images during outages",
        ),
    ),
)


def analyze_error(message: str | None) -> ErrorAnalysis:
    """Classify a provider error message into a typed analysis."""
    if not message or not message.strip():
        return ErrorAnalysis(
            error_type="no_error_provided",
            severity="low",
            category="diagnostic",
            root_cause="No specific error to analyze",
            solutions=["Run a test generation to identify issues"],
        )

    for entry in ERROR_PATTERNS:
        if entry.pattern.search(message):
            return ErrorAnalysis(
                error_type=entry.error_type,
                severity=entry.severity,
                category=entry.category,
                root_cause=entry.root_cause,
                solutions=list(entry.solutions),
            )

    return ErrorAnalysis(
        error_type="unknown",
        severity="medium",
        category="unknown",
        root_cause=f"Unrecognized error pattern: {message[:100]}",
        solutions=[
            "Check the provider documentation for similar errors",
            "Contact provider support",
        ],
    )


def _has_credits(payload: dict) -> bool:
    data = payload.get("data", payload)
    limit = data.get("limit")
    if limit is None:
        return True  # Unlimited key
    usage = data.get("usage") or 0
    return usage < limit


async def check_configuration(provider: ImageProvider) -> ProviderStatus:
    """
    Check credential, credits and model availability. Never raises.

    Queries GET /auth/key and GET /models on the provider client.
    """
    status = ProviderStatus()
    client = provider.client
    if client is None:
        status.last_error = "OPENROUTER_API_KEY not configured"
        return status
    status.api_key_present = True

    try:
        response = await client.get("/auth/key")
        if response.is_success:
            status.api_key_valid = True
            status.has_credits = _has_credits(response.json())
        else:
            status.last_error = f"API key validation failed: {response.status_code}"

        models = await client.get("/models")
        if models.is_success:
            listed = {
                entry.get("id"): entry
                for entry in models.json().get("data", [])
                if isinstance(entry, dict)
            }
            entry = listed.get(provider.model)
            status.model_available = entry is not None and not entry.get("disabled", False)
        else:
            status.last_error = status.last_error or f"Model listing failed: {models.status_code}"
    except (httpx.HTTPError, ValueError, AttributeError) as e:
        logger.warning("Provider configuration check failed: %s", e)
        status.last_error = str(e) or type(e).__name__

    return status


def build_recommendations(
    status: ProviderStatus,
    analysis: ErrorAnalysis,
    test: ConnectionTest | None = None,
) -> list[str]:
    recommendations: list[str] = []

    if not status.api_key_present:
        recommendations.append("Set OPENROUTER_API_KEY; images use fallback placeholders until then")
    elif not status.api_key_valid:
        recommendations.append("The provider rejected the API key: regenerate it")
    if status.api_key_valid and not status.has_credits:
        recommendations.append("Add credits to the provider account")
    if status.api_key_valid and not status.model_available:
        recommendations.append("Check that the configured IMAGE_MODEL is listed by the provider")

    if analysis.error_type == "insufficient_credits":
        recommendations.append("Fallback placeholders are stored until credits are added")
    if analysis.error_type == "undefined_property":
        recommendations.append("Inspect the raw provider response for the image payload")

    if test is not None and not test.success:
        recommendations.append("Test generation failed: debug provider connectivity first")

    return recommendations


def can_proceed(status: ProviderStatus, analysis: ErrorAnalysis) -> bool:
    """Generation can be attempted: credential accepted and no critical error."""
    if not status.api_key_valid:
        return False
    if analysis.severity == "critical":
        return False
    if analysis.fallback_available:
        return True
    return status.has_credits and status.model_available
