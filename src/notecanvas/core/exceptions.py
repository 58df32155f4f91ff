"""
Domain Exceptions

Error taxonomy shared by services and routers. Routers translate these to
HTTP status codes; provider errors are recovered inside the pipeline and
never reach the caller.
"""

from __future__ import annotations

from typing import Final

# Fallback reason codes, also used to style the fallback image
INSUFFICIENT_CREDITS: Final[str] = "insufficient_credits"
MODEL_UNAVAILABLE: Final[str] = "model_unavailable"
UNDEFINED_PROPERTIES: Final[str] = "undefined_properties"
GENERIC_ERROR: Final[str] = "generic_error"

FALLBACK_REASONS: Final[tuple[str, ...]] = (
    INSUFFICIENT_CREDITS,
    MODEL_UNAVAILABLE,
    UNDEFINED_PROPERTIES,
    GENERIC_ERROR,
)


class NoteCanvasError(Exception):
    """Base class for all application errors."""


class Unauthenticated(NoteCanvasError):
    """No verified caller identity."""


class NoteNotFound(NoteCanvasError):
    """Note does not exist or is not owned by the caller."""

    def __init__(self, note_id: int) -> None:
        super().__init__(f"Note {note_id} not found")
        self.note_id = note_id


class RateLimited(NoteCanvasError):
    """Daily generation cap reached for the owner."""

    def __init__(self, used: int, limit: int) -> None:
        super().__init__(f"Daily generation limit reached ({used}/{limit})")
        self.used = used
        self.limit = limit


class StorageFailure(NoteCanvasError):
    """Object storage rejected a write or could not produce a URL."""


class ProviderUnavailable(NoteCanvasError):
    """
    External provider could not serve the request.

    Attributes:
        reason: One of FALLBACK_REASONS, used by the fallback generator.
        status_code: HTTP status returned by the provider, if any.
    """

    def __init__(
        self,
        message: str,
        reason: str = GENERIC_ERROR,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


class InsufficientCredits(ProviderUnavailable):
    """Provider account has no credits left (HTTP 402)."""

    def __init__(self, message: str, status_code: int | None = 402) -> None:
        super().__init__(message, reason=INSUFFICIENT_CREDITS, status_code=status_code)


class UnknownImages(NoteCanvasError):
    """Referenced stored objects do not exist or belong to another owner."""

    def __init__(self, object_ids: list) -> None:
        super().__init__(f"Unknown image ids: {', '.join(str(i) for i in object_ids)}")
        self.object_ids = object_ids


class ImagePayloadError(NoteCanvasError):
    """
    Image reference could not be turned into bytes.

    Raised for undecodable data URLs, unsupported URL schemes, failed
    fetches and empty payloads. The pipeline maps it to a fallback reason
    when the image came from the provider.

    Attributes:
        reason: One of FALLBACK_REASONS.
    """

    def __init__(self, message: str, reason: str = UNDEFINED_PROPERTIES) -> None:
        super().__init__(message)
        self.reason = reason
