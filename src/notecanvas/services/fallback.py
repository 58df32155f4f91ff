"""
Fallback Image Generator

Produces a displayable placeholder when no provider call succeeded, so the
generation pipeline always has an image to store.

Strategy A renders a small SVG locally: a background color and emoji label
per failure reason plus a few keywords from the prompt. Strategy B, used only
if rendering itself fails, is a static remote placeholder URL.
"""

from __future__ import annotations

import base64
import logging
import re
from dataclasses import dataclass
from typing import Final
from xml.sax.saxutils import escape

from notecanvas.core.exceptions import (
    GENERIC_ERROR,
    INSUFFICIENT_CREDITS,
    MODEL_UNAVAILABLE,
    UNDEFINED_PROPERTIES,
)

logger = logging.getLogger(__name__)

CANVAS_SIZE: Final[int] = 512
STATIC_PLACEHOLDER_URL: Final[str] = (
    "https://via.placeholder.com/512x512/4F46E5/FFFFFF?text=Image+Preview"
)


@dataclass(frozen=True)
class FallbackStyle:
    background: str
    emoji: str
    label: str
    text_color: str = "#FFFFFF"


FALLBACK_STYLES: Final[dict[str, FallbackStyle]] = {
    INSUFFICIENT_CREDITS: FallbackStyle("#FF6B6B", "💳", "Credits Required"),
    MODEL_UNAVAILABLE: FallbackStyle("#4ECDC4", "🤖", "Model Offline"),
    UNDEFINED_PROPERTIES: FallbackStyle("#45B7D1", "🛡️", "Code Error"),
    GENERIC_ERROR: FallbackStyle("#96CEB4", "🔄", "Fallback Mode"),
}

_NON_WORD = re.compile(r"[^\w\s]")


def prompt_keywords(prompt: str, limit: int = 3) -> str:
    """First `limit` words longer than 3 characters, punctuation stripped."""
    words = [word for word in _NON_WORD.sub("", prompt).split() if len(word) > 3]
    return " ".join(words[:limit]) or "Image"


def style_for(reason: str) -> FallbackStyle:
    return FALLBACK_STYLES.get(reason, FALLBACK_STYLES[GENERIC_ERROR])


def render_svg(prompt: str, reason: str, size: int = CANVAS_SIZE) -> str:
    """Render the placeholder SVG document for a failed prompt."""
    style = style_for(reason)
    label = escape(f"{style.emoji} {style.label}")
    keywords = escape(prompt_keywords(prompt))
    center = size // 2
    return (
        f'<svg width="{size}" height="{size}" xmlns="http://www.w3.org/2000/svg">'
        f'<rect width="100%" height="100%" fill="{style.background}"/>'
        f'<text x="{center}" y="{center - 20}" font-family="Arial, sans-serif" '
        f'font-size="28" fill="{style.text_color}" text-anchor="middle">{label}</text>'
        f'<text x="{center}" y="{center + 24}" font-family="Arial, sans-serif" '
        f'font-size="20" fill="{style.text_color}" text-anchor="middle">{keywords}</text>'
        f'<text x="{center}" y="{size - 24}" font-family="monospace" '
        f'font-size="12" fill="{style.text_color}" text-anchor="middle">{escape(reason)}</text>'
        "</svg>"
    )


class FallbackGenerator:
    """
    Always returns an image URL (base64 SVG data URL, else static URL).

    Usage::

        image_url = FallbackGenerator().generate("sunset over mountains", "generic_error")
    """

    def __init__(self, size: int = CANVAS_SIZE, static_url: str = STATIC_PLACEHOLDER_URL) -> None:
        self._size = size
        self._static_url = static_url

    def generate(self, prompt: str, reason: str) -> str:
        """Produce a placeholder for the failed prompt. Never raises."""
        try:
            svg = render_svg(prompt, reason, self._size)
            encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
        except Exception:
            logger.exception("Placeholder rendering failed, using static placeholder")
            return self._static_url

        logger.info("Fallback placeholder rendered (reason=%s)", reason)
        return f"data:image/svg+xml;base64,{encoded}"
