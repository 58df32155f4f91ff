"""
Provider Clients

Construction of the external provider clients and the image-generation
client itself.

Design:
    - Clients are built once per process (application lifespan) and injected
      into the pipeline. No module-level client cache.
    - A missing credential is detected before any network call: no client is
      built and callers go straight to their fallback path.
    - The image provider raises typed errors (ProviderUnavailable,
      InsufficientCredits) carrying a fallback reason code.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx
from openai import AsyncOpenAI

from notecanvas.core.config import Settings
from notecanvas.core.exceptions import (
    GENERIC_ERROR,
    MODEL_UNAVAILABLE,
    UNDEFINED_PROPERTIES,
    InsufficientCredits,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)

_INSUFFICIENT_CREDITS = re.compile(r"insufficient.*credit", re.IGNORECASE)
_MODEL_UNAVAILABLE = re.compile(r"model.*not.*available|no endpoints", re.IGNORECASE)


def classify_http_failure(status_code: int, body: str) -> ProviderUnavailable:
    """Map a non-2xx provider response to a typed provider error."""
    message = f"Image provider error: {status_code} - {body[:300]}"
    if status_code == 402 or _INSUFFICIENT_CREDITS.search(body):
        return InsufficientCredits(message, status_code=status_code)
    if status_code == 404 or _MODEL_UNAVAILABLE.search(body):
        return ProviderUnavailable(message, reason=MODEL_UNAVAILABLE, status_code=status_code)
    return ProviderUnavailable(message, reason=GENERIC_ERROR, status_code=status_code)


def extract_image_url(data: Any) -> str:
    """
    Pull ``choices[0].message.images[0].image_url.url`` out of a response.

    Raises:
        ProviderUnavailable: reason undefined_properties if any level is missing.
    """
    try:
        url = data["choices"][0]["message"]["images"][0]["image_url"]["url"]
    except (KeyError, IndexError, TypeError) as e:
        raise ProviderUnavailable(
            f"No image in provider response ({type(e).__name__}: {e})",
            reason=UNDEFINED_PROPERTIES,
        ) from e
    if not isinstance(url, str) or not url:
        raise ProviderUnavailable("Empty image URL in provider response", reason=UNDEFINED_PROPERTIES)
    return url


@dataclass
class ConnectionTest:
    success: bool
    message: str
    image_preview: str | None = None


class ImageProvider:
    """
    Image generation through an OpenAI-compatible chat completions endpoint
    that returns images (OpenRouter + Gemini image models).

    Usage::

        provider = ImageProvider(build_image_client(settings), model="google/gemini-2.5-flash-image")
        data_url = await provider.generate("sunset over mountains", aspect_ratio="16:9")
    """

    def __init__(self, client: httpx.AsyncClient | None, model: str) -> None:
        """
        Args:
            client: Pre-configured client (base URL, bearer header, timeout),
                or None when no credential is configured.
            model: Image model identifier.
        """
        self._client = client
        self._model = model

    @property
    def configured(self) -> bool:
        return self._client is not None

    @property
    def model(self) -> str:
        return self._model

    @property
    def client(self) -> httpx.AsyncClient | None:
        return self._client

    async def generate(
        self,
        prompt: str,
        aspect_ratio: str,
        reference_image_urls: tuple[str, ...] = (),
    ) -> str:
        """
        Generate one image.

        Returns:
            The image as returned by the provider (normally a base64 data URL).

        Raises:
            InsufficientCredits: HTTP 402 or credit error body.
            ProviderUnavailable: Missing credential, other non-2xx status,
                timeout, transport error or malformed response.
        """
        if self._client is None:
            raise ProviderUnavailable("Image provider credential missing", reason=GENERIC_ERROR)

        content: str | list[dict[str, Any]] = prompt
        if reference_image_urls:
            # Multimodal message: instruction first, then the style references
            content = [
                {
                    "type": "text",
                    "text": (
                        f"Using the style inspiration provided, {prompt}. "
                        "Enhance quality and maintain visual coherence."
                    ),
                },
                *({"type": "image_url", "image_url": {"url": url}} for url in reference_image_urls),
            ]

        payload = {
            "model": self._model,
            "messages": [{"role": "user", "content": content}],
            "modalities": ["image", "text"],
            "image_config": {"aspect_ratio": aspect_ratio},
        }

        try:
            response = await self._client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as e:
            raise ProviderUnavailable(f"Image provider timeout: {e}", reason=GENERIC_ERROR) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable(
                f"Image provider unreachable ({type(e).__name__}): {e}", reason=GENERIC_ERROR
            ) from e

        if response.is_error:
            raise classify_http_failure(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderUnavailable(
                "Image provider returned non-JSON body", reason=UNDEFINED_PROPERTIES
            ) from e

        image_url = extract_image_url(data)
        logger.info(
            "Image generated (model=%s, ratio=%s): %s...",
            self._model,
            aspect_ratio,
            image_url[:50],
        )
        return image_url

    async def test_connection(self, prompt: str) -> ConnectionTest:
        """Run one generation call and report the outcome. Never raises."""
        try:
            image_url = await self.generate(prompt, aspect_ratio="1:1")
        except ProviderUnavailable as e:
            logger.warning("Connection test failed (%s): %s", e.reason, e)
            return ConnectionTest(success=False, message=str(e))

        preview = "base64 image data" if image_url.startswith("data:image") else image_url[:100]
        return ConnectionTest(
            success=True,
            message=f"Image generation with {self._model} is working",
            image_preview=preview,
        )


# ----------------------------------------------------------------------
# Client construction (called once from the application lifespan)
# ----------------------------------------------------------------------


def build_prompt_client(settings: Settings) -> AsyncOpenAI | None:
    """OpenAI-compatible text-completion client, or None without credential."""
    api_key = settings.provider_api_key
    if api_key is None:
        logger.warning("OPENROUTER_API_KEY not set: prompts use the basic template")
        return None
    return AsyncOpenAI(
        api_key=api_key,
        base_url=settings.OPENROUTER_BASE_URL,
        timeout=settings.PROMPT_TIMEOUT,
        max_retries=0,  # Failures go to the basic prompt, not a retry loop
    )


def build_image_client(settings: Settings) -> httpx.AsyncClient | None:
    """Authenticated client for the image provider, or None without credential."""
    api_key = settings.provider_api_key
    if api_key is None:
        logger.warning("OPENROUTER_API_KEY not set: images use the fallback generator")
        return None
    return httpx.AsyncClient(
        base_url=settings.OPENROUTER_BASE_URL,
        timeout=settings.IMAGE_TIMEOUT,
        headers={
            "Authorization": f"Bearer {api_key}",
            "HTTP-Referer": settings.APP_REFERER,
            "X-Title": settings.APP_TITLE,
        },
    )
