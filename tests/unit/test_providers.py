"""
Provider Client Unit Tests

Image provider request shape and failure classification, using
httpx.MockTransport. Client construction from settings.

No network access: every response is served by a local handler.
"""

from __future__ import annotations

import json

import httpx
import pytest

from notecanvas.core.config import Settings
from notecanvas.core.exceptions import (
    GENERIC_ERROR,
    INSUFFICIENT_CREDITS,
    MODEL_UNAVAILABLE,
    UNDEFINED_PROPERTIES,
    InsufficientCredits,
    ProviderUnavailable,
)
from notecanvas.services.providers import (
    ImageProvider,
    build_image_client,
    build_prompt_client,
    classify_http_failure,
    extract_image_url,
)


def make_settings(**overrides) -> Settings:
    values = {
        "POSTGRES_USER": "u",
        "POSTGRES_PASSWORD": "p",
        "POSTGRES_HOST": "h",
        "POSTGRES_DB": "d",
    }
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassification:
    @pytest.mark.parametrize(
        ("status_code", "body", "reason"),
        [
            (402, "", INSUFFICIENT_CREDITS),
            (400, '{"error": "Insufficient credits on account"}', INSUFFICIENT_CREDITS),
            (404, "", MODEL_UNAVAILABLE),
            (400, "Model google/x is not available", MODEL_UNAVAILABLE),
            (400, "No endpoints found for google/x", MODEL_UNAVAILABLE),
            (500, "internal error", GENERIC_ERROR),
            (429, "slow down", GENERIC_ERROR),
        ],
    )
    def test_reason(self, status_code: int, body: str, reason: str) -> None:
        error = classify_http_failure(status_code, body)
        assert error.reason == reason
        assert error.status_code == status_code

    def test_credits_error_type(self) -> None:
        assert isinstance(classify_http_failure(402, ""), InsufficientCredits)

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"choices": []},
            {"choices": [{"message": {"content": "only text"}}]},
            {"choices": [{"message": {"images": []}}]},
            {"choices": [{"message": {"images": [{"image_url": {"url": ""}}]}}]},
            {"choices": [{"message": {"images": [{"image_url": None}]}}]},
            [],
            None,
        ],
    )
    def test_malformed_shape(self, data) -> None:
        with pytest.raises(ProviderUnavailable) as exc:
            extract_image_url(data)
        assert exc.value.reason == UNDEFINED_PROPERTIES


# ---------------------------------------------------------------------------
# ImageProvider
# ---------------------------------------------------------------------------


class TestImageProvider:
    @pytest.mark.asyncio
    async def test_request_shape(self, make_provider, image_ok, png_data_url) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return image_ok()

        provider = make_provider(handler)
        result = await provider.generate("sunset over mountains", "16:9")

        assert result == png_data_url
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/api/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload["model"] == "google/gemini-2.5-flash-image"
        assert payload["modalities"] == ["image", "text"]
        assert payload["image_config"] == {"aspect_ratio": "16:9"}
        assert payload["messages"] == [{"role": "user", "content": "sunset over mountains"}]

    @pytest.mark.asyncio
    async def test_reference_images_sent_with_prompt(self, make_provider, image_ok) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return image_ok()

        await make_provider(handler).generate("a cozy cabin", "1:1", ("http://img/1",))

        content = seen[0]["messages"][0]["content"]
        assert content[0]["type"] == "text"
        assert content[0]["text"].startswith("Using the style inspiration provided, a cozy cabin.")
        assert content[1:] == [{"type": "image_url", "image_url": {"url": "http://img/1"}}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status_code", "body", "reason"),
        [
            (402, "Payment Required", INSUFFICIENT_CREDITS),
            (404, "Not Found", MODEL_UNAVAILABLE),
            (500, "Internal Server Error", GENERIC_ERROR),
        ],
    )
    async def test_http_failures(self, make_provider, status_code, body, reason) -> None:
        provider = make_provider(lambda request: httpx.Response(status_code, text=body))

        with pytest.raises(ProviderUnavailable) as exc:
            await provider.generate("x", "1:1")
        assert exc.value.reason == reason

    @pytest.mark.asyncio
    async def test_malformed_response(self, make_provider) -> None:
        provider = make_provider(
            lambda request: httpx.Response(200, json={"choices": [{"message": {"content": "hi"}}]})
        )

        with pytest.raises(ProviderUnavailable) as exc:
            await provider.generate("x", "1:1")
        assert exc.value.reason == UNDEFINED_PROPERTIES

    @pytest.mark.asyncio
    async def test_non_json_body(self, make_provider) -> None:
        provider = make_provider(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(ProviderUnavailable) as exc:
            await provider.generate("x", "1:1")
        assert exc.value.reason == UNDEFINED_PROPERTIES

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error_type", [httpx.ReadTimeout, httpx.ConnectError])
    async def test_transport_failures(self, make_provider, error_type) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise error_type("failed", request=request)

        with pytest.raises(ProviderUnavailable) as exc:
            await make_provider(handler).generate("x", "1:1")
        assert exc.value.reason == GENERIC_ERROR

    @pytest.mark.asyncio
    async def test_missing_credential(self) -> None:
        provider = ImageProvider(None, "model")

        assert provider.configured is False
        with pytest.raises(ProviderUnavailable) as exc:
            await provider.generate("x", "1:1")
        assert exc.value.reason == GENERIC_ERROR

    @pytest.mark.asyncio
    async def test_connection_test_success(self, make_provider, image_ok) -> None:
        result = await make_provider(lambda request: image_ok()).test_connection("red circle")

        assert result.success is True
        assert result.image_preview == "base64 image data"

    @pytest.mark.asyncio
    async def test_connection_test_failure_never_raises(self, make_provider) -> None:
        result = await make_provider(lambda request: httpx.Response(402)).test_connection("x")

        assert result.success is False
        assert "402" in result.message
        assert result.image_preview is None


# ---------------------------------------------------------------------------
# Client construction
# ---------------------------------------------------------------------------


class TestClientConstruction:
    @pytest.mark.parametrize("key", [None, "", "mock", " MOCK "])
    def test_no_clients_without_usable_key(self, key) -> None:
        settings = make_settings(OPENROUTER_API_KEY=key)

        assert settings.provider_api_key is None
        assert build_prompt_client(settings) is None
        assert build_image_client(settings) is None

    @pytest.mark.asyncio
    async def test_prompt_client(self) -> None:
        client = build_prompt_client(make_settings(OPENROUTER_API_KEY="sk-live", PROMPT_TIMEOUT=12))

        assert client is not None
        assert client.api_key == "sk-live"
        assert client.max_retries == 0
        assert str(client.base_url).startswith("https://openrouter.ai/api/v1")
        await client.close()

    @pytest.mark.asyncio
    async def test_image_client_headers(self) -> None:
        client = build_image_client(make_settings(OPENROUTER_API_KEY="sk-live"))

        assert client is not None
        assert client.headers["Authorization"] == "Bearer sk-live"
        assert client.headers["X-Title"] == "NoteCanvas"
        assert "HTTP-Referer" in client.headers
        assert client.timeout.read == 60.0
        await client.aclose()
