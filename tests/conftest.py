"""
Pytest Configuration and Fixtures

Shared fixtures:
    - Environment defaults so Settings validates without a .env file.
    - A throwaway SQLite database (aiosqlite) for repository, service and
      pipeline tests. No Docker required.
    - Pipeline builders with offline providers.
    - Session-scoped API readiness fixtures for live tests against a
      running stack.
"""

import os

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults: MUST be set before any notecanvas imports.
#
# 1. Load .env first so that Docker-matching credentials are available.
# 2. setdefault fills in anything still missing (CI runners, fresh clones
#    without a .env file) so that pydantic Settings validation doesn't crash.
# ---------------------------------------------------------------------------
load_dotenv()  # .env → os.environ (no-op if file is missing)

_test_env = {
    "POSTGRES_USER": "notecanvas",
    "POSTGRES_PASSWORD": "notecanvas_password",
    "POSTGRES_HOST": "localhost",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "notecanvas_db",
    "OPENROUTER_API_KEY": "mock",
    "PUBLIC_BASE_URL": "http://testserver",
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
import base64  # noqa: E402
import time  # noqa: E402
from collections.abc import AsyncGenerator, Callable, Generator  # noqa: E402
from pathlib import Path  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402

from notecanvas.models import Base  # noqa: E402
from notecanvas.services.fallback import FallbackGenerator  # noqa: E402
from notecanvas.services.generation import ImageGenerationPipeline  # noqa: E402
from notecanvas.services.prompts import PromptBuilder  # noqa: E402
from notecanvas.services.providers import ImageProvider  # noqa: E402
from notecanvas.services.storage import ObjectStorage  # noqa: E402

BASE_URL = "http://localhost:8000"
TEST_BASE_URL = "http://testserver"
OWNER = "user-1"

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-payload"
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'notecanvas.db'}"


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session factory bound to a fresh SQLite file with all tables created.

    NullPool: every session opens its own connection, so factories can be
    shared between the test and background tasks.
    """
    engine = create_async_engine(sqlite_url(tmp_path), poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as db:
        yield db


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def storage() -> ObjectStorage:
    return ObjectStorage(public_base_url=TEST_BASE_URL)


def mock_transport_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """Provider client whose requests are answered by handler."""
    return httpx.AsyncClient(
        base_url="https://openrouter.test/api/v1",
        transport=httpx.MockTransport(handler),
        headers={"Authorization": "Bearer sk-test"},
    )


def image_response(url: str = PNG_DATA_URL) -> httpx.Response:
    return httpx.Response(
        200,
        json={"choices": [{"message": {"content": "", "images": [{"image_url": {"url": url}}]}}]},
    )


@pytest.fixture
def png_data_url() -> str:
    return PNG_DATA_URL


@pytest.fixture
def make_provider() -> Callable[..., ImageProvider]:
    """Factory for an ImageProvider answered by a MockTransport handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> ImageProvider:
        return ImageProvider(mock_transport_client(handler), "google/gemini-2.5-flash-image")

    return _make


@pytest.fixture
def image_ok() -> Callable[..., httpx.Response]:
    """Builder of a successful provider response carrying one image."""
    return image_response


@pytest.fixture
def build_pipeline(storage: ObjectStorage) -> Callable[..., ImageGenerationPipeline]:
    """
    Factory for pipelines with offline collaborators.

    Defaults: basic prompts, no image credential (fallback images).
    """

    def _build(
        image_provider: ImageProvider | None = None,
        daily_limit: int = 50,
        prompt_builder: PromptBuilder | None = None,
    ) -> ImageGenerationPipeline:
        return ImageGenerationPipeline(
            prompt_builder=prompt_builder or PromptBuilder(None, "test/prompt-model"),
            image_provider=image_provider or ImageProvider(None, "test/image-model"),
            fallback=FallbackGenerator(),
            storage=storage,
            daily_limit=daily_limit,
        )

    return _build


# ---------------------------------------------------------------------------
# Live stack
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def wait_for_api():
    """
    Block until the API is ready or timeout expires.

    Polls /health endpoint with 1s intervals for up to 30s.
    Fails the test session if API is unreachable (Docker likely not running).
    """
    url = f"{BASE_URL}/health"
    timeout = 30
    start = time.time()

    print("\n[Test] Waiting for API...")
    while time.time() - start < timeout:
        try:
            res = httpx.get(url, timeout=1.0)
            if res.status_code == 200:
                print("API Ready")
                return
        except httpx.RequestError:
            time.sleep(1)

    pytest.fail("API unreachable. Docker is likely down.")


@pytest.fixture(scope="session")
def api_client(wait_for_api) -> Generator[httpx.Client, None, None]:
    """
    Pre-configured HTTP client for live tests, authenticated as a test owner.

    Yields:
        httpx.Client: Session-scoped client, automatically closed after tests.
    """
    with httpx.Client(
        base_url=f"{BASE_URL}/api/v1",
        headers={"X-User-Id": "live-test-user"},
        timeout=90.0,  # Generation waits on the image provider
    ) as client:
        yield client
