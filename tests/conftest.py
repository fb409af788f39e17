#  Map Vault - Test Fixtures
#
#  Shared fixtures for the test suite.
#  Uses DI container overrides instead of monkey-patching singletons.
#  Inference backends are replaced by stubs; no model is ever loaded.
#
#  Depends on: mapvault/db/connection.py, mapvault/container.py, mapvault/app.py
#  Used by:    all test files

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from dependency_injector import providers

from tests.helpers import (
    TEST_SECRET,
    FakeClock,
    StubSegmenter,
    StubTextDetector,
    make_png,
    register_and_login,
)


# ---------------------------------------------------------------------------
# Auth secret
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _jwt_secret():
    with patch("mapvault.services.auth.AUTH_SECRET_KEY", TEST_SECRET):
        yield


# ---------------------------------------------------------------------------
# Database / storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def tmp_db(tmp_path):
    """Create a fresh async database with schema applied."""
    from mapvault.db.connection import Database

    test_db = Database()
    db_path = tmp_path / "test.db"
    await test_db.init(str(db_path))

    yield test_db

    await test_db.close()


@pytest.fixture
def object_store(tmp_path):
    from mapvault.services.storage import ObjectStore
    return ObjectStore(tmp_path / "storage")


@pytest.fixture
async def auth_service(tmp_db):
    """AuthService wired to the test database."""
    from mapvault.services.auth import AuthService
    return AuthService(db=tmp_db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(tmp_db, clock):
    from mapvault.config import RATE_LIMITS
    from mapvault.services.rate_limiter import RateLimiter, build_policy_table
    return RateLimiter(tmp_db, build_policy_table(RATE_LIMITS), clock=clock)


@pytest.fixture
def artifacts(tmp_db, object_store):
    from mapvault.services.artifacts import ArtifactService
    return ArtifactService(tmp_db, object_store)


@pytest.fixture
def chat_history(tmp_db):
    from mapvault.services.chat_history import ChatHistoryService
    return ChatHistoryService(tmp_db)


@pytest.fixture
def text_detector():
    return StubTextDetector()


@pytest.fixture
def segmenter():
    return StubSegmenter()


# ---------------------------------------------------------------------------
# Speech provider mock
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_speech_http():
    """httpx.AsyncClient stand-in whose post() returns canned MPEG bytes."""
    response = MagicMock()
    response.status_code = 200
    response.content = b"ID3-fake-mpeg-audio"

    client = AsyncMock()
    client.post = AsyncMock(return_value=response)
    client.aclose = AsyncMock()
    return client


# ---------------------------------------------------------------------------
# FastAPI client fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def app_client(
    tmp_db, object_store, auth_service, rate_limiter, artifacts,
    text_detector, segmenter, mock_speech_http, chat_history,
):
    """HTTP client against the app with every stateful provider overridden.

    Uses explicit try/finally with reset_override() so DI state is fully
    cleaned up even when async fixture teardown misbehaves.
    """
    from httpx import ASGITransport, AsyncClient

    from mapvault.app import app, container
    from mapvault.edge.functions import IngestPosterHandler, TextToSpeechHandler
    from mapvault.services.imaging import ImagingService
    from mapvault.services.speech import SpeechClient

    speech = SpeechClient(http_client=mock_speech_http, api_key="test-key")
    imaging = ImagingService(artifacts, text_detector, segmenter)
    tts = TextToSpeechHandler(auth_service, rate_limiter, speech)
    ingest = IngestPosterHandler(auth_service, rate_limiter, artifacts)

    overrides = [
        (container.db, tmp_db),
        (container.http_client, mock_speech_http),
        (container.object_store, object_store),
        (container.auth, auth_service),
        (container.rate_limiter, rate_limiter),
        (container.speech, speech),
        (container.artifacts, artifacts),
        (container.chat_history, chat_history),
        (container.text_detector, text_detector),
        (container.segmenter, segmenter),
        (container.imaging, imaging),
        (container.tts_handler, tts),
        (container.ingest_poster_handler, ingest),
    ]
    for provider, instance in overrides:
        provider.override(providers.Object(instance))

    # Reset IP limiter storage so tests don't hit limits from prior tests
    from mapvault.rate_limit import limiter as _limiter
    _limiter.reset()

    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
        await rate_limiter.drain()
    finally:
        for provider, _ in overrides:
            provider.reset_override()


@pytest.fixture
async def admin_token(app_client):
    """Token for the first registered user, who is granted admin."""
    return await register_and_login(app_client, "admin@example.com")


@pytest.fixture
async def user_token(app_client, admin_token):
    """Token for a second, non-admin user."""
    return await register_and_login(app_client, "user@example.com")


@pytest.fixture
async def base_map(artifacts):
    """A 64x48 base map stored through the artifact service."""
    return await artifacts.create_base_map(
        "Europe 1914", "europe.png", make_png(64, 48),
        region="Europe", attribution="Test Archive", license="public_domain",
    )
