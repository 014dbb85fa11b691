"""
Pytest configuration and fixtures for UGC Desk tests.

This module provides shared fixtures for testing:
- A per-test SQLite file database (aiosqlite) with all tables created
- An AsyncSession per test
- A content factory
- An httpx client bound to the FastAPI app with the test session injected
- Stub classifier / discovery providers

Environment is configured before any ugcdesk import so the module-level
engine and settings never point at a real Postgres, Redis or Telegram.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CELERY_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["TELEGRAM_CHAT_ID"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["APIFY_TOKEN"] = ""
os.environ["AWS_ACCESS_KEY_ID"] = ""
os.environ["AWS_SECRET_ACCESS_KEY"] = ""

import asyncio
from datetime import datetime, timezone
from itertools import count

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ugcdesk import db as db_module
from ugcdesk.db import Base, get_session
from ugcdesk.models import ContentItem
from ugcdesk.services import classifier as classifier_module
from ugcdesk.services import dispatch, enhancers
from ugcdesk.services.classifier import Classification, ContentClassifier
from ugcdesk.services.discovery import DiscoveryProvider, RawPost
from ugcdesk.errors import ExternalServiceFailure

_ids = count(1)


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
async def engine(tmp_path):
    # File-backed so each session, background jobs included, has its own connection.
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ugc.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine, monkeypatch):
    """Session factory bound to the test engine.

    Also replaces the app-wide AsyncSessionLocal so background jobs started
    in-process write to the same database.
    """
    factory = async_sessionmaker(engine, expire_on_commit=False)
    monkeypatch.setattr(db_module, "AsyncSessionLocal", factory)
    return factory


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_content(session):
    """Factory that persists a ContentItem with sensible defaults."""

    async def _make(**overrides) -> ContentItem:
        n = next(_ids)
        now = datetime.now(timezone.utc)
        fields = dict(
            platform="instagram",
            platform_content_id=f"post-{n}",
            author_username=f"creator{n}",
            media_url=f"https://cdn.example.com/media/{n}.jpg",
            media_type="image",
            caption="Loving my new sneakers #fashion #style",
            hashtags=["fashion", "style"],
            likes=100,
            comments=10,
            shares=5,
            views=0,
            brand_tags=["fashion"],
            search_terms=["fashion"],
            tags=[],
            rights_status="unknown",
            source="search",
            discovered_at=now,
            created_at=now,
            updated_at=now,
        )
        fields.update(overrides)
        item = ContentItem(**fields)
        session.add(item)
        await session.commit()
        return item

    return _make


def make_post(**overrides) -> RawPost:
    n = next(_ids)
    fields = dict(
        platform="instagram",
        external_id=f"ext-{n}",
        author_username=f"author{n}",
        caption="New drop #fashion",
        media_url=f"https://cdn.example.com/raw/{n}.jpg",
        hashtags=["fashion"],
        likes=10,
        comments=2,
    )
    fields.update(overrides)
    return RawPost(**fields)


# =============================================================================
# Collaborator stubs
# =============================================================================

class FixedClassifier(ContentClassifier):
    """Returns the same judgment for every item and records the calls."""

    def __init__(self, sentiment="positive", quality=8.0, category="fashion"):
        self.calls: list[tuple[str, str | None]] = []
        self.result = Classification(
            category=category,
            sentiment=sentiment,
            quality_score=quality,
            brand_safety="safe",
            tags=["sneakers"],
            model="test",
        )

    async def classify(self, content_url, caption=None):
        self.calls.append((content_url, caption))
        return self.result


class FailingClassifier(ContentClassifier):
    async def classify(self, content_url, caption=None):
        raise ExternalServiceFailure("classifier down")


class StaticDiscovery(DiscoveryProvider):
    """Returns canned posts per platform; platforms in `failing` raise."""

    def __init__(self, posts_by_platform: dict[str, list[RawPost]], failing: set[str] | None = None):
        self.posts_by_platform = posts_by_platform
        self.failing = failing or set()
        self.calls: list[tuple[str, list[str], int]] = []

    async def search(self, platform, terms, limit):
        self.calls.append((platform, list(terms), limit))
        if platform in self.failing:
            raise ExternalServiceFailure(f"{platform} unavailable", platform=platform)
        return list(self.posts_by_platform.get(platform, []))[:limit]


@pytest.fixture(autouse=True)
def reset_classifier():
    """Every test starts with the unconfigured classifier (no API key)."""
    classifier_module.set_classifier(None)
    yield
    classifier_module.set_classifier(None)


@pytest.fixture(autouse=True)
def stub_enhancers():
    """Derived-asset jobs run against the deterministic stub providers."""
    enhancers.set_edit_provider(enhancers.StubEditProvider())
    enhancers.set_voiceover_provider(enhancers.StubVoiceoverProvider())
    enhancers.set_hotspot_detector(enhancers.StubHotspotDetector())
    yield
    enhancers.set_edit_provider(enhancers.StubEditProvider())
    enhancers.set_voiceover_provider(None)
    enhancers.set_hotspot_detector(enhancers.StubHotspotDetector())


# =============================================================================
# HTTP client
# =============================================================================

@pytest.fixture
async def client(session_factory):
    from ugcdesk.main import app

    async def _override_session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def drain_background_tasks():
    """Wait for in-process background jobs started by dispatch."""
    while dispatch._background_tasks:
        await asyncio.gather(*list(dispatch._background_tasks), return_exceptions=True)
