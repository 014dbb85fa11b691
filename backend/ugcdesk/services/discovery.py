"""
Platform discovery collaborator.

Searches social platforms for posts matching hashtags/keywords and returns
them as RawPost records. Instagram and TikTok go through Apify actors; other
platforms have no configured source and are reported as unsupported.
"""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from ugcdesk.errors import ExternalServiceFailure
from ugcdesk.integrations.apify_client import run_actor_and_get_dataset_items
from ugcdesk.models import MediaType, Platform
from ugcdesk.settings import get_settings

logger = logging.getLogger(__name__)

HASHTAG_RE = re.compile(r"#(\w+)", re.UNICODE)


@dataclass
class RawPost:
    """A platform post in the shape the Content Store ingests."""

    platform: str
    external_id: str
    author_username: str | None = None
    author_follower_count: int | None = None
    author_verified: bool = False
    caption: str | None = None
    media_url: str | None = None
    thumbnail_url: str | None = None
    media_type: str = MediaType.image.value
    duration: float | None = None
    hashtags: list[str] = field(default_factory=list)
    location: str | None = None
    likes: int = 0
    comments: int = 0
    shares: int = 0
    views: int = 0
    posted_at: datetime | None = None
    raw: dict | None = None


def _parse_dt(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_int(val: Any) -> int:
    try:
        return max(int(val), 0)
    except (TypeError, ValueError):
        return 0


def _parse_float(val: Any) -> float | None:
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def extract_hashtags(caption: str | None) -> list[str]:
    if not caption:
        return []
    seen: list[str] = []
    for tag in HASHTAG_RE.findall(caption):
        tag = tag.lower()
        if tag not in seen:
            seen.append(tag)
    return seen


def _media_type(value: str | None) -> str:
    v = (value or "").lower()
    if "video" in v or "reel" in v or "clip" in v:
        return MediaType.video.value
    return MediaType.image.value


def normalize_instagram_item(item: dict) -> RawPost | None:
    external_id = item.get("id") or item.get("shortCode")
    if not external_id:
        return None
    caption = item.get("caption")
    hashtags = item.get("hashtags") or extract_hashtags(caption)
    return RawPost(
        platform=Platform.instagram.value,
        external_id=str(external_id),
        author_username=item.get("ownerUsername"),
        author_follower_count=_parse_int(item.get("ownerFollowersCount")) or None,
        author_verified=bool(item.get("ownerIsVerified") or False),
        caption=caption,
        media_url=item.get("videoUrl") or item.get("displayUrl") or item.get("url"),
        thumbnail_url=item.get("displayUrl"),
        media_type=_media_type(item.get("type") or item.get("productType")),
        duration=_parse_float(item.get("videoDuration")),
        hashtags=[str(h).lower().lstrip("#") for h in hashtags],
        location=item.get("locationName"),
        likes=_parse_int(item.get("likesCount")),
        comments=_parse_int(item.get("commentsCount")),
        shares=0,
        views=_parse_int(item.get("videoViewCount") or item.get("videoPlayCount")),
        posted_at=_parse_dt(item.get("timestamp")),
        raw=item,
    )


def normalize_tiktok_item(item: dict) -> RawPost | None:
    external_id = item.get("id")
    if not external_id:
        return None
    author = item.get("authorMeta") or {}
    video = item.get("videoMeta") or {}
    caption = item.get("text")
    hashtags = [h.get("name") for h in item.get("hashtags") or [] if isinstance(h, dict) and h.get("name")]
    return RawPost(
        platform=Platform.tiktok.value,
        external_id=str(external_id),
        author_username=author.get("name"),
        author_follower_count=_parse_int(author.get("fans")) or None,
        author_verified=bool(author.get("verified") or False),
        caption=caption,
        media_url=item.get("webVideoUrl") or item.get("videoUrl"),
        thumbnail_url=video.get("coverUrl"),
        media_type=MediaType.video.value,
        duration=_parse_float(video.get("duration")),
        hashtags=[str(h).lower() for h in hashtags] or extract_hashtags(caption),
        location=(item.get("locationMeta") or {}).get("city"),
        likes=_parse_int(item.get("diggCount")),
        comments=_parse_int(item.get("commentCount")),
        shares=_parse_int(item.get("shareCount")),
        views=_parse_int(item.get("playCount")),
        posted_at=_parse_dt(item.get("createTimeISO") or item.get("createTime")),
        raw=item,
    )


class DiscoveryProvider(ABC):
    """Abstract discovery source. Implement `search` to plug in a platform API."""

    @abstractmethod
    async def search(self, platform: str, terms: list[str], limit: int) -> list[RawPost]:
        ...


class ApifyDiscoveryProvider(DiscoveryProvider):
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    async def search(self, platform: str, terms: list[str], limit: int) -> list[RawPost]:
        settings = get_settings()
        clean_terms = [t.strip().lstrip("#") for t in terms if t and t.strip()]
        if not clean_terms:
            return []

        if platform == Platform.instagram.value:
            actor = settings.apify_instagram_actor
            payload = {"hashtags": clean_terms, "resultsLimit": limit}
            normalize = normalize_instagram_item
        elif platform == Platform.tiktok.value:
            actor = settings.apify_tiktok_actor
            payload = {"hashtags": clean_terms, "searchQueries": clean_terms, "resultsPerPage": limit}
            normalize = normalize_tiktok_item
        else:
            raise ExternalServiceFailure(f"Discovery not supported for platform '{platform}'", platform=platform)

        items, meta = await run_actor_and_get_dataset_items(
            actor,
            payload,
            clean=True,
            limit=limit,
            timeout_s=settings.discovery_timeout_sec,
            transport=self._transport,
        )
        posts = [p for p in (normalize(i) for i in items if isinstance(i, dict)) if p is not None]
        logger.info(f"[discovery] {platform}: {len(posts)}/{len(items)} posts (run={meta.get('runId')})")
        return posts


_provider: DiscoveryProvider = ApifyDiscoveryProvider()


def get_discovery_provider() -> DiscoveryProvider:
    return _provider


def set_discovery_provider(provider: DiscoveryProvider) -> None:
    global _provider
    _provider = provider
