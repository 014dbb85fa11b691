"""
Enhancement provider interfaces for derived-asset jobs.

Voiceovers go through AWS Polly when credentials are configured and fail
with a clear reason otherwise. Edits and hotspots use deterministic stubs
until a real service is plugged in with set_edit_provider /
set_hotspot_detector; the voiceover stub is kept for tests.
"""
from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

from ugcdesk.errors import ExternalServiceFailure
from ugcdesk.integrations.polly_client import PollyClient
from ugcdesk.models import ContentItem
from ugcdesk.settings import get_settings

logger = logging.getLogger(__name__)

VOICEOVER_SUBDIR = "voiceovers"

# voice_type -> Polly VoiceId (neural voices), per language
POLLY_VOICES: dict[str, dict[str, str]] = {
    "en": {"energetic": "Joanna", "calm": "Matthew", "friendly": "Ruth", "professional": "Stephen"},
    "es": {"energetic": "Lupe", "calm": "Pedro"},
    "fr": {"energetic": "Lea", "calm": "Remi"},
    "de": {"energetic": "Vicki", "calm": "Daniel"},
}

DEFAULT_EDIT_CHANGES: dict[str, Any] = {
    "filter": "vintage",
    "brightness": 1.1,
    "contrast": 1.05,
    "saturation": 1.2,
    "logo_placement": {
        "logo_url": "/brand-logo.png",
        "position": {"x": 20, "y": 20},
        "size": 60,
        "opacity": 0.8,
    },
}


@dataclass
class EditResult:
    output_url: str
    enhancements: dict[str, Any] = field(default_factory=dict)


@dataclass
class VoiceoverResult:
    audio_url: str
    duration: float


@dataclass
class HotspotResult:
    hotspots: list[dict[str, Any]]


class EditProvider(ABC):
    @abstractmethod
    async def edit(self, content: ContentItem, changes: dict[str, Any], *, job_id: int) -> EditResult:
        ...


class VoiceoverProvider(ABC):
    @abstractmethod
    async def synthesize(self, script: str, *, voice_type: str, language: str, job_id: int) -> VoiceoverResult:
        ...


class HotspotDetector(ABC):
    @abstractmethod
    async def detect(self, content: ContentItem, *, job_id: int) -> HotspotResult:
        ...


def estimate_duration(script: str) -> float:
    # ~60ms per character is close to natural speaking pace
    return round(len(script) * 0.06 + 0.5, 2)


def default_script(content: ContentItem) -> str:
    """Voiceover script built from the caption when the caller gives none."""
    caption = re.sub(r"[#@]\w+", "", content.caption or "").strip()
    caption = re.sub(r"\s+", " ", caption)
    base = "Check out this amazing content!"
    return f"{base} {caption}".strip() if caption else base


class StubEditProvider(EditProvider):
    async def edit(self, content: ContentItem, changes: dict[str, Any], *, job_id: int) -> EditResult:
        if not content.media_url:
            raise ValueError("content has no media url")
        query = urlencode({"filter": changes.get("filter", "none"), "enhanced": "true", "job": job_id})
        sep = "&" if "?" in content.media_url else "?"
        return EditResult(
            output_url=f"{content.media_url}{sep}{query}",
            enhancements={
                "filter": changes.get("filter"),
                "brightness": changes.get("brightness", 1.0),
                "contrast": changes.get("contrast", 1.0),
                "saturation": changes.get("saturation", 1.0),
                "logo_added": bool(changes.get("logo_placement")),
            },
        )


class StubVoiceoverProvider(VoiceoverProvider):
    async def synthesize(self, script: str, *, voice_type: str, language: str, job_id: int) -> VoiceoverResult:
        if not script.strip():
            raise ValueError("empty script")
        query = urlencode({"voice_type": voice_type, "language": language})
        return VoiceoverResult(
            audio_url=f"https://voiceover.local/{job_id}.mp3?{query}", duration=estimate_duration(script)
        )


class UnconfiguredVoiceoverProvider(VoiceoverProvider):
    """Used when AWS credentials are missing; every job fails with a clear reason."""

    async def synthesize(self, script: str, *, voice_type: str, language: str, job_id: int) -> VoiceoverResult:
        raise ExternalServiceFailure("Voiceover not configured (AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY missing)")


class PollyVoiceoverProvider(VoiceoverProvider):
    """Text-to-speech through AWS Polly; the mp3 lands in MEDIA_DIR/voiceovers."""

    def __init__(self, client: PollyClient, *, media_dir: str, public_base_url: str = "", engine: str = "neural"):
        self.client = client
        self.media_dir = Path(media_dir)
        self.public_base_url = public_base_url.rstrip("/")
        self.engine = engine

    @staticmethod
    def voice_for(voice_type: str, language: str) -> str:
        voices = POLLY_VOICES.get(language) or POLLY_VOICES["en"]
        return voices.get(voice_type) or next(iter(voices.values()))

    async def synthesize(self, script: str, *, voice_type: str, language: str, job_id: int) -> VoiceoverResult:
        if not script.strip():
            raise ValueError("empty script")
        voice_id = self.voice_for(voice_type, language)
        audio = await self.client.synthesize_mp3(script, voice_id=voice_id, engine=self.engine)

        path = self.media_dir / VOICEOVER_SUBDIR / f"{job_id}.mp3"
        await asyncio.to_thread(_write_file, path, audio)
        logger.info(f"[voiceover] job {job_id}: {len(audio)} bytes, voice={voice_id}")
        return VoiceoverResult(
            audio_url=f"{self.public_base_url}/files/{VOICEOVER_SUBDIR}/{job_id}.mp3",
            duration=estimate_duration(script),
        )


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


class StubHotspotDetector(HotspotDetector):
    async def detect(self, content: ContentItem, *, job_id: int) -> HotspotResult:
        hotspots = [
            {
                "hotspot_type": "product",
                "position": {"x": 200, "y": 300},
                "size": {"width": 120, "height": 80},
                "data": {
                    "product_id": None,
                    "product_name": (content.brand_tags or [content.category or "product"])[0],
                    "product_url": None,
                },
            },
            {
                "hotspot_type": "cta",
                "position": {"x": 400, "y": 500},
                "size": {"width": 150, "height": 50},
                "data": {"title": "Shop Now", "description": "Click to explore products", "cta_text": "Shop Now"},
            },
        ]
        return HotspotResult(hotspots=hotspots)


_edit_provider: EditProvider = StubEditProvider()
_voiceover_provider: VoiceoverProvider | None = None
_hotspot_detector: HotspotDetector = StubHotspotDetector()


def get_edit_provider() -> EditProvider:
    return _edit_provider


def set_edit_provider(provider: EditProvider) -> None:
    global _edit_provider
    _edit_provider = provider


def get_voiceover_provider() -> VoiceoverProvider:
    global _voiceover_provider
    if _voiceover_provider is None:
        settings = get_settings()
        if settings.aws_access_key_id and settings.aws_secret_access_key:
            client = PollyClient(
                region=settings.aws_region,
                access_key_id=settings.aws_access_key_id,
                secret_access_key=settings.aws_secret_access_key,
            )
            _voiceover_provider = PollyVoiceoverProvider(
                client,
                media_dir=settings.media_dir,
                public_base_url=settings.public_base_url,
                engine=settings.polly_engine,
            )
        else:
            _voiceover_provider = UnconfiguredVoiceoverProvider()
    return _voiceover_provider


def set_voiceover_provider(provider: VoiceoverProvider | None) -> None:
    global _voiceover_provider
    _voiceover_provider = provider


def get_hotspot_detector() -> HotspotDetector:
    return _hotspot_detector


def set_hotspot_detector(detector: HotspotDetector) -> None:
    global _hotspot_detector
    _hotspot_detector = detector
