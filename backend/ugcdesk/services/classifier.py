"""
Content classifier interface.

OpenAIClassifier asks a chat-completions model for a structured judgment of a
post (category, sentiment, quality, brand safety, tags). Any failure surfaces
as ExternalServiceFailure so that ingestion can store the item unclassified.
"""
from __future__ import annotations

import asyncio
import json
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from ugcdesk.errors import ExternalServiceFailure
from ugcdesk.settings import get_settings

logger = logging.getLogger(__name__)

SENTIMENT_SCORES = {"positive": 0.8, "neutral": 0.0, "negative": -0.8}
BRAND_SAFETY_VALUES = {"safe", "questionable", "unsafe"}
RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}

SYSTEM_PROMPT = (
    "You are a UGC content classifier. Analyze social media content and provide "
    "structured classification data. Always respond with valid JSON."
)

USER_PROMPT = """Analyze this UGC content and classify it by:
1. Product category (e.g., clothing, electronics, food, etc.)
2. Sentiment (positive, negative, neutral)
3. Quality score (0-10)
4. Brand safety (safe, questionable, unsafe)

Content URL: {url}
Caption: {caption}

Return your analysis as JSON with these fields:
{{
  "productCategory": "string",
  "sentiment": "positive|negative|neutral",
  "qualityScore": number,
  "brandSafety": "safe|questionable|unsafe",
  "tags": ["array", "of", "relevant", "tags"],
  "summary": "brief description of the content"
}}"""


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


@dataclass
class Classification:
    """Structured judgment about one piece of content."""

    category: str | None
    sentiment: str
    quality_score: float
    brand_safety: str
    tags: list[str] = field(default_factory=list)
    summary: str | None = None
    model: str = "unknown"

    @property
    def sentiment_score(self) -> float:
        return SENTIMENT_SCORES.get(self.sentiment, 0.0)

    @classmethod
    def from_payload(cls, data: dict[str, Any], *, model: str) -> "Classification":
        sentiment = str(data.get("sentiment") or "neutral").lower()
        if sentiment not in SENTIMENT_SCORES:
            sentiment = "neutral"
        try:
            quality = float(data.get("qualityScore") or 0)
        except (TypeError, ValueError):
            quality = 0.0
        safety = str(data.get("brandSafety") or "questionable").lower()
        if safety not in BRAND_SAFETY_VALUES:
            safety = "questionable"
        tags = data.get("tags") or []
        if not isinstance(tags, list):
            tags = []
        return cls(
            category=data.get("productCategory"),
            sentiment=sentiment,
            quality_score=_clamp(quality, 0.0, 10.0),
            brand_safety=safety,
            tags=[str(t) for t in tags][:20],
            summary=data.get("summary"),
            model=model,
        )


class ContentClassifier(ABC):
    """Abstract classifier. Implement `classify` to plug in a model."""

    @abstractmethod
    async def classify(self, content_url: str, caption: str | None = None) -> Classification:
        ...


class UnconfiguredClassifier(ContentClassifier):
    """Used when no API key is set; every call fails so items stay unclassified."""

    async def classify(self, content_url: str, caption: str | None = None) -> Classification:
        raise ExternalServiceFailure("Classifier not configured (OPENAI_API_KEY missing)")


class OpenAIClassifier(ContentClassifier):
    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 30,
        max_attempts: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_attempts = max(1, max_attempts)
        self._transport = transport

    async def _post_with_backoff(self, payload: dict) -> dict:
        """POST to chat completions, retrying 429/5xx and network errors with
        exponential backoff (1s, 2s, 4s ... plus jitter)."""
        url = f"{self.base_url}/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        last_error: str = "unknown"

        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            for attempt in range(self.max_attempts):
                try:
                    resp = await client.post(url, json=payload, headers=headers)
                except httpx.HTTPError as exc:
                    last_error = f"{type(exc).__name__}: {exc}"
                else:
                    if resp.status_code < 400:
                        try:
                            return resp.json()
                        except ValueError as exc:
                            raise ExternalServiceFailure(
                                "Classifier returned a non-JSON body",
                                reason=f"HTTP {resp.status_code}: {resp.text[:200]}",
                            ) from exc
                    last_error = f"HTTP {resp.status_code}: {resp.text[:200]}"
                    if resp.status_code not in RETRYABLE_STATUS:
                        break

                if attempt + 1 < self.max_attempts:
                    delay = (2 ** attempt) + random.uniform(0, 0.25)
                    logger.warning(
                        f"[classifier] attempt {attempt + 1}/{self.max_attempts} failed ({last_error}), "
                        f"retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)

        raise ExternalServiceFailure("Classification request failed", reason=last_error)

    async def classify(self, content_url: str, caption: str | None = None) -> Classification:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": USER_PROMPT.format(url=content_url, caption=caption or "No caption provided")},
            ],
            "temperature": 0.3,
            "max_tokens": 500,
            "response_format": {"type": "json_object"},
        }
        data = await self._post_with_backoff(payload)
        try:
            text = data["choices"][0]["message"]["content"]
            parsed = json.loads(text)
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as exc:
            raise ExternalServiceFailure("Classifier returned an unparseable response", reason=str(exc)) from exc
        if not isinstance(parsed, dict):
            raise ExternalServiceFailure("Classifier returned a non-object response")

        result = Classification.from_payload(parsed, model=self.model)
        logger.info(f"[classifier] {content_url[:80]}: {result.category} / {result.sentiment} / q={result.quality_score}")
        return result


_classifier: ContentClassifier | None = None


def get_classifier() -> ContentClassifier:
    global _classifier
    if _classifier is None:
        settings = get_settings()
        if settings.openai_api_key:
            _classifier = OpenAIClassifier(
                settings.openai_api_key,
                model=settings.openai_model,
                base_url=settings.openai_base_url,
                timeout_s=settings.classifier_timeout_sec,
                max_attempts=settings.classifier_max_attempts,
            )
        else:
            _classifier = UnconfiguredClassifier()
    return _classifier


def set_classifier(classifier: ContentClassifier | None) -> None:
    global _classifier
    _classifier = classifier
