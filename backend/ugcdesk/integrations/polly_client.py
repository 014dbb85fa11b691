from __future__ import annotations

import asyncio
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ugcdesk.errors import ExternalServiceFailure


def _synthesize_sync(client: Any, text: str, voice_id: str, engine: str) -> bytes:
    resp = client.synthesize_speech(Text=text, OutputFormat="mp3", VoiceId=voice_id, Engine=engine)
    stream = resp.get("AudioStream")
    if stream is None:
        raise ExternalServiceFailure("Polly returned no audio", voice=voice_id)
    try:
        return stream.read()
    finally:
        stream.close()


class PollyClient:
    """Thin async wrapper over boto3's Polly client (calls run in a worker thread)."""

    def __init__(
        self,
        *,
        region: str,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        client: Any = None,
    ):
        self._client = client or boto3.client(
            "polly",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    async def synthesize_mp3(self, text: str, *, voice_id: str, engine: str = "neural") -> bytes:
        try:
            audio = await asyncio.to_thread(_synthesize_sync, self._client, text, voice_id, engine)
        except (BotoCoreError, ClientError) as exc:
            raise ExternalServiceFailure("Polly synthesis failed", reason=str(exc), voice=voice_id) from exc
        if not audio:
            raise ExternalServiceFailure("Polly returned empty audio", voice=voice_id)
        return audio
