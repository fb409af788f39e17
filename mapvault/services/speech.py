#  Map Vault - Speech Synthesis Client
#
#  Text-to-speech via the ElevenLabs HTTP API.
#  Returns raw MPEG audio bytes; any provider failure becomes UpstreamError.
#
#  Depends on: mapvault/config.py, mapvault/exceptions.py
#  Used by:    container.py, edge/functions.py

import logging

import httpx

from mapvault.config import (
    ELEVENLABS_API_KEY,
    HTTP_TIMEOUT,
    SPEECH_BASE_URL,
    SPEECH_DEFAULT_MODEL,
    SPEECH_OUTPUT_FORMAT,
)
from mapvault.exceptions import UpstreamError

logger = logging.getLogger("mapvault.speech")


class SpeechClient:
    """Thin wrapper over the provider's text-to-speech endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        api_key: str = ELEVENLABS_API_KEY,
        base_url: str = SPEECH_BASE_URL,
    ):
        self._http = http_client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def synthesize(self, text: str, voice_id: str, model_id: str = SPEECH_DEFAULT_MODEL) -> bytes:
        if not self._api_key:
            raise UpstreamError("Speech provider API key not configured")

        url = f"{self._base_url}/v1/text-to-speech/{voice_id}"
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self._api_key,
        }
        body = {
            "text": text,
            "model_id": model_id,
            "output_format": SPEECH_OUTPUT_FORMAT,
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.5,
            },
        }

        logger.info("Converting %d chars with voice %s", len(text), voice_id)
        try:
            if self._http:
                resp = await self._http.post(url, json=body, headers=headers, timeout=HTTP_TIMEOUT)
            else:
                async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
                    resp = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Speech provider unreachable: {type(e).__name__}") from e

        if resp.status_code >= 400:
            logger.error("Speech provider error: %s", resp.status_code)
            raise UpstreamError(f"Speech provider returned {resp.status_code}")
        return resp.content
