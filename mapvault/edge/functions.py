#  Map Vault - Edge Functions
#
#  text-to-speech: narrate historian text through the speech provider.
#  ingest-poster:  admin upload of a poster image, queued for tiling.
#
#  Depends on: edge/handler.py, services/speech.py, services/artifacts.py
#  Used by:    container.py, routes/functions.py

from fastapi import Response
from fastapi.responses import JSONResponse

from mapvault.edge.handler import EdgeHandler
from mapvault.models.schemas import IngestPosterRequest, TextToSpeechRequest
from mapvault.services.artifacts import ArtifactService
from mapvault.services.auth import AuthService
from mapvault.services.rate_limiter import RateLimiter
from mapvault.services.speech import SpeechClient


class TextToSpeechHandler(EdgeHandler):
    endpoint = "text-to-speech"
    body_model = TextToSpeechRequest
    failure_message = "Unable to generate speech. Please try again."

    def __init__(self, auth: AuthService, rate_limiter: RateLimiter, speech: SpeechClient):
        super().__init__(auth, rate_limiter)
        self._speech = speech

    async def delegate(self, subject: dict, body: TextToSpeechRequest) -> Response:
        audio = await self._speech.synthesize(body.text, body.voice_id, body.model_id)
        return Response(content=audio, media_type="audio/mpeg")


class IngestPosterHandler(EdgeHandler):
    endpoint = "ingest-poster"
    body_model = IngestPosterRequest
    requires_admin = True
    failure_message = "Unable to ingest poster. Please try again."

    def __init__(self, auth: AuthService, rate_limiter: RateLimiter, artifacts: ArtifactService):
        super().__init__(auth, rate_limiter)
        self._artifacts = artifacts

    async def delegate(self, subject: dict, body: IngestPosterRequest) -> Response:
        result = await self._artifacts.ingest_poster(
            title=body.title,
            license_status=body.license_status,
            filename=body.filename,
            data=body.payload(),
            credit=body.credit,
            created_by=subject["id"],
        )
        return JSONResponse(result)
