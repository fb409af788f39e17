#  Map Vault - Edge Function Routes
#
#  Mounts each edge handler at /functions/<name>. The handler owns the
#  whole pipeline (auth, quota, audit, validation), so these routes only
#  pass the raw request through.
#
#  Depends on: container.py, edge/functions.py
#  Used by:    app.py

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, Request, Response

from mapvault.container import Container
from mapvault.edge.functions import IngestPosterHandler, TextToSpeechHandler

EDGE_PREFIX = "/functions"

router = APIRouter(prefix=EDGE_PREFIX, tags=["functions"])

_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@router.api_route("/text-to-speech", methods=_METHODS)
@inject
async def text_to_speech(
    request: Request,
    handler: TextToSpeechHandler = Depends(Provide[Container.tts_handler]),
) -> Response:
    return await handler.handle(request)


@router.api_route("/ingest-poster", methods=_METHODS)
@inject
async def ingest_poster(
    request: Request,
    handler: IngestPosterHandler = Depends(Provide[Container.ingest_poster_handler]),
) -> Response:
    return await handler.handle(request)
