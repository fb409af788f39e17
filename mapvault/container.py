#  Map Vault - Dependency Injection Container
#
#  DeclarativeContainer wiring all services and their dependencies.
#
#  Depends on: db/connection.py, services/*, canvas/*, edge/*
#  Used by:    app.py, routes/*, middleware/auth.py

import httpx
from dependency_injector import containers, providers

from mapvault.canvas.segformer import TransformersSegmenter
from mapvault.canvas.tesseract import TesseractTextDetector
from mapvault.config import HTTP_TIMEOUT, RATE_LIMITS, STORAGE_DIR
from mapvault.db.connection import Database
from mapvault.edge.functions import IngestPosterHandler, TextToSpeechHandler
from mapvault.services.artifacts import ArtifactService
from mapvault.services.auth import AuthService
from mapvault.services.chat_history import ChatHistoryService
from mapvault.services.imaging import ImagingService
from mapvault.services.rate_limiter import RateLimiter, build_policy_table
from mapvault.services.speech import SpeechClient
from mapvault.services.storage import ObjectStore


class Container(containers.DeclarativeContainer):
    """DI container for Map Vault.

    All services are Singletons, one instance per application lifecycle.
    Routes access them via @inject + Depends(Provide[Container.xxx]).
    Tests override them via container.xxx.override(providers.Object(mock)).
    """

    wiring_config = containers.WiringConfiguration(
        modules=[
            "mapvault.routes.auth",
            "mapvault.routes.admin",
            "mapvault.routes.base_maps",
            "mapvault.routes.overlays",
            "mapvault.routes.chat_history",
            "mapvault.routes.functions",
            "mapvault.middleware.auth",
        ]
    )

    # --- Core ---
    db = providers.Singleton(Database)
    http_client = providers.Singleton(httpx.AsyncClient, timeout=HTTP_TIMEOUT)
    object_store = providers.Singleton(ObjectStore, root=STORAGE_DIR)

    # --- Services ---
    auth = providers.Singleton(AuthService, db=db)
    rate_limiter = providers.Singleton(
        RateLimiter,
        db=db,
        policies=providers.Callable(build_policy_table, RATE_LIMITS),
    )
    speech = providers.Singleton(SpeechClient, http_client=http_client)
    artifacts = providers.Singleton(ArtifactService, db=db, store=object_store)
    chat_history = providers.Singleton(ChatHistoryService, db=db)

    # --- Inference backends (models load on first use) ---
    text_detector = providers.Singleton(TesseractTextDetector)
    segmenter = providers.Singleton(TransformersSegmenter)
    imaging = providers.Singleton(
        ImagingService,
        artifacts=artifacts,
        detector=text_detector,
        segmenter=segmenter,
    )

    # --- Edge functions ---
    tts_handler = providers.Singleton(
        TextToSpeechHandler, auth=auth, rate_limiter=rate_limiter, speech=speech,
    )
    ingest_poster_handler = providers.Singleton(
        IngestPosterHandler, auth=auth, rate_limiter=rate_limiter, artifacts=artifacts,
    )
