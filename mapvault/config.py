#  Map Vault - Configuration
#
#  Loads config.json and provides typed access to all settings.
#  Dot-notation path lookup: cfg("speech.default_model")
#
#  Depends on: config.json
#  Used by:    all mapvault modules

import json
import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Path resolution
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "config.json"
DATA_DIR = PROJECT_ROOT / "data"
DB_PATH = DATA_DIR / "mapvault.db"

# ---------------------------------------------------------------------------
# Load config
# ---------------------------------------------------------------------------

_config: dict = {}


def _load_config(path: Path | None = None):
    """Load configuration from JSON file (internal, called once at import time).

    Module-level constants below are snapshots from _config.
    Do not call this function after import, constants won't update.
    """
    global _config
    config_path = path or CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}. "
            "Copy config.example.json to config.json."
        )
    with open(config_path) as f:
        _config = json.load(f)


# Auto-load if config exists at import time
if CONFIG_PATH.exists():
    _load_config()


def cfg(path: str, default=None):
    """Get a config value by dot-notation path.

    Example: cfg("speech.default_model") -> "eleven_multilingual_v2"
    """
    keys = path.split(".")
    val = _config
    for key in keys:
        if isinstance(val, dict) and key in val:
            val = val[key]
        else:
            return default
    return val


# ---------------------------------------------------------------------------
# Convenience constants
# ---------------------------------------------------------------------------

HOST = cfg("server.host", "0.0.0.0")
PORT = cfg("server.port", 5300)
CORS_ORIGINS = cfg("server.cors_origins", [
    "http://localhost:5173",
    f"http://localhost:{PORT}",
    "http://127.0.0.1:5173",
    f"http://127.0.0.1:{PORT}",
])
SERVER_RATE_LIMIT = cfg("server.rate_limit", "60/minute")
AUTH_LOGIN_RATE_LIMIT = cfg("server.auth_rate_limit", "5/minute")
AUTH_REFRESH_RATE_LIMIT = cfg("server.refresh_rate_limit", "10/minute")

# Auth
AUTH_SECRET_KEY = cfg("auth.secret_key", "")
AUTH_ALGORITHM = cfg("auth.algorithm", "HS256")
AUTH_ACCESS_TOKEN_EXPIRE_MINUTES = cfg("auth.access_token_expire_minutes", 30)
AUTH_REFRESH_TOKEN_EXPIRE_DAYS = cfg("auth.refresh_token_expire_days", 7)
AUTH_ALLOW_REGISTRATION = cfg("auth.allow_registration", True)

# Storage
# Relative roots are taken from the project root, not the working directory
STORAGE_DIR = PROJECT_ROOT / cfg("storage.root", str(DATA_DIR / "storage"))

# Per-subject admission control. Endpoint name -> {requests, window seconds}.
RATE_LIMITS: dict = cfg("rate_limits", {
    "historian-qa": {"requests": 10, "window": 60},
    "overlay-artist": {"requests": 5, "window": 60},
    "text-to-speech": {"requests": 20, "window": 60},
    "ingest-poster": {"requests": 10, "window": 60},
    "text-detection": {"requests": 10, "window": 60},
})
REQUEST_LOG_RETENTION_SECONDS = cfg("request_logs.retention_seconds", 3600)

# Speech synthesis provider
ELEVENLABS_API_KEY = os.environ.get("ELEVENLABS_API_KEY", "")
SPEECH_BASE_URL = cfg("speech.base_url", "https://api.elevenlabs.io")
SPEECH_DEFAULT_MODEL = cfg("speech.default_model", "eleven_multilingual_v2")
SPEECH_OUTPUT_FORMAT = cfg("speech.output_format", "mp3_44100_128")
HTTP_TIMEOUT = cfg("speech.timeout", 120.0)

# Image processing
OCR_MAX_DIMENSION = cfg("imaging.ocr_max_dimension", 2560)
OCR_MIN_CONFIDENCE = cfg("imaging.ocr_min_confidence", 60)
OCR_LANGUAGE = cfg("imaging.ocr_language", "eng")
INPAINT_RADIUS = cfg("imaging.inpaint_radius", 5)
SEGMENT_MAX_DIMENSION = cfg("imaging.segment_max_dimension", 1024)
SEGMENT_MODEL = cfg("imaging.segment_model", "nvidia/segformer-b0-finetuned-ade-512-512")
DEFAULT_CANVAS_WIDTH = cfg("imaging.default_canvas_width", 2560)
DEFAULT_CANVAS_HEIGHT = cfg("imaging.default_canvas_height", 1440)


# ---------------------------------------------------------------------------
# Startup validation
# ---------------------------------------------------------------------------

def validate_config():
    """Validate critical config values. Call during app startup (not at import time).

    Raises ConfigError for fatal issues, logs warnings for non-fatal ones.
    """
    import logging
    _logger = logging.getLogger("mapvault.config")

    # Fatal: JWT secret must be non-empty and at least 32 characters
    if not AUTH_SECRET_KEY or len(AUTH_SECRET_KEY) < 32:
        raise ConfigError(
            "FATAL: auth.secret_key is missing or too short in config.json "
            "(must be at least 32 characters)"
        )

    # Fatal: port must be valid
    if not isinstance(PORT, int) or not (1 <= PORT <= 65535):
        raise ConfigError(f"server.port must be 1-65535, got {PORT}")

    # Fatal: every rate limit entry needs positive integer requests/window
    if not isinstance(RATE_LIMITS, dict):
        raise ConfigError("rate_limits must be an object keyed by endpoint name")
    for endpoint, entry in RATE_LIMITS.items():
        if not isinstance(entry, dict):
            raise ConfigError(f"rate_limits.{endpoint} must be an object")
        for field in ("requests", "window"):
            val = entry.get(field)
            if not isinstance(val, int) or isinstance(val, bool) or val <= 0:
                raise ConfigError(f"rate_limits.{endpoint}.{field} must be a positive integer, got {val}")

    if not isinstance(REQUEST_LOG_RETENTION_SECONDS, (int, float)) or REQUEST_LOG_RETENTION_SECONDS <= 0:
        raise ConfigError(
            f"request_logs.retention_seconds must be > 0, got {REQUEST_LOG_RETENTION_SECONDS}"
        )

    # Fatal: image caps must be positive
    for label, val in [("imaging.ocr_max_dimension", OCR_MAX_DIMENSION),
                       ("imaging.segment_max_dimension", SEGMENT_MAX_DIMENSION),
                       ("imaging.inpaint_radius", INPAINT_RADIUS)]:
        if not isinstance(val, int) or val <= 0:
            raise ConfigError(f"{label} must be a positive integer, got {val}")

    # Fatal: CORS origins must be valid URLs
    for origin in CORS_ORIGINS:
        if not isinstance(origin, str):
            raise ConfigError(f"CORS origin must be a string, got {type(origin).__name__}")
        if origin == "*":
            _logger.warning("CORS origin '*' allows all origins, not recommended for production")
        elif not origin.startswith(("http://", "https://")):
            raise ConfigError(
                f"CORS origin must start with http:// or https://, got '{origin}'"
            )

    # Warning: speech key not set (the endpoint will answer 500)
    if not ELEVENLABS_API_KEY:
        _logger.warning(
            "ELEVENLABS_API_KEY is not set. Text-to-speech requests will fail."
        )


class ConfigError(Exception):
    """Raised when critical configuration is invalid."""
