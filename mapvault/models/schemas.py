#  Map Vault - Pydantic Schemas
#
#  Request/response models for the REST API and the edge functions.
#
#  Depends on: models/enums.py, mapvault/config.py
#  Used by:    routes/*, edge/functions.py

from typing import Annotated

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from mapvault.config import SPEECH_DEFAULT_MODEL
from mapvault.models.enums import LicenseStatus, Role


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    display_name: str = ""


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class UserOut(BaseModel):
    id: str
    email: str
    display_name: str
    role: str


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserOut


class RefreshResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


# ---------------------------------------------------------------------------
# Edge functions
# ---------------------------------------------------------------------------

class TextToSpeechRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    text: str = Field(..., min_length=1, max_length=5000)
    voice_id: str = Field(..., alias="voiceId", min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_-]+$")
    model_id: str = Field(SPEECH_DEFAULT_MODEL, alias="modelId", min_length=1, max_length=100)


class IngestPosterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    credit: str | None = Field(default=None, max_length=500)
    license_status: LicenseStatus
    # Bare file name: no separators, no leading dot
    filename: str = Field(..., min_length=1, max_length=255, pattern=r"^[A-Za-z0-9_\-][A-Za-z0-9_.\- ]*$")
    data: list[Annotated[int, Field(ge=0, le=255)]] = Field(..., alias="bytes", min_length=1)

    def payload(self) -> bytes:
        return bytes(self.data)


class IngestPosterResponse(BaseModel):
    posterId: str
    status: str
    message: str


# ---------------------------------------------------------------------------
# Base maps
# ---------------------------------------------------------------------------

class RegistrationPoint(BaseModel):
    x: float = Field(..., ge=0)
    y: float = Field(..., ge=0)


class RegistrationPoints(BaseModel):
    tl: RegistrationPoint
    tr: RegistrationPoint
    bl: RegistrationPoint


class BaseMapOut(BaseModel):
    id: str
    title: str
    region: str | None = None
    file_path: str
    attribution: str | None = None
    license: str | None = None
    source_url: str | None = None
    canonical_width: int | None = None
    canonical_height: int | None = None
    print_dpi: int | None = 600
    projection: str | None = None
    registration: RegistrationPoints | None = None
    uploaded_by: str | None = None
    created_at: float


class TextRegionOut(BaseModel):
    x: int
    y: int
    width: int
    height: int
    text: str = ""
    confidence: float = 0.0


class TextRegionIn(BaseModel):
    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    text: str = ""
    confidence: float = 0.0


class TextDetectionOut(BaseModel):
    base_map_id: str
    working_width: int
    working_height: int
    scale: float
    regions: list[TextRegionOut]


class CleanRequest(BaseModel):
    """Regions in working pixels. Omit to clean whatever OCR finds."""
    regions: list[TextRegionIn] | None = Field(default=None, max_length=5000)


# ---------------------------------------------------------------------------
# Overlays
# ---------------------------------------------------------------------------

class OverlayCreate(BaseModel):
    base_map_id: str
    theme: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., ge=-10_000, le=10_000)
    title: str = Field(default="", max_length=200)
    notes: str = Field(default="", max_length=10_000)
    objects: list[dict] = Field(default_factory=list, max_length=10_000)


class OverlayUpdate(BaseModel):
    z_index: int = Field(..., ge=0, le=100_000)


class OverlayOut(BaseModel):
    id: str
    base_map_id: str
    theme: str
    year: int | None = None
    title: str = ""
    z_index: int
    width_px: int | None = None
    height_px: int | None = None
    format: str
    file_path: str
    notes: str | None = None
    author: str | None = None
    created_at: float


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

class AdminUserOut(BaseModel):
    id: str
    email: str
    display_name: str
    roles: list[str]
    is_active: bool
    created_at: float
    last_login_at: float | None = None


class RoleChange(BaseModel):
    role: Role


class AdminStats(BaseModel):
    total_users: int
    active_users: int
    admins: int
    total_posters: int
    total_base_maps: int
    total_overlays: int
    requests_last_hour: dict[str, int]


class SweepResult(BaseModel):
    deleted: int


class OrphanOut(BaseModel):
    bucket: str
    key: str


class ReconcileResult(BaseModel):
    orphans: list[OrphanOut]
    deleted: int


# ---------------------------------------------------------------------------
# Chat history
# ---------------------------------------------------------------------------

class ChatEntryCreate(BaseModel):
    question: str = Field(..., min_length=1, max_length=5000)
    answer: str = Field(..., min_length=1, max_length=50_000)


class ChatEntryOut(BaseModel):
    id: str
    question: str
    answer: str
    created_at: float
