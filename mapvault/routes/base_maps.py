#  Map Vault - Base Map Routes
#
#  Upload and browse base maps, store registration points, and run the
#  canvas tools against them: text detection, label removal (saved as a
#  new "(Clean)" base map) and background removal.
#
#  Depends on: container.py, services/artifacts.py, services/imaging.py,
#              services/rate_limiter.py, middleware/auth.py
#  Used by:    app.py

import re
from pathlib import PurePosixPath

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile

from mapvault.canvas.base import TextRegion
from mapvault.container import Container
from mapvault.exceptions import RateLimitExceededError
from mapvault.middleware.auth import get_current_user, require_admin
from mapvault.models.schemas import (
    BaseMapOut,
    CleanRequest,
    RegistrationPoints,
    TextDetectionOut,
    TextRegionOut,
)
from mapvault.services.artifacts import ArtifactService
from mapvault.services.imaging import ImagingService
from mapvault.services.rate_limiter import RateLimiter

router = APIRouter(prefix="/base-maps", tags=["base-maps"])

TEXT_DETECTION_ENDPOINT = "text-detection"
MAX_UPLOAD_BYTES = 200 * 1024 * 1024

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.\-]")


def _safe_filename(name: str | None) -> str:
    base = PurePosixPath((name or "").replace("\\", "/")).name
    base = _SAFE_NAME.sub("_", base).lstrip(".")
    return base or "base_map"


@router.get("")
@inject
async def list_base_maps(
    artifacts: ArtifactService = Depends(Provide[Container.artifacts]),
) -> list[BaseMapOut]:
    return [BaseMapOut(**m) for m in await artifacts.list_base_maps()]


@router.get("/{base_map_id}")
@inject
async def get_base_map(
    base_map_id: str,
    artifacts: ArtifactService = Depends(Provide[Container.artifacts]),
) -> BaseMapOut:
    return BaseMapOut(**await artifacts.get_base_map(base_map_id))


@router.post("", status_code=201)
@inject
async def upload_base_map(
    file: UploadFile = File(...),
    title: str = Form(..., min_length=1, max_length=200),
    region: str | None = Form(None),
    attribution: str | None = Form(None),
    license: str | None = Form(None),
    source_url: str | None = Form(None),
    projection: str | None = Form(None),
    print_dpi: int = Form(600, ge=1, le=10_000),
    admin: dict = Depends(require_admin),
    artifacts: ArtifactService = Depends(Provide[Container.artifacts]),
) -> BaseMapOut:
    """Upload a base map image (admin only)."""
    data = await file.read()
    if not data:
        raise HTTPException(400, "Empty upload")
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(413, "Upload too large")

    base_map = await artifacts.create_base_map(
        title, _safe_filename(file.filename), data,
        region=region, attribution=attribution, license=license,
        source_url=source_url, projection=projection, print_dpi=print_dpi,
        uploaded_by=admin["id"],
    )
    return BaseMapOut(**base_map)


@router.put("/{base_map_id}/registration")
@inject
async def set_registration(
    base_map_id: str,
    body: RegistrationPoints,
    _admin: dict = Depends(require_admin),
    artifacts: ArtifactService = Depends(Provide[Container.artifacts]),
) -> BaseMapOut:
    """Replace the tl/tr/bl registration points."""
    base_map = await artifacts.set_registration(base_map_id, body.model_dump())
    return BaseMapOut(**base_map)


@router.post("/{base_map_id}/text-regions")
@inject
async def detect_text_regions(
    base_map_id: str,
    user: dict = Depends(get_current_user),
    imaging: ImagingService = Depends(Provide[Container.imaging]),
    rate_limiter: RateLimiter = Depends(Provide[Container.rate_limiter]),
) -> TextDetectionOut:
    """Run OCR over the base map. Coordinates are in the returned working size."""
    admission = await rate_limiter.check_rate_limit(user["id"], TEXT_DETECTION_ENDPOINT)
    if not admission.allowed:
        raise RateLimitExceededError(TEXT_DETECTION_ENDPOINT)
    rate_limiter.submit_log_request(user["id"], TEXT_DETECTION_ENDPOINT)

    result = await imaging.detect_text(base_map_id)
    width, height = result.working_size
    return TextDetectionOut(
        base_map_id=base_map_id,
        working_width=width,
        working_height=height,
        scale=result.scale,
        regions=[TextRegionOut(**r.to_dict()) for r in result.regions],
    )


@router.post("/{base_map_id}/clean", status_code=201)
@inject
async def clean_base_map(
    base_map_id: str,
    body: CleanRequest,
    admin: dict = Depends(require_admin),
    imaging: ImagingService = Depends(Provide[Container.imaging]),
) -> BaseMapOut:
    """Paint out text regions and save the result as a new base map."""
    regions = None
    if body.regions is not None:
        regions = [TextRegion(**r.model_dump()) for r in body.regions]
    base_map = await imaging.clean(base_map_id, regions, user_id=admin["id"])
    return BaseMapOut(**base_map)


@router.post("/{base_map_id}/background-removal")
@inject
async def remove_background(
    base_map_id: str,
    imaging: ImagingService = Depends(Provide[Container.imaging]),
) -> Response:
    """Segment the base map and return it as a transparent PNG."""
    png = await imaging.remove_background(base_map_id)
    return Response(content=png, media_type="image/png")
