#  Map Vault - Overlay Routes
#
#  Create overlays from drawing commands, list them per base map, and
#  restack them. Overlays are otherwise immutable.
#
#  Depends on: container.py, services/artifacts.py, middleware/auth.py
#  Used by:    app.py

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, Query

from mapvault.container import Container
from mapvault.middleware.auth import require_admin
from mapvault.models.schemas import OverlayCreate, OverlayOut, OverlayUpdate
from mapvault.services.artifacts import ArtifactService

router = APIRouter(prefix="/overlays", tags=["overlays"])


@router.post("", status_code=201)
@inject
async def create_overlay(
    body: OverlayCreate,
    admin: dict = Depends(require_admin),
    artifacts: ArtifactService = Depends(Provide[Container.artifacts]),
) -> OverlayOut:
    """Render the drawing commands to PNG and stack it on top of the base map."""
    overlay = await artifacts.create_overlay(
        body.base_map_id, body.theme, body.year, body.objects,
        title=body.title, notes=body.notes, author=admin["id"],
    )
    return OverlayOut(**overlay)


@router.get("")
@inject
async def list_overlays(
    base_map_id: str = Query(...),
    artifacts: ArtifactService = Depends(Provide[Container.artifacts]),
) -> list[OverlayOut]:
    await artifacts.get_base_map(base_map_id)
    return [OverlayOut(**o) for o in await artifacts.list_overlays(base_map_id)]


@router.patch("/{overlay_id}")
@inject
async def update_overlay(
    overlay_id: str,
    body: OverlayUpdate,
    _admin: dict = Depends(require_admin),
    artifacts: ArtifactService = Depends(Provide[Container.artifacts]),
) -> OverlayOut:
    """Change an overlay's stacking order."""
    return OverlayOut(**await artifacts.update_overlay_z_index(overlay_id, body.z_index))
