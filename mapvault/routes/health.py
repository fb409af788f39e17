#  Map Vault - Health Route
#
#  Public liveness probe.
#
#  Depends on: (none)
#  Used by:    app.py

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}
