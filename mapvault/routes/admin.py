#  Map Vault - Admin Routes
#
#  Admin-only endpoints: user and role management, system stats,
#  request log retention, storage reconciliation.
#
#  Depends on: container.py, models/schemas.py, middleware/auth.py
#  Used by:    app.py

import time

from dependency_injector.wiring import inject, Provide
from fastapi import APIRouter, Depends, HTTPException, Query

from mapvault.config import REQUEST_LOG_RETENTION_SECONDS
from mapvault.container import Container
from mapvault.db.connection import Database
from mapvault.middleware.auth import require_admin
from mapvault.models.enums import Role
from mapvault.models.schemas import (
    AdminStats,
    AdminUserOut,
    ReconcileResult,
    RoleChange,
    SweepResult,
)
from mapvault.services.artifacts import ArtifactService
from mapvault.services.auth import AuthService
from mapvault.services.rate_limiter import RateLimiter

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# User Management
# ---------------------------------------------------------------------------

async def _user_out(db: Database, user_id: str) -> AdminUserOut:
    row = await db.fetchone(
        "SELECT id, email, display_name, is_active, created_at, last_login_at "
        "FROM users WHERE id = ?",
        (user_id,),
    )
    if not row:
        raise HTTPException(404, "User not found")
    roles = await db.fetchall(
        "SELECT role FROM user_roles WHERE user_id = ? ORDER BY role", (user_id,),
    )
    return AdminUserOut(
        id=row["id"],
        email=row["email"],
        display_name=row["display_name"] or "",
        roles=[r["role"] for r in roles],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        last_login_at=row["last_login_at"],
    )


@router.get("/users")
@inject
async def list_users(
    _admin: dict = Depends(require_admin),
    db: Database = Depends(Provide[Container.db]),
) -> list[AdminUserOut]:
    """List all users with their roles."""
    rows = await db.fetchall(
        "SELECT id, email, display_name, is_active, created_at, last_login_at "
        "FROM users ORDER BY created_at DESC"
    )

    # Batch role lookup
    role_rows = await db.fetchall("SELECT user_id, role FROM user_roles ORDER BY role")
    role_map: dict[str, list[str]] = {}
    for r in role_rows:
        role_map.setdefault(r["user_id"], []).append(r["role"])

    return [
        AdminUserOut(
            id=r["id"],
            email=r["email"],
            display_name=r["display_name"] or "",
            roles=role_map.get(r["id"], []),
            is_active=bool(r["is_active"]),
            created_at=r["created_at"],
            last_login_at=r["last_login_at"],
        )
        for r in rows
    ]


@router.post("/users/{user_id}/roles")
@inject
async def grant_role(
    user_id: str,
    body: RoleChange,
    _admin: dict = Depends(require_admin),
    db: Database = Depends(Provide[Container.db]),
    auth: AuthService = Depends(Provide[Container.auth]),
) -> AdminUserOut:
    await _user_out(db, user_id)
    await auth.grant_role(user_id, body.role)
    return await _user_out(db, user_id)


@router.delete("/users/{user_id}/roles/{role}")
@inject
async def revoke_role(
    user_id: str,
    role: Role,
    admin: dict = Depends(require_admin),
    db: Database = Depends(Provide[Container.db]),
    auth: AuthService = Depends(Provide[Container.auth]),
) -> AdminUserOut:
    # Self-protection guard
    if user_id == admin["id"] and role == Role.ADMIN:
        raise HTTPException(400, "Cannot remove your own admin role")
    await _user_out(db, user_id)
    await auth.revoke_role(user_id, role)
    return await _user_out(db, user_id)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

@router.get("/stats")
@inject
async def get_stats(
    _admin: dict = Depends(require_admin),
    db: Database = Depends(Provide[Container.db]),
) -> AdminStats:
    """Aggregate counts plus per-endpoint request volume inside the retention window."""
    users = await db.fetchone(
        "SELECT COUNT(*) AS total, COALESCE(SUM(is_active), 0) AS active FROM users"
    )
    admins = await db.fetchone(
        "SELECT COUNT(*) AS cnt FROM user_roles WHERE role = ?", (Role.ADMIN.value,),
    )
    posters = await db.fetchone("SELECT COUNT(*) AS cnt FROM posters")
    base_maps = await db.fetchone("SELECT COUNT(*) AS cnt FROM base_maps")
    overlays = await db.fetchone("SELECT COUNT(*) AS cnt FROM overlays")
    by_endpoint = await db.fetchall(
        "SELECT endpoint, COUNT(*) AS cnt FROM request_logs "
        "WHERE created_at >= ? GROUP BY endpoint",
        (time.time() - REQUEST_LOG_RETENTION_SECONDS,),
    )

    return AdminStats(
        total_users=users["total"],
        active_users=users["active"],
        admins=admins["cnt"],
        total_posters=posters["cnt"],
        total_base_maps=base_maps["cnt"],
        total_overlays=overlays["cnt"],
        requests_last_hour={r["endpoint"]: r["cnt"] for r in by_endpoint},
    )


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

@router.post("/request-logs/sweep")
@inject
async def sweep_request_logs(
    _admin: dict = Depends(require_admin),
    rate_limiter: RateLimiter = Depends(Provide[Container.rate_limiter]),
) -> SweepResult:
    """Delete request log entries older than the retention window."""
    return SweepResult(deleted=await rate_limiter.sweep_expired())


@router.post("/storage/reconcile")
@inject
async def reconcile_storage(
    delete: bool = Query(False),
    _admin: dict = Depends(require_admin),
    artifacts: ArtifactService = Depends(Provide[Container.artifacts]),
) -> ReconcileResult:
    """List stored objects no row refers to; pass delete=true to remove them."""
    return ReconcileResult(**await artifacts.find_orphans(delete=delete))
