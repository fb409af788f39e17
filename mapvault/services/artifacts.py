#  Map Vault - Artifact Service
#
#  Persists the things the vault stores: posters, base maps, clean base
#  maps and overlays. Every save is "upload object, then insert row"; if
#  the insert fails the upload is deleted again, and find_orphans() sweeps
#  up anything that compensation missed.
#
#  Depends on: db/connection.py, services/storage.py, canvas/surface.py,
#              canvas/raster.py, mapvault/config.py
#  Used by:    container.py, edge/functions.py, services/imaging.py,
#              routes/base_maps.py, routes/overlays.py, routes/admin.py

import asyncio
import json
import logging
import re
import time
import uuid
from pathlib import PurePosixPath

from PIL import Image

from mapvault.canvas.raster import open_image, to_png_bytes
from mapvault.canvas.surface import AnnotationSurface
from mapvault.config import DEFAULT_CANVAS_HEIGHT, DEFAULT_CANVAS_WIDTH
from mapvault.db.connection import Database
from mapvault.exceptions import NotFoundError, PayloadValidationError
from mapvault.models.enums import Bucket, LicenseStatus, OverlayFormat
from mapvault.services.storage import ObjectStore, validate_key

logger = logging.getLogger("mapvault.artifacts")

POSTER_QUEUED_MESSAGE = "Poster uploaded. Tiling will be processed by worker."

_BASE_MAP_COPY_FIELDS = (
    "region", "attribution", "license", "source_url",
    "canonical_width", "canonical_height", "print_dpi", "projection",
    "registration_json",
)


def theme_slug(theme: str) -> str:
    """Lowercase, whitespace to underscores, anything else unsafe dropped."""
    slug = re.sub(r"\s+", "_", theme.strip().lower())
    slug = re.sub(r"[^a-z0-9_-]", "", slug)
    return slug or "overlay"


def _base_map_out(row) -> dict:
    data = dict(row)
    raw = data.pop("registration_json", None)
    data["registration"] = json.loads(raw) if raw else None
    return data


class ArtifactService:
    def __init__(self, db: Database, store: ObjectStore):
        self._db = db
        self._store = store

    @property
    def store(self) -> ObjectStore:
        return self._store

    async def _upload_then_insert(
        self, bucket: Bucket, key: str, data: bytes, sql: str, params: tuple, *, upsert: bool = False,
    ) -> None:
        await self._store.put(bucket, key, data, upsert=upsert)
        try:
            await self._db.execute_write(sql, params)
        except Exception:
            await self._discard(bucket, key)
            raise

    async def _discard(self, bucket: Bucket, key: str) -> None:
        try:
            await self._store.delete(bucket, key)
            logger.warning("Removed %s/%s after failed insert", bucket.value, key)
        except Exception as e:
            # Left for find_orphans()
            logger.error("Could not remove %s/%s: %s", bucket.value, key, type(e).__name__)

    # ------------------------------------------------------------------
    # Posters
    # ------------------------------------------------------------------

    async def ingest_poster(
        self,
        title: str,
        license_status: LicenseStatus | str,
        filename: str,
        data: bytes,
        credit: str | None = None,
        created_by: str | None = None,
    ) -> dict:
        status = LicenseStatus(license_status)
        poster_id = str(uuid.uuid4())
        key = validate_key(f"uploads/{poster_id}/{filename}")
        await self._upload_then_insert(
            Bucket.TILES, key, data,
            "INSERT INTO posters (id, title, credit, license_status, dzi_path, created_by, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (poster_id, title, credit, status.value,
             f"{poster_id}/sample.dzi", created_by, time.time()),
            upsert=True,
        )
        logger.info("Poster %s queued (%d bytes)", poster_id, len(data))
        return {"posterId": poster_id, "status": "queued", "message": POSTER_QUEUED_MESSAGE}

    # ------------------------------------------------------------------
    # Base maps
    # ------------------------------------------------------------------

    async def create_base_map(
        self,
        title: str,
        filename: str,
        data: bytes,
        *,
        region: str | None = None,
        attribution: str | None = None,
        license: str | None = None,
        source_url: str | None = None,
        projection: str | None = None,
        print_dpi: int = 600,
        uploaded_by: str | None = None,
    ) -> dict:
        try:
            img = await asyncio.to_thread(open_image, data)
        except ValueError as e:
            raise PayloadValidationError(str(e)) from e

        base_map_id = str(uuid.uuid4())
        key = validate_key(f"{base_map_id}/{filename}")
        await self._upload_then_insert(
            Bucket.BASE_MAPS, key, data,
            "INSERT INTO base_maps (id, title, region, file_path, attribution, license, source_url, "
            "canonical_width, canonical_height, print_dpi, projection, uploaded_by, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (base_map_id, title, region, key, attribution, license, source_url,
             img.width, img.height, print_dpi, projection, uploaded_by, time.time()),
        )
        logger.info("Base map %s stored (%dx%d)", base_map_id, img.width, img.height)
        return await self.get_base_map(base_map_id)

    async def get_base_map(self, base_map_id: str) -> dict:
        row = await self._db.fetchone("SELECT * FROM base_maps WHERE id = ?", (base_map_id,))
        if not row:
            raise NotFoundError(f"Base map {base_map_id} not found")
        return _base_map_out(row)

    async def list_base_maps(self) -> list[dict]:
        rows = await self._db.fetchall("SELECT * FROM base_maps ORDER BY created_at DESC, rowid DESC")
        return [_base_map_out(r) for r in rows]

    async def load_base_map_image(self, base_map: dict) -> Image.Image:
        data = await self._store.get(Bucket.BASE_MAPS, base_map["file_path"])
        return await asyncio.to_thread(open_image, data)

    async def set_registration(self, base_map_id: str, points: dict) -> dict:
        """Replace the three registration points. All of tl, tr, bl are required."""
        missing = [k for k in ("tl", "tr", "bl") if k not in points]
        if missing:
            raise PayloadValidationError(f"Missing registration points: {', '.join(missing)}")
        await self.get_base_map(base_map_id)
        payload = {k: {"x": points[k]["x"], "y": points[k]["y"]} for k in ("tl", "tr", "bl")}
        await self._db.execute_write(
            "UPDATE base_maps SET registration_json = ? WHERE id = ?",
            (json.dumps(payload), base_map_id),
        )
        logger.info("Registration saved for base map %s", base_map_id)
        return await self.get_base_map(base_map_id)

    async def save_clean_base_map(self, source: dict, cleaned: Image.Image, user_id: str | None = None) -> dict:
        """Store an inpainted copy next to the source and register it as a new base map."""
        new_id = str(uuid.uuid4())
        # Each clean copy owns its object; earlier copies are never overwritten
        src = PurePosixPath(source["file_path"])
        key = validate_key(str(src.with_name(f"{src.stem}_clean_{new_id[:8]}.png")))
        png = await asyncio.to_thread(to_png_bytes, cleaned)

        row = await self._db.fetchone("SELECT * FROM base_maps WHERE id = ?", (source["id"],))
        if not row:
            raise NotFoundError(f"Base map {source['id']} not found")
        copied = tuple(row[f] for f in _BASE_MAP_COPY_FIELDS)

        await self._upload_then_insert(
            Bucket.BASE_MAPS, key, png,
            "INSERT INTO base_maps (id, title, file_path, " + ", ".join(_BASE_MAP_COPY_FIELDS)
            + ", uploaded_by, created_at) VALUES (?, ?, ?, "
            + ", ".join("?" * len(_BASE_MAP_COPY_FIELDS)) + ", ?, ?)",
            (new_id, f"{source['title']} (Clean)", key, *copied, user_id, time.time()),
        )
        logger.info("Clean base map %s saved from %s", new_id, source["id"])
        return await self.get_base_map(new_id)

    # ------------------------------------------------------------------
    # Overlays
    # ------------------------------------------------------------------

    async def create_overlay(
        self,
        base_map_id: str,
        theme: str,
        year: int,
        commands: list[dict],
        *,
        title: str = "",
        notes: str = "",
        author: str | None = None,
    ) -> dict:
        base_map = await self.get_base_map(base_map_id)
        width = base_map.get("canonical_width") or DEFAULT_CANVAS_WIDTH
        height = base_map.get("canonical_height") or DEFAULT_CANVAS_HEIGHT

        def _build() -> tuple[bytes, str]:
            surface = AnnotationSurface.from_commands(width, height, commands)
            return surface.export_png(), surface.to_svg()

        try:
            png, svg = await asyncio.to_thread(_build)
        except ValueError as e:
            raise PayloadValidationError(str(e)) from e

        overlay_id = str(uuid.uuid4())
        key = validate_key(
            f"overlays/{base_map_id}/{theme_slug(theme)}_{year}_{int(time.time() * 1000)}.png"
        )
        full_notes = f"{notes}\n\n--- SVG Source ---\n{svg}"

        await self._store.put(Bucket.OVERLAYS, key, png)
        try:
            async with self._db.transaction():
                row = await self._db.fetchone(
                    "SELECT MAX(z_index) AS z FROM overlays WHERE base_map_id = ?", (base_map_id,),
                )
                z_index = 0 if row["z"] is None else row["z"] + 1
                await self._db.execute_write(
                    "INSERT INTO overlays (id, base_map_id, theme, year, title, z_index, width_px, "
                    "height_px, format, file_path, notes, author, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (overlay_id, base_map_id, theme, year, title, z_index, width, height,
                     OverlayFormat.PNG.value, key, full_notes, author, time.time()),
                )
        except Exception:
            await self._discard(Bucket.OVERLAYS, key)
            raise

        logger.info("Overlay %s saved on base map %s (z=%d)", overlay_id, base_map_id, z_index)
        return await self.get_overlay(overlay_id)

    async def get_overlay(self, overlay_id: str) -> dict:
        row = await self._db.fetchone("SELECT * FROM overlays WHERE id = ?", (overlay_id,))
        if not row:
            raise NotFoundError(f"Overlay {overlay_id} not found")
        return dict(row)

    async def list_overlays(self, base_map_id: str) -> list[dict]:
        rows = await self._db.fetchall(
            "SELECT * FROM overlays WHERE base_map_id = ? ORDER BY z_index ASC, created_at ASC",
            (base_map_id,),
        )
        return [dict(r) for r in rows]

    async def update_overlay_z_index(self, overlay_id: str, z_index: int) -> dict:
        await self.get_overlay(overlay_id)
        await self._db.execute_write(
            "UPDATE overlays SET z_index = ? WHERE id = ?", (z_index, overlay_id),
        )
        return await self.get_overlay(overlay_id)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def find_orphans(self, delete: bool = False) -> dict:
        """Objects no row points at. With delete=True they are removed too."""
        poster_ids = {r["id"] for r in await self._db.fetchall("SELECT id FROM posters")}
        base_map_keys = {r["file_path"] for r in await self._db.fetchall("SELECT file_path FROM base_maps")}
        overlay_keys = {r["file_path"] for r in await self._db.fetchall("SELECT file_path FROM overlays")}

        def _tile_owner(key: str) -> str:
            parts = key.split("/")
            return parts[1] if parts[0] == "uploads" and len(parts) > 1 else parts[0]

        orphans: list[dict] = []
        for key in await self._store.list_keys(Bucket.TILES):
            if _tile_owner(key) not in poster_ids:
                orphans.append({"bucket": Bucket.TILES.value, "key": key})
        for key in await self._store.list_keys(Bucket.BASE_MAPS):
            if key not in base_map_keys:
                orphans.append({"bucket": Bucket.BASE_MAPS.value, "key": key})
        for key in await self._store.list_keys(Bucket.OVERLAYS):
            if key not in overlay_keys:
                orphans.append({"bucket": Bucket.OVERLAYS.value, "key": key})

        deleted = 0
        if delete:
            for o in orphans:
                if await self._store.delete(o["bucket"], o["key"]):
                    deleted += 1
        if orphans:
            logger.info("Reconciliation found %d orphans, deleted %d", len(orphans), deleted)
        return {"orphans": orphans, "deleted": deleted}
