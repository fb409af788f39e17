#  Map Vault - Base Map API Integration Tests
#
#  Upload, registration, OCR, label removal and background removal
#  through the REST API with stub inference backends.
#
#  Depends on: mapvault/routes/base_maps.py, tests/conftest.py
#  Used by:    pytest

from mapvault.canvas.base import TextRegion
from mapvault.canvas.raster import open_image
from mapvault.models.enums import Bucket
from tests.helpers import bearer, make_png

REGISTRATION = {"tl": {"x": 0, "y": 0}, "tr": {"x": 63, "y": 0}, "bl": {"x": 0, "y": 47}}


async def _upload(client, token, filename="europe.png", data=None, **fields):
    form = {"title": "Europe 1914", "region": "Europe", **fields}
    return await client.post(
        "/api/base-maps",
        files={"file": (filename, data if data is not None else make_png(64, 48), "image/png")},
        data=form,
        headers=bearer(token),
    )


class TestUpload:
    async def test_admin_upload(self, app_client, admin_token, object_store):
        resp = await _upload(app_client, admin_token, attribution="Library of Congress", print_dpi="300")
        assert resp.status_code == 201
        data = resp.json()
        assert data["title"] == "Europe 1914"
        assert data["attribution"] == "Library of Congress"
        assert (data["canonical_width"], data["canonical_height"]) == (64, 48)
        assert data["print_dpi"] == 300
        assert data["uploaded_by"] is not None
        assert await object_store.exists(Bucket.BASE_MAPS, data["file_path"])

    async def test_filename_sanitised(self, app_client, admin_token):
        resp = await _upload(app_client, admin_token, filename="../../my map (v2).png")
        assert resp.status_code == 201
        assert resp.json()["file_path"].endswith("/my_map__v2_.png")

    async def test_non_admin_forbidden(self, app_client, user_token):
        resp = await _upload(app_client, user_token)
        assert resp.status_code == 403

    async def test_not_an_image(self, app_client, admin_token):
        resp = await _upload(app_client, admin_token, data=b"hello")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Unsupported image format"

    async def test_empty_upload(self, app_client, admin_token):
        resp = await _upload(app_client, admin_token, data=b"")
        assert resp.status_code == 400


class TestBrowse:
    async def test_list_and_get(self, app_client, user_token, base_map):
        listed = (await app_client.get("/api/base-maps", headers=bearer(user_token))).json()
        assert [b["id"] for b in listed] == [base_map["id"]]

        resp = await app_client.get(f"/api/base-maps/{base_map['id']}", headers=bearer(user_token))
        assert resp.status_code == 200
        assert resp.json()["region"] == "Europe"

    async def test_missing(self, app_client, user_token):
        resp = await app_client.get("/api/base-maps/nope", headers=bearer(user_token))
        assert resp.status_code == 404


class TestRegistration:
    async def test_admin_sets_points(self, app_client, admin_token, base_map):
        resp = await app_client.put(
            f"/api/base-maps/{base_map['id']}/registration", json=REGISTRATION, headers=bearer(admin_token),
        )
        assert resp.status_code == 200
        assert resp.json()["registration"] == {
            k: {"x": float(v["x"]), "y": float(v["y"])} for k, v in REGISTRATION.items()
        }

    async def test_all_three_points_required(self, app_client, admin_token, base_map):
        body = {k: v for k, v in REGISTRATION.items() if k != "bl"}
        resp = await app_client.put(
            f"/api/base-maps/{base_map['id']}/registration", json=body, headers=bearer(admin_token),
        )
        assert resp.status_code == 422

    async def test_non_admin_forbidden(self, app_client, user_token, base_map):
        resp = await app_client.put(
            f"/api/base-maps/{base_map['id']}/registration", json=REGISTRATION, headers=bearer(user_token),
        )
        assert resp.status_code == 403


class TestTextRegions:
    async def test_detection(self, app_client, user_token, base_map, text_detector):
        text_detector.regions = [
            TextRegion(x=4, y=5, width=20, height=8, text="Belgium", confidence=88.0),
            TextRegion(x=30, y=5, width=20, height=8, text="noise", confidence=15.0),
        ]
        resp = await app_client.post(
            f"/api/base-maps/{base_map['id']}/text-regions", headers=bearer(user_token),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert (data["working_width"], data["working_height"]) == (64, 48)
        assert data["scale"] == 1.0
        assert [r["text"] for r in data["regions"]] == ["Belgium"]

    async def test_detection_rate_limited(self, app_client, user_token, base_map, rate_limiter):
        me = (await app_client.get("/api/auth/me", headers=bearer(user_token))).json()
        policy = rate_limiter.policy_for("text-detection")
        for _ in range(policy.requests):
            await rate_limiter.log_request(me["id"], "text-detection")

        resp = await app_client.post(
            f"/api/base-maps/{base_map['id']}/text-regions", headers=bearer(user_token),
        )
        assert resp.status_code == 429
        assert resp.json()["remaining"] == 0


class TestClean:
    async def test_clean_with_reviewed_regions(self, app_client, admin_token, base_map, object_store):
        body = {"regions": [{"x": 2, "y": 2, "width": 10, "height": 6, "text": "Paris"}]}
        resp = await app_client.post(
            f"/api/base-maps/{base_map['id']}/clean", json=body, headers=bearer(admin_token),
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["title"] == "Europe 1914 (Clean)"
        assert data["file_path"] == f"{base_map['id']}/europe_clean_{data['id'][:8]}.png"
        img = open_image(await object_store.get(Bucket.BASE_MAPS, data["file_path"]))
        assert img.size == (64, 48)

        listed = (await app_client.get("/api/base-maps", headers=bearer(admin_token))).json()
        assert len(listed) == 2

    async def test_nothing_detected_is_conflict(self, app_client, admin_token, base_map):
        resp = await app_client.post(
            f"/api/base-maps/{base_map['id']}/clean", json={}, headers=bearer(admin_token),
        )
        assert resp.status_code == 409

    async def test_bad_region_rejected(self, app_client, admin_token, base_map):
        body = {"regions": [{"x": 2, "y": 2, "width": 0, "height": 6}]}
        resp = await app_client.post(
            f"/api/base-maps/{base_map['id']}/clean", json=body, headers=bearer(admin_token),
        )
        assert resp.status_code == 422

    async def test_non_admin_forbidden(self, app_client, user_token, base_map):
        resp = await app_client.post(
            f"/api/base-maps/{base_map['id']}/clean", json={}, headers=bearer(user_token),
        )
        assert resp.status_code == 403


class TestBackgroundRemoval:
    async def test_returns_transparent_png(self, app_client, user_token, base_map, segmenter):
        resp = await app_client.post(
            f"/api/base-maps/{base_map['id']}/background-removal", headers=bearer(user_token),
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        img = open_image(resp.content)
        assert img.mode == "RGBA"
        assert img.getpixel((0, 0))[3] == 0
        assert segmenter.calls == [(64, 48)]

    async def test_missing_base_map(self, app_client, user_token):
        resp = await app_client.post("/api/base-maps/nope/background-removal", headers=bearer(user_token))
        assert resp.status_code == 404
