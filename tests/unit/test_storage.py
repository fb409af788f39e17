#  Map Vault - Object Store Tests
#
#  Depends on: mapvault/services/storage.py
#  Used by:    pytest

import pytest

from mapvault.exceptions import StorageError
from mapvault.models.enums import Bucket
from mapvault.services.storage import validate_key


class TestValidateKey:
    @pytest.mark.parametrize("key", ["a.png", "uploads/p1/map.png", "bm/overlay_1914_1.png"])
    def test_accepts_relative_keys(self, key):
        assert validate_key(key) == key

    @pytest.mark.parametrize("key", ["", "/etc/passwd", "../x", "a/../../b", "a/./b", "a//b", "a/", "./a", "a\\b", "a\x00b"])
    def test_rejects_escaping_keys(self, key):
        with pytest.raises(ValueError):
            validate_key(key)


class TestObjectStore:
    async def test_put_get_roundtrip(self, object_store, tmp_path):
        await object_store.put(Bucket.BASE_MAPS, "bm1/europe.png", b"png-bytes")
        assert await object_store.get(Bucket.BASE_MAPS, "bm1/europe.png") == b"png-bytes"
        assert (tmp_path / "storage" / "base_maps" / "bm1" / "europe.png").exists()

    async def test_put_refuses_overwrite_without_upsert(self, object_store):
        await object_store.put(Bucket.TILES, "k.png", b"one")
        with pytest.raises(StorageError, match="already exists"):
            await object_store.put(Bucket.TILES, "k.png", b"two")

        await object_store.put(Bucket.TILES, "k.png", b"two", upsert=True)
        assert await object_store.get(Bucket.TILES, "k.png") == b"two"

    async def test_missing_object(self, object_store):
        with pytest.raises(StorageError, match="not found"):
            await object_store.get(Bucket.OVERLAYS, "nope.png")
        assert await object_store.exists(Bucket.OVERLAYS, "nope.png") is False

    async def test_delete_is_idempotent(self, object_store):
        await object_store.put(Bucket.OVERLAYS, "o.png", b"x")
        assert await object_store.delete(Bucket.OVERLAYS, "o.png") is True
        assert await object_store.delete(Bucket.OVERLAYS, "o.png") is False

    async def test_list_keys_sorted_with_prefix(self, object_store):
        for key in ("b/2.png", "a/1.png", "b/1.png"):
            await object_store.put(Bucket.TILES, key, b"x")
        assert await object_store.list_keys(Bucket.TILES) == ["a/1.png", "b/1.png", "b/2.png"]
        assert await object_store.list_keys(Bucket.TILES, prefix="b/") == ["b/1.png", "b/2.png"]
        assert await object_store.list_keys(Bucket.BASE_MAPS) == []

    async def test_buckets_are_separate(self, object_store):
        await object_store.put(Bucket.TILES, "same.png", b"tile")
        await object_store.put(Bucket.OVERLAYS, "same.png", b"overlay")
        assert await object_store.get(Bucket.TILES, "same.png") == b"tile"

    async def test_bad_key_rejected_before_io(self, object_store):
        with pytest.raises(ValueError):
            await object_store.put(Bucket.TILES, "../escape.png", b"x")
