"""Tests for CacheStorage -- the registry of named partitions."""

from __future__ import annotations

import httpx
import pytest

from offcache.cache import CacheStorage, validate_partition_name
from offcache.exceptions import InvalidUsageError

URL = "https://dagaz.example/offline.html"


def _response(body: bytes) -> httpx.Response:
    return httpx.Response(200, content=body, request=httpx.Request("GET", URL))


class TestValidatePartitionName:
    @pytest.mark.parametrize("name", ["dagaz-cache-v1.4", "dagaz-fonts-v1", "a", "v_2"])
    def test_valid(self, name: str) -> None:
        assert validate_partition_name(name) == name

    @pytest.mark.parametrize("name", ["", ".hidden", "-x", "../escape", "a/b", "with space"])
    def test_invalid(self, name: str) -> None:
        with pytest.raises(InvalidUsageError):
            validate_partition_name(name)


class TestCacheStorage:
    def test_empty_storage(self, storage: CacheStorage) -> None:
        assert storage.keys() == []
        assert not storage.has("dagaz-cache-v1.4")

    def test_open_creates_partition(self, storage: CacheStorage) -> None:
        storage.open("dagaz-cache-v1.4")
        assert storage.has("dagaz-cache-v1.4")
        assert storage.keys() == ["dagaz-cache-v1.4"]

    def test_open_reuses_handle(self, storage: CacheStorage) -> None:
        assert storage.open("shell-v1") is storage.open("shell-v1")

    def test_keys_sorted(self, storage: CacheStorage) -> None:
        for name in ["shell-v2", "fonts-v1", "shell-v1"]:
            storage.open(name)
        assert storage.keys() == ["fonts-v1", "shell-v1", "shell-v2"]

    def test_open_rejects_invalid_name(self, storage: CacheStorage) -> None:
        with pytest.raises(InvalidUsageError):
            storage.open("../outside")

    def test_delete(self, storage: CacheStorage) -> None:
        storage.open("shell-v1").put(URL, _response(b"old"))
        assert storage.delete("shell-v1") is True
        assert not storage.has("shell-v1")
        assert storage.keys() == []

    def test_delete_missing_is_not_an_error(self, storage: CacheStorage) -> None:
        assert storage.delete("never-existed") is False

    def test_reopen_after_delete_is_empty(self, storage: CacheStorage) -> None:
        storage.open("shell-v1").put(URL, _response(b"old"))
        storage.delete("shell-v1")
        assert storage.open("shell-v1").match(URL) is None

    def test_concurrent_deleters(self, tmp_path) -> None:
        """Two registries over the same root can both clean up one partition."""
        first = CacheStorage(tmp_path)
        second = CacheStorage(tmp_path)
        try:
            first.open("shell-v1")
            second.open("shell-v1")
            assert first.delete("shell-v1") is True
            assert second.delete("shell-v1") is False
        finally:
            first.close()
            second.close()

    def test_match_across_partitions(self, storage: CacheStorage) -> None:
        storage.open("shell-v1")
        storage.open("shell-v2").put(URL, _response(b"v2"))
        hit = storage.match(URL)
        assert hit is not None
        assert hit.content == b"v2"

    def test_match_first_partition_by_name_wins(self, storage: CacheStorage) -> None:
        storage.open("b-shell").put(URL, _response(b"b"))
        storage.open("a-shell").put(URL, _response(b"a"))
        assert storage.match(URL).content == b"a"

    def test_match_miss(self, storage: CacheStorage) -> None:
        storage.open("shell-v1")
        assert storage.match(URL) is None

    def test_match_leaves_stray_directories_alone(self, storage: CacheStorage) -> None:
        stray = storage.root / "notes"
        stray.mkdir(parents=True)
        (stray / "readme.txt").write_text("not a cache")

        assert storage.match(URL) is None
        assert sorted(p.name for p in stray.iterdir()) == ["readme.txt"]

    def test_match_finds_partitions_not_yet_opened(self, tmp_path) -> None:
        with CacheStorage(tmp_path) as storage:
            storage.open("shell-v1").put(URL, _response(b"kept"))
        with CacheStorage(tmp_path) as storage:
            assert storage.match(URL).content == b"kept"

    def test_partitions_persist(self, tmp_path) -> None:
        with CacheStorage(tmp_path) as storage:
            storage.open("shell-v1").put(URL, _response(b"kept"))
        with CacheStorage(tmp_path) as storage:
            assert storage.keys() == ["shell-v1"]
            assert storage.open("shell-v1").match(URL).content == b"kept"

    def test_root_is_partitions_subdirectory(self, tmp_path) -> None:
        assert CacheStorage(tmp_path).root == tmp_path / "partitions"
