"""Tests for the CachePartition module."""

from __future__ import annotations

import gzip

import httpx
import pytest

from offcache.cache import CachePartition
from offcache.exceptions import CacheStorageError
from offcache.models import InterceptedRequest

URL = "https://dagaz.example/blog"


@pytest.fixture()
def partition(tmp_path):
    """Create a CachePartition under tmp_path."""
    p = CachePartition("dagaz-cache-v1.4", tmp_path / "dagaz-cache-v1.4")
    yield p
    p.close()


def _make_response(
    body: bytes = b"<html>blog</html>",
    status_code: int = 200,
    url: str = URL,
    headers: dict | None = None,
) -> httpx.Response:
    """Build a read response with a request attached, as a client would return."""
    return httpx.Response(
        status_code,
        content=body,
        headers=headers or {"content-type": "text/html; charset=utf-8"},
        request=httpx.Request("GET", url),
    )


# ------------------------------------------------------------------ #
# match / put
# ------------------------------------------------------------------ #


class TestMatchPut:
    def test_put_then_match(self, partition: CachePartition) -> None:
        partition.put(URL, _make_response())
        hit = partition.match(URL)
        assert hit is not None
        assert hit.status_code == 200
        assert hit.content == b"<html>blog</html>"
        assert hit.headers["content-type"] == "text/html; charset=utf-8"

    def test_miss_returns_none(self, partition: CachePartition) -> None:
        assert partition.match("https://dagaz.example/missing") is None

    def test_match_with_intercepted_request(self, partition: CachePartition) -> None:
        partition.put(InterceptedRequest(url=URL, mode="navigate"), _make_response())
        assert partition.match(InterceptedRequest(url=URL)) is not None

    def test_fragment_is_ignored(self, partition: CachePartition) -> None:
        partition.put(URL, _make_response())
        assert partition.match(f"{URL}#comments") is not None

    @pytest.mark.parametrize(
        "variant",
        ["https://dagaz.example", "HTTPS://DAGAZ.example/", "https://dagaz.example:443#top"],
    )
    def test_equivalent_urls_share_an_entry(self, partition: CachePartition, variant: str) -> None:
        partition.put("https://dagaz.example/", _make_response(url="https://dagaz.example/"))
        assert partition.match(variant) is not None
        assert partition.keys() == ["https://dagaz.example/"]

    def test_cache_url_is_normalised(self) -> None:
        request = InterceptedRequest(url="https://Dagaz.example:443#top")
        assert request.cache_url == "https://dagaz.example/"

    def test_query_is_part_of_identity(self, partition: CachePartition) -> None:
        partition.put(URL, _make_response())
        assert partition.match(f"{URL}?page=2") is None

    def test_method_is_part_of_identity(self, partition: CachePartition) -> None:
        partition.put(URL, _make_response())
        assert partition.match(InterceptedRequest(url=URL, method="HEAD")) is None

    def test_put_replaces_existing_entry(self, partition: CachePartition) -> None:
        partition.put(URL, _make_response(b"old"))
        partition.put(URL, _make_response(b"new"))
        assert partition.match(URL).content == b"new"
        assert len(partition) == 1

    def test_match_returns_independent_copies(self, partition: CachePartition) -> None:
        partition.put(URL, _make_response())
        first = partition.match(URL)
        second = partition.match(URL)
        assert first is not second
        assert first.content == second.content

    def test_response_url_is_preserved(self, partition: CachePartition) -> None:
        partition.put(URL, _make_response(url="https://dagaz.example/blog/"))
        assert str(partition.match(URL).url) == "https://dagaz.example/blog/"

    def test_response_without_request(self, partition: CachePartition) -> None:
        """Hand-built responses fall back to the request URL."""
        partition.put(URL, httpx.Response(200, content=b"synthetic"))
        hit = partition.match(URL)
        assert hit.content == b"synthetic"
        assert str(hit.url) == URL

    def test_decoded_body_is_stored(self, partition: CachePartition) -> None:
        """A compressed response is stored decoded and without encoding headers."""
        raw = b"<html>compressed</html>"
        response = _make_response(
            body=gzip.compress(raw),
            headers={"content-type": "text/html", "content-encoding": "gzip"},
        )
        partition.put(URL, response)
        hit = partition.match(URL)
        assert hit.content == raw
        assert "content-encoding" not in hit.headers

    def test_non_2xx_can_be_stored(self, partition: CachePartition) -> None:
        partition.put(URL, _make_response(b"gone", status_code=410))
        assert partition.match(URL).status_code == 410


# ------------------------------------------------------------------ #
# Listing and maintenance
# ------------------------------------------------------------------ #


class TestMaintenance:
    def test_keys_sorted(self, partition: CachePartition) -> None:
        partition.put("https://dagaz.example/b", _make_response())
        partition.put("https://dagaz.example/a", _make_response())
        assert partition.keys() == ["https://dagaz.example/a", "https://dagaz.example/b"]

    def test_entries(self, partition: CachePartition) -> None:
        partition.put(URL, _make_response(b"12345"))
        assert partition.entries() == [
            {"url": URL, "method": "GET", "status_code": 200, "size": 5}
        ]

    def test_delete(self, partition: CachePartition) -> None:
        partition.put(URL, _make_response())
        assert partition.delete(URL) is True
        assert partition.delete(URL) is False
        assert partition.match(URL) is None

    def test_clear(self, partition: CachePartition) -> None:
        partition.put("https://dagaz.example/a", _make_response())
        partition.put("https://dagaz.example/b", _make_response())
        partition.clear()
        assert len(partition) == 0

    def test_entries_survive_reopen(self, tmp_path) -> None:
        first = CachePartition("p", tmp_path / "p")
        first.put(URL, _make_response())
        first.close()

        second = CachePartition("p", tmp_path / "p")
        try:
            assert second.match(URL).content == b"<html>blog</html>"
        finally:
            second.close()


class TestClosed:
    def test_closed_partition_raises(self, partition: CachePartition) -> None:
        partition.close()
        assert partition.closed
        with pytest.raises(CacheStorageError, match="closed"):
            partition.match(URL)
        with pytest.raises(CacheStorageError, match="closed"):
            partition.put(URL, _make_response())

    def test_close_is_idempotent(self, partition: CachePartition) -> None:
        partition.close()
        partition.close()
        assert partition.closed


class TestMakeKey:
    def test_deterministic(self) -> None:
        assert CachePartition._make_key("GET", URL) == CachePartition._make_key("GET", URL)

    def test_method_case_insensitive(self) -> None:
        assert CachePartition._make_key("get", URL) == CachePartition._make_key("GET", URL)

    def test_distinct_urls(self) -> None:
        assert CachePartition._make_key("GET", URL) != CachePartition._make_key("GET", URL + "/")
