"""Tests for offcache.predicates -- the named checks behind routing."""

from __future__ import annotations

import pytest

from offcache.models import InterceptedRequest, RequestMode
from offcache.predicates import (
    is_excluded_path,
    is_font_asset,
    is_navigation,
    is_read_only,
    is_same_origin,
)

FONT_EXTS = ["ttf", "woff", "woff2"]


class TestIsReadOnly:
    def test_get_is_read_only(self) -> None:
        assert is_read_only(InterceptedRequest(url="https://dagaz.example/"))

    def test_lowercase_get_is_normalised(self) -> None:
        assert is_read_only(InterceptedRequest(url="https://dagaz.example/", method="get"))

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "HEAD", "PATCH"])
    def test_other_methods_are_not(self, method: str) -> None:
        assert not is_read_only(InterceptedRequest(url="https://dagaz.example/", method=method))


class TestIsSameOrigin:
    def test_same_host_and_scheme(self) -> None:
        assert is_same_origin("https://dagaz.example/blog/post", "https://dagaz.example")

    def test_explicit_default_port_matches(self) -> None:
        assert is_same_origin("https://dagaz.example:443/blog", "https://dagaz.example")

    def test_host_is_case_insensitive(self) -> None:
        assert is_same_origin("https://DAGAZ.example/", "https://dagaz.example")

    def test_different_scheme(self) -> None:
        assert not is_same_origin("http://dagaz.example/", "https://dagaz.example")

    def test_different_port(self) -> None:
        assert not is_same_origin("http://localhost:8080/", "http://localhost:5173")

    def test_host_prefix_is_not_same_origin(self) -> None:
        """A longer host that merely starts with the origin does not match."""
        assert not is_same_origin("https://dagaz.example.evil/", "https://dagaz.example")

    def test_other_host(self) -> None:
        assert not is_same_origin("https://fonts.gstatic.com/s/noto.woff2", "https://dagaz.example")

    def test_relative_url_never_matches(self) -> None:
        assert not is_same_origin("/blog", "https://dagaz.example")


class TestIsExcludedPath:
    def test_substring_anywhere(self) -> None:
        url = "http://localhost:5173/browser-sync/socket.io/?EIO=3"
        assert is_excluded_path(url, ["browser-sync"])

    def test_no_match(self) -> None:
        assert not is_excluded_path("http://localhost:5173/blog", ["browser-sync"])

    def test_empty_pattern_is_ignored(self) -> None:
        assert not is_excluded_path("http://localhost:5173/blog", [""])

    def test_no_patterns(self) -> None:
        assert not is_excluded_path("http://localhost:5173/blog", [])


class TestIsFontAsset:
    @pytest.mark.parametrize(
        "url",
        [
            "https://dagaz.example/fonts/NotoSans-VariableFont_wdth,wght.ttf",
            "https://dagaz.example/fonts/noto.woff",
            "https://dagaz.example/fonts/noto.woff2",
            "https://dagaz.example/fonts/noto.woff2?v=3",
            "https://dagaz.example/fonts/NOTO.WOFF2",
        ],
    )
    def test_font_urls(self, url: str) -> None:
        assert is_font_asset(url, FONT_EXTS)

    @pytest.mark.parametrize(
        "url",
        [
            "https://dagaz.example/",
            "https://dagaz.example/fonts/readme.txt",
            "https://dagaz.example/ttf",
            "https://dagaz.example/page?file=noto.woff2",
            "https://dagaz.example/fonts/noto.woff2x",
        ],
    )
    def test_non_font_urls(self, url: str) -> None:
        assert not is_font_asset(url, FONT_EXTS)

    def test_extension_with_leading_dot(self) -> None:
        assert is_font_asset("https://dagaz.example/a.otf", [".otf"])

    def test_no_extensions_configured(self) -> None:
        assert not is_font_asset("https://dagaz.example/a.ttf", [])


class TestIsNavigation:
    def test_navigate_mode(self) -> None:
        request = InterceptedRequest(url="https://dagaz.example/", mode=RequestMode.NAVIGATE)
        assert is_navigation(request)

    def test_mode_from_string(self) -> None:
        request = InterceptedRequest(url="https://dagaz.example/", mode="navigate")
        assert is_navigation(request)

    @pytest.mark.parametrize("mode", ["no-cors", "cors", "same-origin"])
    def test_subresource_modes(self, mode: str) -> None:
        assert not is_navigation(InterceptedRequest(url="https://dagaz.example/", mode=mode))
