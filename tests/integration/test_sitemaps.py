"""
Integration tests for search console sitemap operations.

Verifies:
- Sitemap listing and preference order for detection
- Submission success and reported (not raised) failures
- Same-host URL reduction
- Article fallback chain
"""

import httpx
import pytest

from conftest import RecordingHandler, error_response, json_response


def listing(*entries):
    return json_response(200, {"sitemap": list(entries)})


class TestListSitemaps:
    """Test sitemap listing."""

    @pytest.mark.asyncio
    async def test_parses_entries(self, build_search_console):
        handler = RecordingHandler(
            [
                listing(
                    {
                        "path": "https://example.com/sitemap.xml",
                        "type": "sitemap",
                        "isPending": False,
                        "isSitemapsIndex": False,
                        "lastSubmitted": "2026-01-01T10:00:00.000Z",
                        "errors": "0",
                        "warnings": "2",
                        "contents": [{"type": "web", "submitted": "120", "indexed": "100"}],
                    }
                )
            ]
        )

        async with build_search_console(handler) as client:
            sitemaps = await client.list_sitemaps()

        assert handler.requests[0].method == "GET"
        assert handler.raw_path(0).endswith("/sites/https%3A%2F%2Fexample.com%2F/sitemaps")
        assert len(sitemaps) == 1
        assert sitemaps[0].warnings == 2
        assert sitemaps[0].contents[0].submitted == 120

    @pytest.mark.asyncio
    async def test_empty_listing(self, build_search_console):
        handler = RecordingHandler([json_response(200, {})])

        async with build_search_console(handler) as client:
            assert await client.list_sitemaps() == []


class TestDetectSitemapUrl:
    """Test primary sitemap detection."""

    @pytest.mark.asyncio
    async def test_plain_sitemap_preferred_over_index(self, build_search_console):
        handler = RecordingHandler(
            [
                listing(
                    {"path": "https://example.com/sitemap_index.xml", "isSitemapsIndex": True},
                    {"path": "https://example.com/sitemap.xml", "type": "sitemap"},
                )
            ]
        )

        async with build_search_console(handler) as client:
            assert await client.detect_sitemap_url() == "https://example.com/sitemap.xml"

    @pytest.mark.asyncio
    async def test_index_when_no_plain_sitemap(self, build_search_console):
        handler = RecordingHandler(
            [
                listing(
                    {"path": "https://example.com/feed.rss", "type": "rssFeed"},
                    {"path": "https://example.com/sitemap_index.xml", "isSitemapsIndex": True},
                )
            ]
        )

        async with build_search_console(handler) as client:
            assert await client.detect_sitemap_url() == "https://example.com/sitemap_index.xml"

    @pytest.mark.asyncio
    async def test_any_sitemap_type_then_first(self, build_search_console):
        handler = RecordingHandler(
            [
                listing(
                    {"path": "https://example.com/feed.rss", "type": "rssFeed"},
                    {"path": "https://example.com/pages.txt", "type": "sitemap"},
                ),
                listing({"path": "https://example.com/feed.rss", "type": "rssFeed"}),
            ]
        )

        async with build_search_console(handler) as client:
            assert await client.detect_sitemap_url() == "https://example.com/pages.txt"
            assert await client.detect_sitemap_url() == "https://example.com/feed.rss"

    @pytest.mark.asyncio
    async def test_listing_failure_returns_none(self, build_search_console):
        handler = RecordingHandler([error_response(403, "User does not have sufficient permission")])

        async with build_search_console(handler) as client:
            assert await client.detect_sitemap_url() is None

    @pytest.mark.asyncio
    async def test_nothing_registered(self, build_search_console):
        handler = RecordingHandler([listing()])

        async with build_search_console(handler) as client:
            assert await client.detect_sitemap_url() is None


class TestSubmitSitemap:
    """Test sitemap submission."""

    @pytest.mark.asyncio
    async def test_success(self, build_search_console):
        handler = RecordingHandler([json_response(200)])

        async with build_search_console(handler) as client:
            result = await client.submit_sitemap("https://example.com/sitemap.xml")

        assert result.success
        assert handler.requests[0].method == "PUT"
        assert handler.raw_path(0).endswith(
            "/sitemaps/https%3A%2F%2Fexample.com%2Fsitemap.xml"
        )

    @pytest.mark.asyncio
    async def test_failure_reported_not_raised(self, build_search_console):
        handler = RecordingHandler([error_response(403, "User does not have sufficient permission")])

        async with build_search_console(handler) as client:
            result = await client.submit_sitemap("https://example.com/sitemap.xml")

        assert not result.success
        assert "Permission denied" in result.message

    @pytest.mark.asyncio
    async def test_same_host_url_reduced_to_path(self, build_search_console):
        handler = RecordingHandler([json_response(200)])

        async with build_search_console(handler) as client:
            await client.submit_sitemap_url("https://example.com/sitemaps/main.xml?lang=en")

        assert handler.raw_path(0).endswith("/sitemaps/%2Fsitemaps%2Fmain.xml%3Flang%3Den")

    @pytest.mark.asyncio
    async def test_other_host_url_kept(self, build_search_console):
        handler = RecordingHandler([json_response(200)])

        async with build_search_console(handler) as client:
            await client.submit_sitemap_url("https://cdn.example.net/sitemap.xml")

        assert handler.raw_path(0).endswith("/sitemaps/https%3A%2F%2Fcdn.example.net%2Fsitemap.xml")


class TestSubmitSitemapForArticle:
    """Test the article fallback chain."""

    @pytest.mark.asyncio
    async def test_detected_sitemap_first(self, build_search_console):
        handler = RecordingHandler(
            [
                listing({"path": "https://example.com/news-sitemap.xml", "type": "sitemap"}),
                json_response(200),
            ]
        )

        async with build_search_console(handler) as client:
            result = await client.submit_sitemap_for_article("https://example.com/blog/post")

        assert result.success
        assert result.message == "Sitemap submitted: https://example.com/news-sitemap.xml"
        assert handler.calls == 2

    @pytest.mark.asyncio
    async def test_falls_back_through_known_paths(self, build_search_console):
        handler = RecordingHandler(
            [
                listing(),
                error_response(404, "Sitemap not found"),
                json_response(200),
            ]
        )

        async with build_search_console(handler) as client:
            result = await client.submit_sitemap_for_article("https://example.com/blog/post")

        assert result.success
        assert result.message == "Sitemap submitted: https://example.com/sitemap_blog.xml"
        assert handler.raw_path(1).endswith("%2Fsitemap.xml")

    @pytest.mark.asyncio
    async def test_all_locations_fail(self, build_search_console):
        handler = RecordingHandler(
            [listing()] + [error_response(404, "Sitemap not found") for _ in range(3)]
        )

        async with build_search_console(handler) as client:
            result = await client.submit_sitemap_for_article("https://example.com/blog/post")

        assert not result.success
        assert "Sitemap not found" in result.message
        assert handler.calls == 4

    @pytest.mark.asyncio
    async def test_invalid_article_url(self, build_search_console):
        handler = RecordingHandler()

        async with build_search_console(handler) as client:
            result = await client.submit_sitemap_for_article("not a url")

        assert not result.success
        assert handler.calls == 0


class TestMalformedProviderData:
    """Test malformed provider payloads are reported, not raised."""

    @pytest.mark.asyncio
    async def test_entry_without_path_skipped(self, build_search_console):
        handler = RecordingHandler(
            [
                listing(
                    {"type": "sitemap"},
                    {"path": "https://example.com/sitemap.xml", "type": "sitemap"},
                )
            ]
        )

        async with build_search_console(handler) as client:
            sitemaps = await client.list_sitemaps()

        assert [s.path for s in sitemaps] == ["https://example.com/sitemap.xml"]

    @pytest.mark.asyncio
    async def test_only_malformed_entries_detects_nothing(self, build_search_console):
        handler = RecordingHandler([listing({"type": "sitemap"})])

        async with build_search_console(handler) as client:
            assert await client.detect_sitemap_url() is None

    @pytest.mark.asyncio
    async def test_undecodable_submission_body_reported(self, build_search_console):
        handler = RecordingHandler([httpx.Response(200, text="<html>ok</html>")])

        async with build_search_console(handler) as client:
            result = await client.submit_sitemap("https://example.com/sitemap.xml")

        assert not result.success
        assert "Undecodable response body" in result.message
        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_article_submission_with_malformed_listing(self, build_search_console):
        handler = RecordingHandler([listing({"type": "sitemap"}), json_response(200)])

        async with build_search_console(handler) as client:
            result = await client.submit_sitemap_for_article("https://example.com/blog/post")

        assert result.success
        assert result.message == "Sitemap submitted: https://example.com/sitemap.xml"
