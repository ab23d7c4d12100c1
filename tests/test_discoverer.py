from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests

from feedscout.config import DiscoverySettings, ScrapingConfig, SiteConfig
from feedscout.services.discoverer import Discoverer, response_header
from feedscout.services.errors import (
    HTTPStatusError,
    InvalidDiscoveryMethodError,
    ScrapeError,
    TransportError,
)
from feedscout.services.store import ConfigSiteState

RSS_XML = b"""
<rss version="2.0">
  <channel>
    <item>
      <title>First</title>
      <link>/article-1</link>
      <description>Summary</description>
      <pubDate>2024-01-01T00:00:00Z</pubDate>
    </item>
  </channel>
</rss>
"""

LISTING_HTML = b"""
<html>
  <body>
    <div class="posts">
      <a href="/article-scrape">Scraped</a>
    </div>
  </body>
</html>
"""


class DummyResponse:
    def __init__(self, content: bytes = b"", status_code: int = 200, headers: dict | None = None) -> None:
        self.content = content
        self.status_code = status_code
        self.headers = headers or {}


class FakeSession:
    """Serve canned responses per URL and record every request."""

    def __init__(self, responses: dict[str, DummyResponse | Exception]) -> None:
        self.responses = responses
        self.calls: list[dict] = []

    def get(self, url, headers=None, timeout=None, allow_redirects=True):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        response = self.responses.get(url, DummyResponse(status_code=404))
        if isinstance(response, Exception):
            raise response
        return response


class RecordingStore:
    def __init__(self) -> None:
        self.upserts: list[tuple[str, list]] = []

    def upsert_discovered_articles(self, site_id, entries):
        entries = list(entries)
        self.upserts.append((site_id, entries))
        return len(entries)


def _site(**overrides) -> SiteConfig:
    values = {
        "name": "Example",
        "url": "http://example.test",
        "rss_url": "http://example.test/rss",
        "discovery_method": "rss",
    }
    values.update(overrides)
    return SiteConfig(**values)


def _discoverer(session: FakeSession, store: RecordingStore | None = None) -> Discoverer:
    return Discoverer(
        session=session,
        store=store or RecordingStore(),
        site_state=ConfigSiteState(),
        settings=DiscoverySettings(user_agent="TestBot/1.0", timeout_seconds=10),
    )


def test_returns_an_error_for_invalid_discovery_method() -> None:
    site = _site().model_copy(update={"discovery_method": "invalid"})

    def fail_get(*args, **kwargs):
        raise AssertionError("No request expected")

    discoverer = _discoverer(SimpleNamespace(get=fail_get))  # type: ignore[arg-type]

    with pytest.raises(InvalidDiscoveryMethodError):
        discoverer.discover(site)

    assert site.last_checked_at is None
    assert site.last_error is None


def test_discovers_articles_via_rss() -> None:
    session = FakeSession(
        {
            "http://example.test/rss": DummyResponse(
                RSS_XML, headers={"etag": '"v2"', "last-modified": "Mon, 01 Jan 2024 00:00:00 GMT"}
            )
        }
    )
    store = RecordingStore()
    site = _site()

    count = _discoverer(session, store).discover(site)

    assert count == 1
    site_id, entries = store.upserts[0]
    assert site_id == "example"
    assert entries[0].url == "http://example.test/article-1"
    assert entries[0].title == "First"
    assert site.last_checked_at is not None
    assert site.etag == '"v2"'
    assert site.last_modified == "Mon, 01 Jan 2024 00:00:00 GMT"


def test_rss_request_carries_conditional_headers_and_user_agent() -> None:
    session = FakeSession({"http://example.test/rss": DummyResponse(RSS_XML)})
    site = _site(etag='"v1"', last_modified="Sun, 31 Dec 2023 00:00:00 GMT")

    _discoverer(session).discover(site)

    headers = session.calls[0]["headers"]
    assert headers["User-Agent"] == "TestBot/1.0"
    assert headers["If-None-Match"] == '"v1"'
    assert headers["If-Modified-Since"] == "Sun, 31 Dec 2023 00:00:00 GMT"
    assert session.calls[0]["timeout"] == 10


def test_missing_validators_in_response_leave_previous_ones() -> None:
    session = FakeSession({"http://example.test/rss": DummyResponse(RSS_XML)})
    site = _site(etag='"v1"', last_modified="Sun, 31 Dec 2023 00:00:00 GMT")

    _discoverer(session).discover(site)

    assert site.etag == '"v1"'
    assert site.last_modified == "Sun, 31 Dec 2023 00:00:00 GMT"


def test_uses_site_url_when_rss_url_is_missing() -> None:
    session = FakeSession({"http://example.test/": DummyResponse(RSS_XML)})

    count = _discoverer(session).discover(_site(rss_url=None))

    assert count == 1
    assert session.calls[0]["url"] == "http://example.test/"


def test_relative_feed_links_resolve_against_the_feed_host() -> None:
    session = FakeSession({"https://feeds.other.test/rss": DummyResponse(RSS_XML)})
    store = RecordingStore()
    site = _site(url="https://www.site.test/", rss_url="https://feeds.other.test/rss")

    _discoverer(session, store).discover(site)

    _, entries = store.upserts[0]
    assert [entry.url for entry in entries] == ["https://feeds.other.test/article-1"]


def test_handles_304_not_modified() -> None:
    session = FakeSession(
        {"http://example.test/rss": DummyResponse(status_code=304, headers={"ETag": "new-etag"})}
    )
    store = RecordingStore()
    site = _site(etag="test-etag", last_error="old failure")

    count = _discoverer(session, store).discover(site)

    assert count == 0
    assert site.last_checked_at is not None
    assert site.etag == "test-etag"
    assert site.last_error is None
    assert store.upserts == []


def test_handles_http_errors() -> None:
    session = FakeSession({"http://example.test/rss": DummyResponse(status_code=500)})
    site = _site()

    with pytest.raises(HTTPStatusError) as excinfo:
        _discoverer(session).discover(site)

    assert excinfo.value.status == 500
    assert site.last_error
    assert site.last_error_at is not None
    assert site.last_checked_at is None


def test_handles_network_errors() -> None:
    session = FakeSession({"http://example.test/rss": requests.ConnectionError("connection refused")})
    site = _site()

    with pytest.raises(TransportError) as excinfo:
        _discoverer(session).discover(site)

    assert isinstance(excinfo.value.__cause__, requests.ConnectionError)
    assert "connection refused" in site.last_error


def test_malformed_feed_counts_as_an_empty_success() -> None:
    session = FakeSession({"http://example.test/rss": DummyResponse(b"<<< not a feed")})
    site = _site()

    assert _discoverer(session).discover(site) == 0
    assert site.last_checked_at is not None
    assert site.last_error is None


def test_discovers_articles_via_scraping_without_conditional_headers() -> None:
    session = FakeSession({"http://example.test/page": DummyResponse(LISTING_HTML)})
    store = RecordingStore()
    site = _site(
        url="http://example.test/page",
        rss_url=None,
        discovery_method="scraping",
        etag='"v1"',
        scraping_config=ScrapingConfig(list_selector=".posts", link_selector="a[href]"),
    )

    count = _discoverer(session, store).discover(site)

    assert count == 1
    assert store.upserts[0][1][0].url == "http://example.test/article-scrape"
    assert "If-None-Match" not in session.calls[0]["headers"]
    assert site.last_checked_at is not None


def test_scraping_http_error_is_recorded() -> None:
    session = FakeSession({"http://example.test/page": DummyResponse(status_code=503)})
    site = _site(url="http://example.test/page", discovery_method="scraping")

    with pytest.raises(HTTPStatusError):
        _discoverer(session).discover(site)

    assert site.last_error


def test_scraping_with_broken_selector_is_recorded() -> None:
    session = FakeSession({"http://example.test/page": DummyResponse(LISTING_HTML)})
    site = _site(
        url="http://example.test/page",
        discovery_method="scraping",
        scraping_config=ScrapingConfig(list_selector="div["),
    )

    with pytest.raises(ScrapeError):
        _discoverer(session).discover(site)

    assert site.last_error


def test_hybrid_returns_rss_result_when_feed_has_entries() -> None:
    session = FakeSession({"http://example.test/rss": DummyResponse(RSS_XML)})
    site = _site(discovery_method="hybrid")

    assert _discoverer(session).discover(site) == 1
    assert [call["url"] for call in session.calls] == ["http://example.test/rss"]


def test_hybrid_falls_back_to_scraping_when_feed_fails() -> None:
    session = FakeSession(
        {
            "http://example.test/rss": DummyResponse(status_code=404),
            "http://example.test/page": DummyResponse(LISTING_HTML),
        }
    )
    site = _site(
        url="http://example.test/page",
        discovery_method="hybrid",
        scraping_config=ScrapingConfig(list_selector=".posts"),
    )

    count = _discoverer(session).discover(site)

    assert count == 1
    assert site.last_error is None
    assert site.last_checked_at is not None


def test_hybrid_falls_back_to_scraping_when_feed_is_empty() -> None:
    empty_feed = b"<rss><channel><title>Nothing yet</title></channel></rss>"
    session = FakeSession(
        {
            "http://example.test/rss": DummyResponse(empty_feed),
            "http://example.test/page": DummyResponse(LISTING_HTML),
        }
    )
    site = _site(url="http://example.test/page", discovery_method="hybrid")

    assert _discoverer(session).discover(site) == 1
    assert len(session.calls) == 2


def test_hybrid_reports_scraping_error_when_both_fail() -> None:
    session = FakeSession({})
    site = _site(url="http://example.test/page", discovery_method="hybrid")

    with pytest.raises(HTTPStatusError) as excinfo:
        _discoverer(session).discover(site)

    assert excinfo.value.url == "http://example.test/page"


def test_response_header_lookup_ignores_case() -> None:
    assert response_header({"ETag": "abc"}, "etag") == "abc"
    assert response_header({"last-modified": "x"}, "Last-Modified") == "x"
    assert response_header({}, "ETag") is None
    assert response_header(None, "ETag") is None
