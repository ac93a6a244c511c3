"""Tests for the pagination controller.

Network, clock and staleness lookups are injected: ``FakeFetcher`` serves
search pages and raw files from a dict, ``sleep`` and the oracle are
recording fakes, so no test touches the network or waits.
"""

from __future__ import annotations

import json
import logging

import httpx
import pytest
import respx

from fdio.config import CrawlConfig
from fdio.crawler import crawl
from fdio.crawler.errors import EnvelopeParseError, StalenessNotFoundError, TransportError
from fdio.crawler.models import FetchResponse, PageCursor
from fdio.crawler.pagination import last_page, parse_envelope, repository_url
from fdio.crawler.sink import ListSink

CONFIG = CrawlConfig()
ACTIVITY_URL = CONFIG.page_url(CONFIG.activity_query)
TRIGGER_URL = CONFIG.page_url(CONFIG.trigger_query)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _page_url(page: int, query: str = CONFIG.activity_query) -> str:
    return CONFIG.page_url(query, page if page > 1 else None)


def _hit(repo: str, directory: str, filename: str = "activity.json") -> dict:
    path = f"{directory}/{filename}"
    return {
        "path": path,
        "html_url": f"https://github.com/{repo}/blob/master/{path}",
        "repository": {"full_name": repo},
    }


def _raw(hit: dict) -> str:
    return hit["html_url"].replace("github.com", "raw.githubusercontent.com").replace("/blob", "")


def _links(last: int) -> dict:
    return {"last": {"url": f"https://api.github.com/search/code?q=x&page={last}", "rel": "last"}}


class FakeFetcher:
    def __init__(self) -> None:
        self.routes: dict[str, FetchResponse | Exception] = {}
        self.calls: list[str] = []

    def add_page(self, url: str, hits: list[dict], links: dict | None = None) -> None:
        self.routes[url] = FetchResponse(
            url=url, status_code=200, body=json.dumps({"items": hits}).encode(), links=links or {}
        )
        for hit in hits:
            name = hit["path"].split("/")[0]
            self.routes[_raw(hit)] = FetchResponse(
                url=_raw(hit),
                status_code=200,
                body=json.dumps({"name": name, "type": "flogo:activity"}).encode(),
            )

    def __call__(self, url, headers=None, *, config=None) -> FetchResponse:
        self.calls.append(url)
        route = self.routes[url]
        if isinstance(route, Exception):
            raise route
        return route

    @property
    def search_calls(self) -> list[str]:
        return [u for u in self.calls if u.startswith(CONFIG.api_root)]


class FakeOracle:
    def __init__(self, hours: float = 1.0) -> None:
        self.hours = hours
        self.calls: list[str] = []

    def __call__(self, url, headers=None, *, config=None) -> float:
        self.calls.append(url)
        return self.hours


class FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _run(fetcher, *, timeout=0.0, ctype="Activity", oracle=None, sink=None, sleep=None):
    sink = sink if sink is not None else ListSink()
    oracle = oracle or FakeOracle()
    sleep = sleep or FakeSleep()
    report = crawl(
        None, sink, timeout, ctype, config=CONFIG, fetcher=fetcher, oracle=oracle, sleep=sleep
    )
    return report, sink, oracle, sleep


# ---------------------------------------------------------------------------
# Helpers under test
# ---------------------------------------------------------------------------

class TestLastPage:
    def test_reads_last_relation(self) -> None:
        assert last_page(_links(7)) == 7

    def test_missing_relation_means_one_page(self) -> None:
        assert last_page({}) == 1
        assert last_page({"next": {"url": "https://x/?page=2"}}) == 1

    def test_unparseable_page_means_one_page(self) -> None:
        assert last_page({"last": {"url": "https://x/?page=abc"}}) == 1


class TestParseEnvelope:
    def test_returns_items(self) -> None:
        resp = FetchResponse(url="u", status_code=200, body=b'{"total_count": 0, "items": []}')
        assert parse_envelope(resp) == []

    def test_not_json(self) -> None:
        resp = FetchResponse(url="u", status_code=502, body=b"<html>Bad gateway</html>")
        with pytest.raises(EnvelopeParseError):
            parse_envelope(resp)

    def test_missing_items_includes_api_message(self) -> None:
        resp = FetchResponse(url="u", status_code=403, body=b'{"message": "API rate limit exceeded"}')
        with pytest.raises(EnvelopeParseError, match="rate limit"):
            parse_envelope(resp)


def test_repository_url_truncates_at_tree() -> None:
    url = "https://github.com/acme/contrib/tree/master/activity/log/"
    assert repository_url(url, CONFIG) == "https://github.com/acme/contrib"


def test_page_cursor_urls() -> None:
    cursor = PageCursor(query=CONFIG.trigger_query, total_pages=3)
    assert cursor.url(CONFIG) == TRIGGER_URL
    cursor.advance()
    assert cursor.url(CONFIG) == TRIGGER_URL + "&page=2"
    assert cursor.has_next
    cursor.advance()
    assert not cursor.has_next


# ---------------------------------------------------------------------------
# crawl()
# ---------------------------------------------------------------------------

class TestCrawl:
    def test_single_page_without_link_header(self) -> None:
        fetcher = FakeFetcher()
        fetcher.add_page(ACTIVITY_URL, [_hit("acme/a", "log"), _hit("acme/a", "mail")])

        report, sink, _, sleep = _run(fetcher)

        assert [[r.name for r in b] for b in sink.batches] == [["log", "mail"]]
        assert report.total_pages == 1
        assert report.pages_fetched == 1
        assert fetcher.search_calls == [ACTIVITY_URL]
        assert sleep.calls == []

    def test_trigger_type_selects_trigger_query(self) -> None:
        fetcher = FakeFetcher()
        fetcher.add_page(TRIGGER_URL, [])

        _run(fetcher, ctype="Trigger")

        assert fetcher.search_calls == [TRIGGER_URL]

    def test_unknown_type_falls_back_to_activity(self) -> None:
        fetcher = FakeFetcher()
        fetcher.add_page(ACTIVITY_URL, [])

        report, *_ = _run(fetcher, ctype="Connector")

        assert fetcher.search_calls == [ACTIVITY_URL]
        assert report.contribution_type == "Connector"

    def test_seven_pages_fetched_in_order_with_delay(self) -> None:
        fetcher = FakeFetcher()
        fetcher.add_page(_page_url(1), [_hit("acme/p1", "one")], links=_links(7))
        for page in range(2, 8):
            fetcher.add_page(_page_url(page), [_hit(f"acme/p{page}", f"n{page}")])

        report, sink, _, sleep = _run(fetcher)

        assert fetcher.search_calls == [_page_url(p) for p in range(1, 8)]
        assert sleep.calls == [CONFIG.page_delay] * 6
        assert len(sink.batches) == 7
        assert report.total_pages == 7
        assert report.records_submitted == 7

    def test_zero_timeout_never_consults_oracle(self) -> None:
        fetcher = FakeFetcher()
        fetcher.add_page(_page_url(1), [_hit("acme/a", "log")], links=_links(2))
        fetcher.add_page(_page_url(2), [_hit("acme/b", "mail")])
        oracle = FakeOracle(hours=10_000)

        report, *_ = _run(fetcher, timeout=0, oracle=oracle)

        assert oracle.calls == []
        assert report.pages_fetched == 2

    def test_stale_first_page_stops_before_page_count(self, caplog) -> None:
        fetcher = FakeFetcher()
        fetcher.add_page(
            _page_url(1), [_hit("acme/a", "log"), _hit("acme/last", "mail")], links=_links(5)
        )
        oracle = FakeOracle(hours=500)

        with caplog.at_level(logging.INFO, logger="fdio.crawler.pagination"):
            report, sink, _, sleep = _run(fetcher, timeout=72, oracle=oracle)

        assert report.stopped_early
        assert report.last_update_hours == 500
        assert oracle.calls == ["https://github.com/acme/last"]
        assert fetcher.search_calls == [_page_url(1)]
        assert len(sink.batches) == 1
        assert sleep.calls == []
        assert "Maximum timeout reached" in caplog.text

    def test_stale_later_page_stops_without_fetching_rest(self) -> None:
        fetcher = FakeFetcher()
        fetcher.add_page(_page_url(1), [_hit("acme/fresh", "log")], links=_links(4))
        fetcher.add_page(_page_url(2), [_hit("acme/stale", "mail")])
        oracle = FakeOracle()
        oracle_hours = {"https://github.com/acme/fresh": 1.0, "https://github.com/acme/stale": 100.0}

        def _oracle(url, headers=None, *, config=None):
            oracle.calls.append(url)
            return oracle_hours[url]

        report, sink, *_ = _run(fetcher, timeout=24, oracle=_oracle)

        assert report.stopped_early
        assert fetcher.search_calls == [_page_url(1), _page_url(2)]
        assert len(sink.batches) == 2

    def test_fresh_repositories_keep_paging(self) -> None:
        fetcher = FakeFetcher()
        fetcher.add_page(_page_url(1), [_hit("acme/a", "log")], links=_links(3))
        fetcher.add_page(_page_url(2), [_hit("acme/b", "mail")])
        fetcher.add_page(_page_url(3), [_hit("acme/c", "http")])
        oracle = FakeOracle(hours=2)

        report, *_ = _run(fetcher, timeout=24, oracle=oracle)

        assert not report.stopped_early
        assert len(oracle.calls) == 3
        assert report.pages_fetched == 3

    def test_empty_page_skips_staleness_check(self) -> None:
        fetcher = FakeFetcher()
        fetcher.add_page(_page_url(1), [_hit("acme/a", "log")], links=_links(3))
        fetcher.add_page(_page_url(2), [])
        fetcher.add_page(_page_url(3), [_hit("acme/c", "http")])
        oracle = FakeOracle(hours=1)

        report, sink, *_ = _run(fetcher, timeout=24, oracle=oracle)

        assert oracle.calls == ["https://github.com/acme/a", "https://github.com/acme/c"]
        assert sink.batches[1] == []
        assert report.pages_fetched == 3

    def test_page_whose_items_all_fail_skips_staleness_check(self) -> None:
        fetcher = FakeFetcher()
        broken = _hit("acme/broken", "log")
        fetcher.add_page(_page_url(1), [broken])
        fetcher.routes[_raw(broken)] = FetchResponse(url=_raw(broken), status_code=404, body=b"404: Not Found")
        oracle = FakeOracle(hours=1_000)

        report, sink, *_ = _run(fetcher, timeout=1, oracle=oracle)

        assert oracle.calls == []
        assert sink.batches == [[]]
        assert len(report.skipped) == 1
        assert not report.stopped_early

    def test_staleness_uses_last_successful_record(self) -> None:
        fetcher = FakeFetcher()
        good = _hit("acme/good", "log")
        bad = _hit("acme/bad", "mail")
        fetcher.add_page(_page_url(1), [good, bad])
        fetcher.routes[_raw(bad)] = FetchResponse(url=_raw(bad), status_code=200, body=b"{oops")
        oracle = FakeOracle(hours=1)

        _run(fetcher, timeout=24, oracle=oracle)

        assert oracle.calls == ["https://github.com/acme/good"]

    def test_typeless_files_never_reach_the_sink(self) -> None:
        fetcher = FakeFetcher()
        good = _hit("acme/good", "log")
        bare = _hit("acme/bare", "mail")
        fetcher.add_page(_page_url(1), [good, bare])
        fetcher.routes[_raw(bare)] = FetchResponse(
            url=_raw(bare), status_code=200, body=b'{"name": "mail", "type": "flogo:"}'
        )

        report, sink, *_ = _run(fetcher)

        assert [r.name for r in sink.records] == ["log"]
        assert all(r.type for r in sink.records)
        assert report.skipped[0][0] == _raw(bare)

    def test_first_page_envelope_error_aborts(self) -> None:
        fetcher = FakeFetcher()
        fetcher.routes[ACTIVITY_URL] = FetchResponse(
            url=ACTIVITY_URL, status_code=403, body=b'{"message": "Bad credentials"}'
        )
        sink = ListSink()

        with pytest.raises(EnvelopeParseError) as info:
            _run(fetcher, sink=sink)

        assert info.value.page == 1
        assert info.value.url == ACTIVITY_URL
        assert sink.batches == []

    def test_later_page_failure_aborts_and_keeps_earlier_batches(self) -> None:
        fetcher = FakeFetcher()
        fetcher.add_page(_page_url(1), [_hit("acme/a", "log")], links=_links(4))
        fetcher.add_page(_page_url(2), [_hit("acme/b", "mail")])
        fetcher.routes[_page_url(3)] = TransportError("timed out", kind="timeout", url=_page_url(3))
        sink = ListSink()

        with pytest.raises(TransportError) as info:
            _run(fetcher, sink=sink)

        assert info.value.page == 3
        assert len(sink.batches) == 2
        assert _page_url(4) not in fetcher.calls

    def test_staleness_not_found_is_fatal(self) -> None:
        fetcher = FakeFetcher()
        fetcher.add_page(_page_url(1), [_hit("acme/a", "log")], links=_links(2))

        def _oracle(url, headers=None, *, config=None):
            raise StalenessNotFoundError("no last-update element", url=url)

        with pytest.raises(StalenessNotFoundError) as info:
            _run(fetcher, timeout=24, oracle=_oracle)

        assert info.value.page == 1
        assert info.value.url == "https://github.com/acme/a"

    def test_headers_reach_every_request(self) -> None:
        seen = []
        fetcher = FakeFetcher()
        fetcher.add_page(_page_url(1), [_hit("acme/a", "log")])

        def _recording(url, headers=None, *, config=None):
            seen.append(headers)
            return fetcher(url, headers, config=config)

        oracle_headers = []

        def _oracle(url, headers=None, *, config=None):
            oracle_headers.append(headers)
            return 0.0

        auth = {"Authorization": "token t"}
        crawl(auth, ListSink(), 1, "Activity", config=CONFIG, fetcher=_recording,
              oracle=_oracle, sleep=FakeSleep())

        assert seen == [auth, auth]
        assert oracle_headers == [auth]


# ---------------------------------------------------------------------------
# End to end over httpx, mocked with respx
# ---------------------------------------------------------------------------

def test_crawl_over_http() -> None:
    hit = _hit("acme/contrib", "activity/log")
    link = f'<{_page_url(2)}>; rel="next", <{_page_url(2)}>; rel="last"'

    with respx.mock:
        respx.get(ACTIVITY_URL).mock(
            return_value=httpx.Response(200, json={"items": [hit]}, headers={"Link": link})
        )
        respx.get(_page_url(2)).mock(return_value=httpx.Response(200, json={"items": []}))
        respx.get(_raw(hit)).mock(
            return_value=httpx.Response(
                200, json={"name": "Log Message", "type": "flogo:activity", "author": "acme"}
            )
        )
        sink = ListSink()
        report = crawl(None, sink, 0, "Activity", config=CONFIG, sleep=lambda s: None)

    assert report.total_pages == 2
    assert [r.dedup_key for r in sink.records] == ["acme/logmessage"]
    assert sink.records[0].url == "https://github.com/acme/contrib/tree/master/activity/log/"
