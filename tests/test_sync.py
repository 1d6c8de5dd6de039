"""Tests for provider sync against mocked upstream providers."""

import asyncio
import os
from datetime import datetime, timedelta

import httpx
import pytest

from streamcurator.database import DB_NAME, init_db
from streamcurator.errors import ProviderFetchError
from streamcurator.models.stream import ProviderIn, ProviderKind, StreamType, TransportKind
from streamcurator.services.config_service import ConfigService
from streamcurator.services.http_client import HttpClientService
from streamcurator.services.missing_service import MissingService
from streamcurator.services.provider_service import ProviderService
from streamcurator.services.stream_service import StreamService
from streamcurator.services.sync_service import SyncService

XC_DATA = {
    "get_live_categories": [{"category_id": "1", "category_name": "News"}],
    "get_vod_categories": [{"category_id": "2", "category_name": "Movies"}],
    "get_series_categories": [],
    "get_live_streams": [
        {"stream_id": 11, "num": 1, "name": "BBC One", "epg_channel_id": "bbc1",
         "stream_icon": "http://logo/bbc1.png", "category_id": "1"},
        {"stream_id": 12, "num": 2, "name": "CNN", "epg_channel_id": "", "category_id": "9"},
    ],
    "get_vod_streams": [
        {"stream_id": 21, "name": "Film", "container_extension": "mkv", "category_id": "2"},
    ],
    "get_series": [
        {"series_id": 31, "name": "Show", "cover": "http://logo/show.png"},
    ],
}

M3U_TEXT = "\n".join([
    "#EXTM3U",
    '#EXTINF:-1 tvg-id="one" group-title="News",Channel One',
    "http://m3u.example/live/1.ts",
    '#EXTINF:-1 group-title="Films",Some Film',
    "http://m3u.example/movie/u/p/2.mp4",
    "",
])


def _xc_handler(data):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/player_api.php"):
            action = request.url.params.get("action", "")
            if action in data:
                return httpx.Response(200, json=data[action])
            return httpx.Response(404)
        if request.url.host == "m3u.example":
            return httpx.Response(200, text=M3U_TEXT)
        return httpx.Response(404)
    return handler


@pytest.fixture()
def data_dir(tmp_path):
    init_db(os.path.join(str(tmp_path), DB_NAME))
    return str(tmp_path)


def _build_sync(data_dir, handler, retries=0, ignore_fields=None):
    cfg = ConfigService(data_dir)
    cfg.load()
    cfg.update_options({"sync": {"retries": retries, "ignore_fields": ignore_fields or []}})
    http = HttpClientService(transport=httpx.MockTransport(handler))
    return SyncService(
        cfg, http, ProviderService(data_dir), StreamService(data_dir), MissingService(data_dir)
    )


def _xc_provider(sync, user_id=1, **kw):
    return sync.provider_service.create_provider(
        user_id,
        ProviderIn(name="XC", domain="http://xc.example", username="u", password="p", **kw),
    )


def _m3u_provider(sync, user_id=1):
    return sync.provider_service.create_provider(
        user_id,
        ProviderIn(name="M3U", kind=ProviderKind.M3U, domain="http://m3u.example/playlist.m3u"),
    )


def _all_streams(sync, user_id=1):
    return sync.stream_service.search_streams(user_id, per_page=100)[0]


class TestFetchListing:

    def test_xc_listing_builds_uris_and_metadata(self, data_dir):
        sync = _build_sync(data_dir, _xc_handler(XC_DATA))
        provider = _xc_provider(sync)
        entries = asyncio.run(sync.fetch_listing(provider))

        by_uri = {e["uri"]: e for e in entries}
        assert set(by_uri) == {
            "http://xc.example/live/u/p/11.ts",
            "http://xc.example/live/u/p/12.ts",
            "http://xc.example/movie/u/p/21.mkv",
            "http://xc.example/series/u/p/31",
        }
        bbc = by_uri["http://xc.example/live/u/p/11.ts"]
        assert bbc["tvg_group"] == "News"
        assert bbc["tvg_id"] == "bbc1"
        assert bbc["channel"] == "1"
        assert by_uri["http://xc.example/live/u/p/12.ts"]["tvg_group"] is None
        assert by_uri["http://xc.example/movie/u/p/21.mkv"]["type"] == StreamType.VOD
        assert by_uri["http://xc.example/series/u/p/31"]["tvg_logo"] == "http://logo/show.png"

    def test_hls_providers_get_m3u8_live_uris(self, data_dir):
        sync = _build_sync(data_dir, _xc_handler(XC_DATA))
        provider = _xc_provider(sync, stream_type=TransportKind.HLS)
        entries = asyncio.run(sync.fetch_listing(provider))
        assert "http://xc.example/live/u/p/11.m3u8" in {e["uri"] for e in entries}

    def test_m3u_listing(self, data_dir):
        sync = _build_sync(data_dir, _xc_handler(XC_DATA))
        entries = asyncio.run(sync.fetch_listing(_m3u_provider(sync)))
        assert [e["name"] for e in entries] == ["Channel One", "Some Film"]
        assert entries[1]["type"] == StreamType.VOD

    def test_unreachable_listing_raises(self, data_dir):
        sync = _build_sync(data_dir, lambda request: httpx.Response(500))
        provider = _xc_provider(sync)
        with pytest.raises(ProviderFetchError):
            asyncio.run(sync.fetch_listing(provider))

    def test_m3u_http_error_raises(self, data_dir):
        sync = _build_sync(data_dir, lambda request: httpx.Response(403))
        with pytest.raises(ProviderFetchError):
            asyncio.run(sync.fetch_listing(_m3u_provider(sync)))


class TestSyncProvider:

    def test_sync_inserts_then_updates(self, data_dir):
        data = {k: list(v) for k, v in XC_DATA.items()}
        sync = _build_sync(data_dir, _xc_handler(data))
        provider = _xc_provider(sync)

        result = asyncio.run(sync.sync_provider(provider))
        assert (result.added, result.updated, result.total) == (4, 0, 4)
        assert sync.provider_service.get_provider(1, provider.id).last_synced is not None

        data["get_live_streams"] = [dict(XC_DATA["get_live_streams"][0], name="BBC One HD")]
        result = asyncio.run(sync.sync_provider(provider))
        assert (result.added, result.updated) == (0, 1)
        renamed = [s for s in _all_streams(sync) if s.uri.endswith("/11.ts")][0]
        assert renamed.name == "BBC One"
        assert renamed.orig_name == "BBC One HD"

    def test_ignore_fields_keep_local_metadata(self, data_dir):
        data = {k: list(v) for k, v in XC_DATA.items()}
        sync = _build_sync(data_dir, _xc_handler(data), ignore_fields=["tvg_id"])
        provider = _xc_provider(sync)
        asyncio.run(sync.sync_provider(provider))
        bbc = [s for s in _all_streams(sync) if s.uri.endswith("/11.ts")][0]
        assert bbc.tvg_id is None

    def test_check_missing_records_vanished_streams(self, data_dir):
        data = {k: list(v) for k, v in XC_DATA.items()}
        sync = _build_sync(data_dir, _xc_handler(data))
        provider = _xc_provider(sync)
        asyncio.run(sync.sync_provider(provider))

        data["get_live_streams"] = data["get_live_streams"][:1]
        missing = asyncio.run(sync.check_missing(provider))
        assert len(missing) == 1
        asyncio.run(sync.check_missing(provider))
        records = sync.missing_service.list_missing(1)
        assert [r.stream_name for r in records] == ["CNN"]

        # back in the listing -> record resolved on the next sync
        data["get_live_streams"] = list(XC_DATA["get_live_streams"])
        asyncio.run(sync.sync_provider(provider))
        assert sync.missing_service.list_missing(1) == []


class TestBatchRuns:

    def test_run_sync_collects_errors_per_provider(self, data_dir):
        def handler(request):
            if request.url.host == "xc.example":
                return _xc_handler(XC_DATA)(request)
            return httpx.Response(500)

        sync = _build_sync(data_dir, handler)
        _xc_provider(sync)
        sync.provider_service.create_provider(1, ProviderIn(name="Broken", domain="http://down.example"))

        summary = asyncio.run(sync.run_sync(user_id=1))
        assert summary.providers == 2
        assert summary.errors == 1
        assert summary.streams == 4
        assert {r.provider_name for r in summary.results if r.error} == {"Broken"}

    def test_run_sync_is_user_scoped(self, data_dir):
        sync = _build_sync(data_dir, _xc_handler(XC_DATA))
        _xc_provider(sync, user_id=1)
        _xc_provider(sync, user_id=2)
        summary = asyncio.run(sync.run_sync(user_id=2))
        assert summary.providers == 1
        assert _all_streams(sync, user_id=1) == []
        assert len(_all_streams(sync, user_id=2)) == 4

    def test_run_fixup(self, data_dir):
        sync = _build_sync(data_dir, _xc_handler(XC_DATA))
        summary = sync.run_fixup(1)
        assert summary.action == "fixup"
        assert summary.errors == 0

    def test_is_due(self, data_dir):
        sync = _build_sync(data_dir, _xc_handler(XC_DATA))
        provider = _xc_provider(sync, refresh_period=3)
        assert sync.is_due(provider) is True

        now = datetime(2026, 1, 10, 12, 0, 0)
        provider.last_synced = (now - timedelta(days=1)).isoformat()
        assert sync.is_due(provider, now) is False
        provider.last_synced = (now - timedelta(days=3)).isoformat()
        assert sync.is_due(provider, now) is True

    def test_sync_due_providers_skips_fresh(self, data_dir):
        sync = _build_sync(data_dir, _xc_handler(XC_DATA))
        fresh = _xc_provider(sync)
        sync.provider_service.mark_synced(fresh.id)
        summary = asyncio.run(sync.sync_due_providers())
        assert summary.providers == 0

    def test_run_sync_records_transport_errors(self, data_dir):
        def handler(request):
            raise httpx.UnsupportedProtocol(
                "Request URL is missing an 'http://' or 'https://' protocol.", request=request
            )

        sync = _build_sync(data_dir, handler)
        sync.provider_service.create_provider(
            1, ProviderIn(name="No scheme XC", domain="xc.example", username="u", password="p"),
        )
        sync.provider_service.create_provider(
            1, ProviderIn(name="No scheme M3U", kind=ProviderKind.M3U, domain="xc.example/list.m3u"),
        )

        summary = asyncio.run(sync.run_sync(user_id=1))
        assert summary.providers == 2
        assert summary.errors == 2
        assert all("protocol" in r.error for r in summary.results)

    def test_fetch_wraps_unexpected_http_errors(self, data_dir):
        def handler(request):
            raise httpx.DecodingError("bad gzip", request=request)

        sync = _build_sync(data_dir, handler, retries=2)
        with pytest.raises(ProviderFetchError, match="bad gzip"):
            asyncio.run(sync.fetch_from_upstream(_xc_provider(sync), "get_live_streams"))


class TestBackgroundLoop:

    def test_loop_survives_errors_until_cancelled(self, data_dir, monkeypatch):
        def handler(request):
            raise httpx.UnsupportedProtocol("missing protocol", request=request)

        sync = _build_sync(data_dir, handler)
        sync.provider_service.create_provider(1, ProviderIn(name="Bad", domain="xc.example"))

        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) == 4:
                raise asyncio.CancelledError

        summaries = []
        real_sync_due = sync.sync_due_providers

        async def flaky_sync_due():
            if not summaries:
                summaries.append(None)
                raise RuntimeError("database went away")
            summary = await real_sync_due()
            summaries.append(summary)
            return summary

        monkeypatch.setattr("streamcurator.services.sync_service.asyncio.sleep", fake_sleep)
        monkeypatch.setattr(sync, "sync_due_providers", flaky_sync_due)

        asyncio.run(sync.background_sync_loop())

        interval = sync.config_service.sync_check_interval
        assert sleeps == [10, 60, interval, interval]
        assert [s.errors for s in summaries[1:]] == [1, 1]

    def test_loop_skips_sync_when_disabled(self, data_dir, monkeypatch):
        sync = _build_sync(data_dir, _xc_handler(XC_DATA))
        sync.config_service.update_options({"sync": {"enabled": False}})
        _xc_provider(sync)

        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) == 3:
                raise asyncio.CancelledError

        monkeypatch.setattr("streamcurator.services.sync_service.asyncio.sleep", fake_sleep)
        asyncio.run(sync.background_sync_loop())

        assert len(sleeps) == 3
        assert _all_streams(sync) == []
