"""Sync service — pulls provider listings into the stream store.

XC API providers are read through ``player_api.php``; M3U providers are
downloaded and parsed.  Listings are upserted by URI, missing entries are
recorded, and a background loop re-syncs providers whose refresh period has
elapsed.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional

import httpx

from streamcurator.errors import CuratorError, ProviderFetchError
from streamcurator.models.stream import Provider, ProviderKind, StreamType, TransportKind
from streamcurator.models.sync import SyncResult, SyncSummary
from streamcurator.services.m3u_service import parse_m3u

if TYPE_CHECKING:
    from streamcurator.services.config_service import ConfigService
    from streamcurator.services.http_client import HttpClientService
    from streamcurator.services.missing_service import MissingService
    from streamcurator.services.provider_service import ProviderService
    from streamcurator.services.stream_service import StreamService

logger = logging.getLogger(__name__)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class SyncService:
    """Fetches provider listings and reconciles them with stored streams."""

    def __init__(
        self,
        config_service: "ConfigService",
        http_client: "HttpClientService",
        provider_service: "ProviderService",
        stream_service: "StreamService",
        missing_service: "MissingService",
    ):
        self.config_service = config_service
        self.http_client = http_client
        self.provider_service = provider_service
        self.stream_service = stream_service
        self.missing_service = missing_service
        self._sync_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Upstream fetch
    # ------------------------------------------------------------------

    async def fetch_from_upstream(self, provider: Provider, action: str) -> Any:
        """Call one ``player_api.php`` action, retrying transient failures.

        Returns the decoded JSON, or ``None`` when every attempt failed.
        """
        retries = self.config_service.get_sync_retries()
        url = f"{provider.domain.rstrip('/')}/player_api.php"
        params = {"username": provider.username or "", "password": provider.password or "", "action": action}
        client = await self.http_client.get_client()

        for attempt in range(retries + 1):
            try:
                start_time = time.time()
                response = await client.get(url, params=params)
                elapsed = time.time() - start_time
                if response.status_code == 200:
                    data = response.json()
                    logger.debug(
                        f"Fetched {action}: {len(data) if isinstance(data, list) else 'ok'} items in {elapsed:.1f}s"
                    )
                    return data
                logger.warning(f"Fetch {action} failed with status {response.status_code} in {elapsed:.1f}s")
            except httpx.TimeoutException:
                logger.error(f"Timeout fetching {action} (attempt {attempt + 1}/{retries + 1})")
            except httpx.RemoteProtocolError as e:
                logger.error(f"Protocol error fetching {action}: {e} (attempt {attempt + 1}/{retries + 1})")
            except httpx.ReadError as e:
                logger.error(f"Read error fetching {action}: {e} (attempt {attempt + 1}/{retries + 1})")
            except httpx.ConnectError as e:
                logger.error(f"Connection error fetching {action}: {e}")
                break
            except ValueError as e:
                logger.error(f"Invalid JSON from {action}: {e}")
                break
            except httpx.HTTPError as e:
                logger.error(f"Error fetching {action}: {e}")
                raise ProviderFetchError(f"{provider.name}: {e}") from e
            if attempt < retries:
                await asyncio.sleep(2**attempt)
        return None

    async def _fetch_xc_listing(self, provider: Provider) -> list[dict]:
        base = provider.domain.rstrip("/")
        creds = f"{provider.username or ''}/{provider.password or ''}"
        live_ext = "m3u8" if provider.stream_type == TransportKind.HLS else "ts"

        async def categories(action: str) -> dict[str, str]:
            cats = await self.fetch_from_upstream(provider, action) or []
            return {
                str(c.get("category_id", "")): c.get("category_name", "")
                for c in cats
                if isinstance(c, dict)
            }

        async def streams(action: str) -> list:
            data = await self.fetch_from_upstream(provider, action)
            if data is None:
                raise ProviderFetchError(f"{provider.name}: {action} could not be fetched")
            if not isinstance(data, list):
                return []
            return [item for item in data if isinstance(item, dict)]

        live_cats = await categories("get_live_categories")
        vod_cats = await categories("get_vod_categories")
        series_cats = await categories("get_series_categories")

        entries: list[dict] = []
        for item in await streams("get_live_streams"):
            stream_id = item.get("stream_id")
            if stream_id is None:
                continue
            entries.append({
                "name": item.get("name", ""),
                "uri": f"{base}/live/{creds}/{stream_id}.{live_ext}",
                "type": StreamType.LIVE,
                "channel": _text(item.get("num")) or "0",
                "tvg_id": _text(item.get("epg_channel_id")),
                "tvg_group": _text(live_cats.get(str(item.get("category_id", "")))),
                "tvg_logo": _text(item.get("stream_icon")),
            })
        for item in await streams("get_vod_streams"):
            stream_id = item.get("stream_id")
            if stream_id is None:
                continue
            extension = item.get("container_extension") or "mp4"
            entries.append({
                "name": item.get("name", ""),
                "uri": f"{base}/movie/{creds}/{stream_id}.{extension}",
                "type": StreamType.VOD,
                "channel": _text(item.get("num")) or "0",
                "tvg_group": _text(vod_cats.get(str(item.get("category_id", "")))),
                "tvg_logo": _text(item.get("stream_icon")),
            })
        for item in await streams("get_series"):
            series_id = item.get("series_id")
            if series_id is None:
                continue
            entries.append({
                "name": item.get("name", ""),
                "uri": f"{base}/series/{creds}/{series_id}",
                "type": StreamType.SERIES,
                "channel": _text(item.get("num")) or "0",
                "tvg_group": _text(series_cats.get(str(item.get("category_id", "")))),
                "tvg_logo": _text(item.get("cover")),
            })
        return entries

    async def _fetch_m3u_listing(self, provider: Provider) -> list[dict]:
        client = await self.http_client.get_client()
        try:
            response = await client.get(provider.domain)
        except httpx.HTTPError as e:
            raise ProviderFetchError(f"{provider.name}: {e}") from e
        if response.status_code != 200:
            raise ProviderFetchError(f"{provider.name}: playlist returned HTTP {response.status_code}")
        return parse_m3u(response.text)

    async def fetch_listing(self, provider: Provider) -> list[dict]:
        """Fetch the provider's current listing as stream entry dicts."""
        if provider.kind == ProviderKind.M3U:
            entries = await self._fetch_m3u_listing(provider)
        else:
            entries = await self._fetch_xc_listing(provider)
        logger.info(f"[{provider.name}] Listing has {len(entries)} entries")
        return entries

    # ------------------------------------------------------------------
    # Per-provider operations
    # ------------------------------------------------------------------

    async def sync_provider(self, provider: Provider) -> SyncResult:
        """Upsert the provider's listing into the stream store."""
        entries = await self.fetch_listing(provider)
        added, updated = self.stream_service.upsert_provider_entries(
            provider, entries, self.config_service.ignore_fields
        )
        stored = self.stream_service.list_provider_uris(provider)
        listed = {e["uri"] for e in entries}
        self.missing_service.resolve_present(provider, [sid for uri, sid in stored.items() if uri in listed])
        self.provider_service.mark_synced(provider.id)
        logger.info(f"[{provider.name}] Sync complete: {added} added, {updated} updated, {len(entries)} listed")
        return SyncResult(
            provider_id=provider.id,
            provider_name=provider.name,
            added=added,
            updated=updated,
            total=len(entries),
        )

    async def check_missing(self, provider: Provider) -> list[int]:
        """Record stored streams whose URI is absent from the current listing."""
        entries = await self.fetch_listing(provider)
        listed = {e["uri"] for e in entries}
        stored = self.stream_service.list_provider_uris(provider)
        missing = [sid for uri, sid in stored.items() if uri not in listed]
        self.missing_service.record_missing(provider, missing)
        self.missing_service.resolve_present(provider, [sid for uri, sid in stored.items() if uri in listed])
        logger.info(f"[{provider.name}] {len(missing)} stream(s) missing from listing")
        return missing

    # ------------------------------------------------------------------
    # Batch runs (API, CLI, background loop)
    # ------------------------------------------------------------------

    async def run_sync(self, user_id: int | None = None, provider_id: int | None = None) -> SyncSummary:
        summary = SyncSummary(action="sync")
        async with self._sync_lock:
            providers = self.provider_service.list_for_sync(user_id, provider_id)
            summary.providers = len(providers)
            for provider in providers:
                try:
                    result = await self.sync_provider(provider)
                    summary.streams += result.total
                except CuratorError as e:
                    logger.error(f"Error syncing provider {provider.id}: {e}")
                    summary.errors += 1
                    result = SyncResult(provider_id=provider.id, provider_name=provider.name, error=str(e))
                summary.results.append(result)
        return summary

    async def run_missing(self, user_id: int | None = None, provider_id: int | None = None) -> SyncSummary:
        summary = SyncSummary(action="testmissing")
        async with self._sync_lock:
            providers = self.provider_service.list_for_sync(user_id, provider_id)
            summary.providers = len(providers)
            for provider in providers:
                try:
                    missing = await self.check_missing(provider)
                    summary.streams += len(missing)
                    result = SyncResult(provider_id=provider.id, provider_name=provider.name, total=len(missing))
                except CuratorError as e:
                    logger.error(f"Error checking provider {provider.id}: {e}")
                    summary.errors += 1
                    result = SyncResult(provider_id=provider.id, provider_name=provider.name, error=str(e))
                summary.results.append(result)
        return summary

    def run_fixup(self, user_id: int | None = None) -> SyncSummary:
        """Clean orphans/duplicates, then share metadata between same-name streams."""
        summary = SyncSummary(action="fixup")
        summary.streams = self.stream_service.cleanup_streams(user_id)
        summary.streams += self.stream_service.fixup_metadata(user_id)
        return summary

    def is_due(self, provider: Provider, now: datetime | None = None) -> bool:
        if not provider.last_synced:
            return True
        try:
            last = datetime.fromisoformat(provider.last_synced)
        except ValueError:
            return True
        return (now or datetime.now()) - last >= timedelta(days=provider.refresh_period)

    async def sync_due_providers(self) -> SyncSummary:
        summary = SyncSummary(action="sync")
        due = [p for p in self.provider_service.list_for_sync() if self.is_due(p)]
        if not due:
            logger.info("No providers due for sync")
            return summary
        for provider in due:
            partial = await self.run_sync(provider.user_id, provider.id)
            summary.providers += partial.providers
            summary.streams += partial.streams
            summary.errors += partial.errors
            summary.results.extend(partial.results)
        return summary

    async def background_sync_loop(self) -> None:
        """Periodically sync providers whose refresh period has elapsed."""
        logger.info("Background sync task started")

        # Initial delay
        await asyncio.sleep(10)

        while True:
            try:
                if self.config_service.sync_enabled:
                    await self.sync_due_providers()
                interval = self.config_service.sync_check_interval
                logger.debug(f"Next provider sync check in {interval} seconds")
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                logger.info("Background sync task cancelled")
                break
            except CuratorError as e:
                logger.error(f"Background sync error: {e}")
                await asyncio.sleep(60)
            except Exception as e:
                logger.error(f"Unexpected background sync error: {e}")
                await asyncio.sleep(60)
