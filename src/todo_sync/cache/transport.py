# src/todo_sync/cache/transport.py

from __future__ import annotations

"""
Intercepting HTTP transport.

Sits between httpx.AsyncClient and the real network transport and applies the
caching strategy picked by the RouteTable:

- stale-while-revalidate for the task collection
- network-first with cache fallback for same-origin static resources
- passthrough for everything else (including every non-GET request)

It also owns the cache generation lifecycle: install() precaches the
application shell manifest, activate() deletes every other generation.
"""

import asyncio
import logging

import httpx

from .routing import RouteTable, Strategy
from .store import CachedResponse, CacheStorage, ResponseCache, body_headers, cache_key

logger = logging.getLogger(__name__)


class OfflineCacheMiss(httpx.TransportError):
    """Neither the network nor the cache could answer a read."""


class CacheInstallError(RuntimeError):
    """A manifest entry could not be fetched; nothing was precached."""


def _wants_fresh(request: httpx.Request) -> bool:
    cc = request.headers.get("cache-control", "").lower()
    return "no-cache" in cc or "no-store" in cc


class CachingTransport(httpx.AsyncBaseTransport):
    def __init__(
        self,
        inner: httpx.AsyncBaseTransport,
        storage: CacheStorage,
        *,
        cache_name: str,
        routes: RouteTable,
        shell_manifest: list[str] | None = None,
    ) -> None:
        self._inner = inner
        self._storage = storage
        self._cache_name = cache_name
        self._routes = routes
        self._shell_manifest = list(shell_manifest or [])
        self._cache: ResponseCache | None = None

    @property
    def cache_name(self) -> str:
        return self._cache_name

    async def cache(self) -> ResponseCache:
        if self._cache is None:
            self._cache = await asyncio.to_thread(self._storage.open, self._cache_name)
        return self._cache

    # ---- lifecycle ----

    async def install(self) -> int:
        """
        Precache the shell manifest into the current generation.

        All-or-nothing: every entry must come back with a success status,
        otherwise CacheInstallError is raised and nothing is stored.
        """
        fetched: list[tuple[str, CachedResponse]] = []
        for url in self._shell_manifest:
            request = httpx.Request("GET", url)
            try:
                response = await self._fetch(request)
            except httpx.TransportError as e:
                raise CacheInstallError(f"precache fetch failed for {url}: {e}") from e
            if not response.is_success:
                raise CacheInstallError(f"precache fetch for {url} returned {response.status_code}")
            key = cache_key(request.url)
            fetched.append((key, CachedResponse.from_response(key, response)))

        cache = await self.cache()
        n = await asyncio.to_thread(cache.add_all, fetched)
        logger.info("Precached %d shell entries into %s", n, self._cache_name)
        return n

    async def is_installed(self) -> bool:
        """True when every shell manifest entry is present in the current generation."""
        cache = await self.cache()
        present = set(await asyncio.to_thread(cache.keys))
        return all(cache_key(url) in present for url in self._shell_manifest)

    async def activate(self) -> list[str]:
        """Delete every cache generation except the current one."""
        await self.cache()
        names = await asyncio.to_thread(self._storage.keys)
        stale = [n for n in names if n != self._cache_name]
        for name in stale:
            await asyncio.to_thread(self._storage.delete, name)
        if stale:
            logger.info("Activated %s; deleted stale generations %s", self._cache_name, stale)
        return stale

    # ---- interception ----

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        strategy = self._routes.resolve(request)
        logger.debug("%s %s -> %s", request.method, request.url, strategy.value)

        if strategy is Strategy.STALE_WHILE_REVALIDATE:
            return await self._stale_while_revalidate(request)
        if strategy is Strategy.NETWORK_FIRST:
            return await self._network_first(request)
        return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self._inner.aclose()

    async def _fetch(self, request: httpx.Request) -> httpx.Response:
        response = await self._inner.handle_async_request(request)
        try:
            await response.aread()
        finally:
            await response.aclose()
        return httpx.Response(
            response.status_code,
            headers=body_headers(response.headers),
            content=response.content,
            request=request,
        )

    async def _fetch_or_none(self, request: httpx.Request) -> httpx.Response | None:
        try:
            return await self._fetch(request)
        except httpx.TransportError as e:
            logger.info("Network unavailable for %s (%s)", request.url, e.__class__.__name__)
            return None

    async def _stale_while_revalidate(self, request: httpx.Request) -> httpx.Response:
        key = cache_key(request.url)
        cache = await self.cache()

        network = asyncio.create_task(self._fetch_or_none(request))
        try:
            cached = await asyncio.to_thread(cache.match, key)
        except BaseException:
            network.cancel()
            raise
        response = await network

        if response is not None and response.is_success:
            await asyncio.to_thread(cache.put, key, CachedResponse.from_response(key, response))
            logger.debug("Refreshed cache entry %s", key)
            return response

        if _wants_fresh(request):
            if response is not None:
                return response
            raise OfflineCacheMiss(f"network unavailable for {key}", request=request)

        if cached is not None:
            logger.info("Serving %s from cache (captured_at=%.0f)", key, cached.captured_at)
            return cached.to_response(request)

        if response is not None:
            return response

        raise OfflineCacheMiss(f"offline and not in cache: {key}", request=request)

    async def _network_first(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self._fetch(request)
        except httpx.TransportError:
            key = cache_key(request.url)
            cache = await self.cache()
            cached = await asyncio.to_thread(cache.match, key)
            if cached is None:
                raise
            logger.info("Network failed; serving %s from cache", key)
            return cached.to_response(request)
