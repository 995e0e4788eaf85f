# src/todo_sync/cache/routing.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

import httpx

from .store import cache_key


class ResourceClass(StrEnum):
    TASK_COLLECTION = "task_collection"
    SAME_ORIGIN_STATIC = "same_origin_static"
    OTHER = "other"


class Strategy(StrEnum):
    STALE_WHILE_REVALIDATE = "stale_while_revalidate"
    NETWORK_FIRST = "network_first"
    PASSTHROUGH = "passthrough"


DEFAULT_STRATEGIES: dict[ResourceClass, Strategy] = {
    ResourceClass.TASK_COLLECTION: Strategy.STALE_WHILE_REVALIDATE,
    ResourceClass.SAME_ORIGIN_STATIC: Strategy.NETWORK_FIRST,
    ResourceClass.OTHER: Strategy.PASSTHROUGH,
}


def _origin(url: httpx.URL) -> str:
    key = cache_key(url)
    scheme, rest = key.split("://", 1)
    return f"{scheme}://{rest.split('/', 1)[0]}"


@dataclass(slots=True)
class RouteTable:
    """
    Maps each request to one caching strategy.

    Classification:
    - GET of the task collection URL -> TASK_COLLECTION
    - any other GET on the application origin -> SAME_ORIGIN_STATIC
    - everything else -> OTHER

    Non-GET requests are never intercepted, whatever their class.
    """

    collection_url: str
    app_origin: str
    strategies: dict[ResourceClass, Strategy]

    @classmethod
    def build(cls, *, collection_url: str, app_origin: str) -> RouteTable:
        return cls(
            collection_url=cache_key(collection_url).split("?", 1)[0],
            app_origin=_origin(httpx.URL(app_origin)),
            strategies=dict(DEFAULT_STRATEGIES),
        )

    def classify(self, request: httpx.Request) -> ResourceClass:
        key = cache_key(request.url).split("?", 1)[0]
        if key == self.collection_url:
            return ResourceClass.TASK_COLLECTION
        if _origin(request.url) == self.app_origin:
            return ResourceClass.SAME_ORIGIN_STATIC
        return ResourceClass.OTHER

    def resolve(self, request: httpx.Request) -> Strategy:
        if request.method.upper() != "GET":
            return Strategy.PASSTHROUGH
        return self.strategies.get(self.classify(request), Strategy.PASSTHROUGH)
