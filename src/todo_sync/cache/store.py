# src/todo_sync/cache/store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

import httpx

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}

# Headers that describe the wire encoding, not the stored (decoded) body.
_HOP_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


def body_headers(headers: httpx.Headers) -> list[tuple[str, str]]:
    return [(k, v) for k, v in headers.items() if k.lower() not in _HOP_HEADERS]


def cache_key(url: httpx.URL | str) -> str:
    """
    Normalize a URL into a cache key.

    Scheme and host are lowercased, default ports and fragments are dropped,
    an empty path becomes "/". The query string is kept as sent.
    """
    u = httpx.URL(str(url))
    scheme = u.scheme.lower()
    host = (u.host or "").lower()
    port = u.port
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    path = u.path or "/"
    query = u.query.decode("ascii", errors="replace") if u.query else ""
    return f"{scheme}://{host}{path}" + (f"?{query}" if query else "")


@dataclass(slots=True, frozen=True)
class CachedResponse:
    """Immutable snapshot of a successful response."""

    url: str
    status: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    captured_at: float = 0.0

    @classmethod
    def from_response(cls, key: str, response: httpx.Response) -> CachedResponse:
        # Caller must have read the body already.
        return cls(
            url=key,
            status=int(response.status_code),
            headers=body_headers(response.headers),
            body=bytes(response.content),
            captured_at=time.time(),
        )

    def to_response(self, request: httpx.Request | None = None) -> httpx.Response:
        return httpx.Response(
            self.status,
            headers=self.headers,
            content=self.body,
            request=request,
            extensions={"from_cache": True, "captured_at": self.captured_at},
        )

    def json(self) -> object:
        return json.loads(self.body.decode("utf-8"))


class CacheStorage:
    """
    SQLite-backed set of named cache generations (one namespace per name).

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "cache.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("CacheStorage ready db=%s generations=%s", self._db_path, self.keys())

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS cache_generations (
                    name TEXT PRIMARY KEY,
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS cache_entries (
                    cache_name TEXT NOT NULL REFERENCES cache_generations(name) ON DELETE CASCADE,
                    key TEXT NOT NULL,
                    status INTEGER NOT NULL,
                    headers TEXT NOT NULL DEFAULT '[]',
                    body BLOB NOT NULL,
                    captured_at REAL NOT NULL,
                    PRIMARY KEY (cache_name, key)
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> CachedResponse:
        headers = [(str(k), str(v)) for k, v in json.loads(row["headers"] or "[]")]
        return CachedResponse(
            url=str(row["key"]),
            status=int(row["status"]),
            headers=headers,
            body=bytes(row["body"]),
            captured_at=float(row["captured_at"]),
        )

    # ---- generations ----

    def open(self, name: str) -> ResponseCache:
        """Return the named generation, creating it if needed."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "INSERT OR IGNORE INTO cache_generations(name, created_at) VALUES (?, ?)",
                (name, time.time()),
            )
            conn.commit()
            if cur.rowcount == 1:
                logger.info("Cache generation created: %s", name)
        finally:
            conn.close()
        return ResponseCache(self, name)

    def has(self, name: str) -> bool:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT 1 FROM cache_generations WHERE name = ?", (name,)).fetchone()
            return row is not None
        finally:
            conn.close()

    def keys(self) -> list[str]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT name FROM cache_generations ORDER BY created_at ASC").fetchall()
            return [str(r["name"]) for r in rows]
        finally:
            conn.close()

    def delete(self, name: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM cache_generations WHERE name = ?", (name,))
            conn.commit()
            deleted = cur.rowcount == 1
        finally:
            conn.close()
        if deleted:
            logger.info("Cache generation deleted: %s", name)
        return deleted

    # ---- entries (used by ResponseCache) ----

    def _match_in(self, name: str, key: str) -> CachedResponse | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM cache_entries WHERE cache_name = ? AND key = ?",
                (name, key),
            ).fetchone()
            return self._row_to_entry(row) if row else None
        finally:
            conn.close()

    def _put_many(self, name: str, entries: Iterable[CachedResponse]) -> int:
        rows = [
            (name, e.url, e.status, json.dumps(e.headers), e.body, e.captured_at)
            for e in entries
        ]
        conn = self._get_conn()
        try:
            # One transaction: either every entry lands or none does.
            with conn:
                conn.executemany(
                    """
                    INSERT INTO cache_entries(cache_name, key, status, headers, body, captured_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(cache_name, key) DO UPDATE SET
                        status = excluded.status,
                        headers = excluded.headers,
                        body = excluded.body,
                        captured_at = excluded.captured_at
                    """,
                    rows,
                )
            return len(rows)
        finally:
            conn.close()

    def _keys_in(self, name: str) -> list[str]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT key FROM cache_entries WHERE cache_name = ? ORDER BY key ASC", (name,)
            ).fetchall()
            return [str(r["key"]) for r in rows]
        finally:
            conn.close()


class ResponseCache:
    """One named cache generation."""

    def __init__(self, storage: CacheStorage, name: str) -> None:
        self._storage = storage
        self.name = name

    def match(self, key: str) -> CachedResponse | None:
        return self._storage._match_in(self.name, key)

    def put(self, key: str, entry: CachedResponse) -> None:
        self._storage._put_many(self.name, [_with_url(entry, key)])
        logger.debug("cache put %s key=%s bytes=%d", self.name, key, len(entry.body))

    def add_all(self, entries: Iterable[tuple[str, CachedResponse]]) -> int:
        return self._storage._put_many(self.name, [_with_url(e, k) for k, e in entries])

    def keys(self) -> list[str]:
        return self._storage._keys_in(self.name)


def _with_url(entry: CachedResponse, key: str) -> CachedResponse:
    if entry.url == key:
        return entry
    return CachedResponse(
        url=key,
        status=entry.status,
        headers=list(entry.headers),
        body=entry.body,
        captured_at=entry.captured_at,
    )
