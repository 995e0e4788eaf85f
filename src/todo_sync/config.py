# src/todo_sync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Nothing touches the network or disk at import time.
- Every value has a working default so a bare checkout can start offline.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv

ENV_PREFIX = "TODO_SYNC"

DEFAULT_API_BASE_URL = "https://amazing-task-backend.onrender.com/api"
DEFAULT_SHELL_MANIFEST = ["/", "/index.html", "/manifest.webmanifest"]


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    kv_db_path: Path
    cache_db_path: Path

    # ---- Remote store ----
    api_base_url: str
    app_origin: str
    collection_path: str

    # ---- Response cache ----
    cache_name: str
    shell_manifest: List[str]

    # ---- Timeouts ----
    connect_timeout_s: float
    read_timeout_s: float
    reconcile_timeout_s: float

    # ---- Connectivity ----
    probe_enabled: bool
    probe_url: Optional[str]
    probe_interval_s: float
    start_online: bool

    @property
    def collection_url(self) -> str:
        return self.api_base_url.rstrip("/") + self.collection_path

    def shell_urls(self) -> list[str]:
        """Absolute URLs of the application shell manifest."""
        base = self.app_origin.rstrip("/")
        out: list[str] = []
        for entry in self.shell_manifest:
            if "://" in entry:
                out.append(entry)
            else:
                out.append(base + "/" + entry.lstrip("/"))
        return out

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "todo-sync") or "todo-sync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/todo_sync"))
        kv_db_path = _env_path(_k("KV_DB_PATH"), data_dir / "local.sqlite3")
        cache_db_path = _env_path(_k("CACHE_DB_PATH"), data_dir / "cache.sqlite3")

        api_base_url = (_env(_k("API_BASE_URL"), DEFAULT_API_BASE_URL) or DEFAULT_API_BASE_URL).strip().rstrip("/")
        app_origin = (_env(_k("APP_ORIGIN"), "") or _origin_of(api_base_url)).strip().rstrip("/")
        collection_path = "/" + (_env(_k("COLLECTION_PATH"), "/todos").strip().strip("/") or "todos")

        cache_name = _env(_k("CACHE_NAME"), "todo-cache-v1").strip() or "todo-cache-v1"
        shell_manifest = _env_list(_k("SHELL_MANIFEST"), DEFAULT_SHELL_MANIFEST)

        connect_timeout_s = _env_float(_k("CONNECT_TIMEOUT_SECONDS"), 5.0)
        read_timeout_s = _env_float(_k("READ_TIMEOUT_SECONDS"), 15.0)
        reconcile_timeout_s = _env_float(_k("RECONCILE_TIMEOUT_SECONDS"), 120.0)

        probe_enabled = _env_bool(_k("PROBE_ENABLED"), True)
        probe_url = (_env(_k("PROBE_URL"), "") or "").strip() or None
        probe_interval_s = _env_float(_k("PROBE_INTERVAL_SECONDS"), 10.0)
        start_online = _env_bool(_k("START_ONLINE"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            kv_db_path=kv_db_path,
            cache_db_path=cache_db_path,
            api_base_url=api_base_url,
            app_origin=app_origin,
            collection_path=collection_path,
            cache_name=cache_name,
            shell_manifest=shell_manifest,
            connect_timeout_s=connect_timeout_s,
            read_timeout_s=max(read_timeout_s, connect_timeout_s),
            reconcile_timeout_s=reconcile_timeout_s,
            probe_enabled=probe_enabled,
            probe_url=probe_url,
            probe_interval_s=probe_interval_s,
            start_online=start_online,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
