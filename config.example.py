# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Keep local overrides in .env (gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TODO_SYNC_APP_NAME": "App display name (default: todo-sync).",
    "TODO_SYNC_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Remote store
    "TODO_SYNC_API_BASE_URL": (
        "Base URL of the task API (default: https://amazing-task-backend.onrender.com/api)."
    ),
    "TODO_SYNC_COLLECTION_PATH": "Path of the task collection under the base URL (default: /todos).",
    "TODO_SYNC_APP_ORIGIN": (
        "Origin treated as same-origin for network-first caching (default: origin of the API URL)."
    ),
    # Response cache
    "TODO_SYNC_CACHE_NAME": "Current cache generation name (default: todo-cache-v1).",
    "TODO_SYNC_SHELL_MANIFEST": (
        "Comma/space separated shell paths precached on install "
        "(default: / /index.html /manifest.webmanifest)."
    ),
    # Paths (gitignored)
    "TODO_SYNC_DATA_DIR": "Local data directory (default: .local/todo_sync).",
    "TODO_SYNC_KV_DB_PATH": "Pending-queue SQLite path (default: <data_dir>/local.sqlite3).",
    "TODO_SYNC_CACHE_DB_PATH": "Response cache SQLite path (default: <data_dir>/cache.sqlite3).",
    # Timeouts
    "TODO_SYNC_CONNECT_TIMEOUT_SECONDS": "HTTP connect timeout (default: 5).",
    "TODO_SYNC_READ_TIMEOUT_SECONDS": "HTTP read timeout (default: 15).",
    "TODO_SYNC_RECONCILE_TIMEOUT_SECONDS": "Upper bound for one reconciliation pass (default: 120).",
    # Connectivity
    "TODO_SYNC_PROBE_ENABLED": "Poll the server to detect online/offline (true/false, default: true).",
    "TODO_SYNC_PROBE_URL": "URL probed with HEAD (default: the API base URL).",
    "TODO_SYNC_PROBE_INTERVAL_SECONDS": "Seconds between probes (default: 10).",
    "TODO_SYNC_START_ONLINE": "Assume online at startup (true/false, default: true).",
}
