"""
Response cache.

Components:
- store.py: SQLite-backed named cache generations + URL normalization
- routing.py: request classification -> caching strategy
- transport.py: httpx transport that applies the strategies, plus install/activate
"""
