"""
Sync subsystem.

Components:
- remote.py: async HTTP client for the task collection
- connectivity.py: online/offline state, edge notifications, HTTP probe
- status.py: explicit sync status state machine
- reconciler.py: replays queued ops and refreshes the confirmed list
"""
