"""
Task subsystem.

Components:
- task_models.py: data structures (Task, PendingOperation, view items)
- kv_store.py: SQLite-backed durable key/value storage
- pending_store.py: FIFO queue of unacknowledged mutations
- view_state.py: optimistic view list + mutation entry points
"""
