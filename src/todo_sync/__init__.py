"""
Offline-capable task list client.

Subpackages:
- tasks: task models, durable pending-operation queue, view state
- cache: response cache generations and the intercepting HTTP transport
- sync: remote store client, connectivity monitor, reconciliation
- cli / connectors: composition root and the interactive console
"""
