"""
Synchronization Module.

Applies chain events to the materialized store:
- SyncEngine: per-event rules (height ordering, state machine, monotonic
  aggregates, claim conflicts)
- Feed reader for JSON Lines event captures
"""

from equiclear.core.sync.engine import SyncEngine, SyncOutcome, SyncReport
from equiclear.core.sync.feed import read_event_file, write_event_file

__all__ = [
    "SyncEngine",
    "SyncOutcome",
    "SyncReport",
    "read_event_file",
    "write_event_file",
]
