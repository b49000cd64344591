"""
EquiClear Indexer

Materialized view and live pricing for sealed-bid Dutch auctions:
- Typed chain events (auction, bid aggregate, settlement, claim)
- Keyed store with idempotent upserts
- Out-of-order tolerant sync engine
- Dutch-auction pricing and read-only queries
"""

__version__ = "0.1.0"
