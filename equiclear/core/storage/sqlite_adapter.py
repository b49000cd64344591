import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from equiclear.core.errors import StoreUnavailableError
from equiclear.core.events import AuctionStatus
from equiclear.core.storage.records import AuctionRecord, BidAggregate, ClaimRecord
from equiclear.utils.logger import get_logger

logger = get_logger("storage.sqlite")

# u64 amounts overflow SQLite INTEGER (signed 64-bit), so they are stored as decimal text
_AUCTION_AMOUNTS = ("total_supply", "remaining_supply", "start_price", "reserve_price", "clearing_price")
_BID_AMOUNTS = ("bid_count", "total_volume")
_CLAIM_AMOUNTS = ("items_claimed", "amount_paid", "refund_amount")


def _amount(value: Optional[int]) -> Optional[str]:
    return None if value is None else str(value)


def _decode(row: sqlite3.Row, amounts: Tuple[str, ...]) -> Dict[str, Any]:
    data = dict(row)
    for name in amounts:
        if data.get(name) is not None:
            data[name] = int(data[name])
    return data


class SQLiteAdapter:
    """
    SQLite backend for the materialized view.

    Provides one table per entity:
    1. auctions        (auction_id PRIMARY KEY)
    2. bid_aggregates  (auction_id PRIMARY KEY)
    3. claims          (auction_id, user_address PRIMARY KEY)

    Every write is an INSERT OR REPLACE on the natural key, so repeating
    a write leaves the same row behind. Any sqlite3 error is reported as
    StoreUnavailableError.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._conn_local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

        if not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            # WAL lets readers proceed while a writer holds the lock
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            self._conn_local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return self._conn_local.conn

    @contextmanager
    def _guard(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            yield self._get_conn()
        except sqlite3.Error as e:
            logger.error(f"SQLite {operation} failed: {e}")
            raise StoreUnavailableError(operation, e) from e

    def _init_schema(self):
        """Initialize database schema."""
        with self._guard("init_schema") as conn:
            with conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS auctions (
                        auction_id TEXT PRIMARY KEY,
                        creator TEXT NOT NULL,
                        item_name TEXT NOT NULL,
                        item_description TEXT,
                        total_supply TEXT NOT NULL,
                        remaining_supply TEXT NOT NULL,
                        start_price TEXT NOT NULL,
                        reserve_price TEXT NOT NULL,
                        clearing_price TEXT,
                        start_time INTEGER NOT NULL,
                        end_time INTEGER NOT NULL,
                        status INTEGER NOT NULL,
                        block_height INTEGER NOT NULL,
                        created_at INTEGER NOT NULL,
                        updated_at INTEGER NOT NULL
                    )
                """)
                conn.execute("CREATE INDEX IF NOT EXISTS idx_auction_status ON auctions(status);")

                # Public aggregates only; individual bids are never stored
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS bid_aggregates (
                        auction_id TEXT PRIMARY KEY,
                        bid_count TEXT NOT NULL,
                        total_volume TEXT NOT NULL,
                        block_height INTEGER NOT NULL,
                        updated_at INTEGER NOT NULL
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS claims (
                        auction_id TEXT NOT NULL,
                        user_address TEXT NOT NULL,
                        items_claimed TEXT NOT NULL,
                        amount_paid TEXT NOT NULL,
                        refund_amount TEXT NOT NULL,
                        block_height INTEGER NOT NULL,
                        claimed_at INTEGER NOT NULL,
                        PRIMARY KEY (auction_id, user_address)
                    )
                """)
                conn.execute("CREATE INDEX IF NOT EXISTS idx_claim_user ON claims(user_address);")

    # =========================================================================
    # Auctions
    # =========================================================================

    def save_auction(self, record: AuctionRecord):
        """Insert or replace an auction row."""
        with self._guard("save_auction") as conn:
            with conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO auctions (
                        auction_id, creator, item_name, item_description,
                        total_supply, remaining_supply, start_price, reserve_price,
                        clearing_price, start_time, end_time, status,
                        block_height, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.auction_id, record.creator, record.item_name,
                        record.item_description, _amount(record.total_supply),
                        _amount(record.remaining_supply), _amount(record.start_price),
                        _amount(record.reserve_price), _amount(record.clearing_price),
                        record.start_time, record.end_time, int(record.status),
                        record.block_height, record.created_at, record.updated_at,
                    ),
                )

    def get_auction(self, auction_id: str) -> Optional[AuctionRecord]:
        """Get auction by ID."""
        with self._guard("get_auction") as conn:
            row = conn.execute(
                "SELECT * FROM auctions WHERE auction_id = ?", (auction_id,)
            ).fetchone()
        return AuctionRecord.from_dict(_decode(row, _AUCTION_AMOUNTS)) if row else None

    def get_auctions(
        self,
        status: Optional[AuctionStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[AuctionRecord]:
        """Get auctions ordered by creation, optionally filtered by status."""
        query = "SELECT * FROM auctions"
        params: List[Any] = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(int(status))
        query += " ORDER BY created_at ASC, auction_id ASC LIMIT ? OFFSET ?"
        params.extend([limit if limit is not None else -1, offset])

        with self._guard("get_auctions") as conn:
            rows = conn.execute(query, params).fetchall()
        return [AuctionRecord.from_dict(_decode(row, _AUCTION_AMOUNTS)) for row in rows]

    # =========================================================================
    # Bid Aggregates
    # =========================================================================

    def save_bid_aggregate(self, aggregate: BidAggregate):
        with self._guard("save_bid_aggregate") as conn:
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO bid_aggregates "
                    "(auction_id, bid_count, total_volume, block_height, updated_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        aggregate.auction_id, _amount(aggregate.bid_count),
                        _amount(aggregate.total_volume), aggregate.block_height,
                        aggregate.updated_at,
                    ),
                )

    def get_bid_aggregate(self, auction_id: str) -> Optional[BidAggregate]:
        with self._guard("get_bid_aggregate") as conn:
            row = conn.execute(
                "SELECT * FROM bid_aggregates WHERE auction_id = ?", (auction_id,)
            ).fetchone()
        return BidAggregate.from_dict(_decode(row, _BID_AMOUNTS)) if row else None

    def get_bid_aggregates(self) -> List[BidAggregate]:
        with self._guard("get_bid_aggregates") as conn:
            rows = conn.execute(
                "SELECT * FROM bid_aggregates ORDER BY auction_id ASC"
            ).fetchall()
        return [BidAggregate.from_dict(_decode(row, _BID_AMOUNTS)) for row in rows]

    # =========================================================================
    # Claims
    # =========================================================================

    def save_claim(self, claim: ClaimRecord):
        with self._guard("save_claim") as conn:
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO claims "
                    "(auction_id, user_address, items_claimed, amount_paid, "
                    "refund_amount, block_height, claimed_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        claim.auction_id, claim.user_address, _amount(claim.items_claimed),
                        _amount(claim.amount_paid), _amount(claim.refund_amount),
                        claim.block_height, claim.claimed_at,
                    ),
                )

    def get_claim(self, auction_id: str, user_address: str) -> Optional[ClaimRecord]:
        with self._guard("get_claim") as conn:
            row = conn.execute(
                "SELECT * FROM claims WHERE auction_id = ? AND user_address = ?",
                (auction_id, user_address),
            ).fetchone()
        return ClaimRecord.from_dict(_decode(row, _CLAIM_AMOUNTS)) if row else None

    def get_claims_for_user(self, user_address: str) -> List[ClaimRecord]:
        """Get all claims made by an address, oldest first."""
        with self._guard("get_claims_for_user") as conn:
            rows = conn.execute(
                "SELECT * FROM claims WHERE user_address = ? "
                "ORDER BY claimed_at ASC, auction_id ASC",
                (user_address,),
            ).fetchall()
        return [ClaimRecord.from_dict(_decode(row, _CLAIM_AMOUNTS)) for row in rows]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self):
        """Close every per-thread connection opened by this adapter."""
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._conn_local = threading.local()
