# database.py
"""
Database Module - auction record storage
Every backend exposes the same get/set/delete/has/list shape so the
AuctionManager never cares where records live.
"""

import sqlite3
import json
import logging
from typing import Dict, List, Optional
from contextlib import contextmanager

logger = logging.getLogger("AuctionBot.Database")

# Columns of a stored auction record, in table order
RECORD_FIELDS = (
    "guild_id",
    "channel_id",
    "item",
    "price",
    "hosted_by",
    "started_at",
    "winner",
    "bid_limit",
)


class AuctionStore:
    """Base class for auction record storage backends"""

    def get(self, key: str) -> Optional[dict]:
        raise NotImplementedError

    def set(self, key: str, record: dict) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def has(self, key: str) -> bool:
        raise NotImplementedError

    def list(self) -> List[dict]:
        raise NotImplementedError


class MemoryStore(AuctionStore):
    """Dict-backed store. Nothing survives a restart."""

    def __init__(self):
        self._records: Dict[str, dict] = {}

    def get(self, key: str) -> Optional[dict]:
        record = self._records.get(key)
        # hand out copies so callers can't mutate what is "stored"
        return dict(record) if record is not None else None

    def set(self, key: str, record: dict) -> None:
        self._records[key] = dict(record)

    def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def has(self, key: str) -> bool:
        return key in self._records

    def list(self) -> List[dict]:
        return [dict(r) for r in self._records.values()]


class _SqliteStore(AuctionStore):
    """Shared connection handling for the sqlite backed stores"""

    def __init__(self, db_path: str = "auction.db"):
        self.db_path = db_path
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory and timeout"""
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self):
        """Context manager for database transactions"""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        raise NotImplementedError


class KeyValueStore(_SqliteStore):
    """
    Embedded key/value store. One row per auction, the whole record
    JSON encoded in the value column.
    """

    def _init_db(self):
        with self._transaction() as conn:
            cursor = conn.cursor()

            # Enable WAL mode for better concurrency
            cursor.execute("PRAGMA journal_mode=WAL")

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS auctions (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """
            )

    def get(self, key: str) -> Optional[dict]:
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM auctions WHERE key = ?", (key,))
            row = cursor.fetchone()
            return json.loads(row["value"]) if row else None

    def set(self, key: str, record: dict) -> None:
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO auctions (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                """,
                (key, json.dumps(record)),
            )

    def delete(self, key: str) -> None:
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM auctions WHERE key = ?", (key,))

    def has(self, key: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM auctions WHERE key = ?", (key,))
            return cursor.fetchone() is not None

    def list(self) -> List[dict]:
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM auctions ORDER BY key")
            return [json.loads(row["value"]) for row in cursor.fetchall()]


class DocumentStore(_SqliteStore):
    """
    Document style store: one typed column per auction field, so the
    records can be queried directly (e.g. all auctions of a guild).
    """

    def _init_db(self):
        with self._transaction() as conn:
            cursor = conn.cursor()

            cursor.execute("PRAGMA journal_mode=WAL")

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS auction_documents (
                    key TEXT PRIMARY KEY,
                    guild_id TEXT NOT NULL,
                    channel_id TEXT NOT NULL,
                    item TEXT NOT NULL,
                    price REAL NOT NULL,
                    hosted_by TEXT,
                    started_at INTEGER NOT NULL,
                    winner TEXT DEFAULT '',
                    bid_limit REAL DEFAULT 0
                )
            """
            )

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_auction_documents_guild ON auction_documents(guild_id)"
            )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> dict:
        record = {name: row[name] for name in RECORD_FIELDS}
        # REAL columns come back as floats, keep whole numbers as ints
        for name in ("price", "bid_limit"):
            value = record[name]
            if isinstance(value, float) and value.is_integer():
                record[name] = int(value)
        return record

    def get(self, key: str) -> Optional[dict]:
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM auction_documents WHERE key = ?", (key,))
            row = cursor.fetchone()
            return self._row_to_record(row) if row else None

    def set(self, key: str, record: dict) -> None:
        columns = ", ".join(("key",) + RECORD_FIELDS)
        placeholders = ", ".join("?" for _ in range(len(RECORD_FIELDS) + 1))
        values = [key] + [record.get(name) for name in RECORD_FIELDS]
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT OR REPLACE INTO auction_documents ({columns}) VALUES ({placeholders})",
                values,
            )

    def delete(self, key: str) -> None:
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM auction_documents WHERE key = ?", (key,))

    def has(self, key: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM auction_documents WHERE key = ?", (key,))
            return cursor.fetchone() is not None

    def list(self) -> List[dict]:
        with self._transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM auction_documents ORDER BY key")
            return [self._row_to_record(row) for row in cursor.fetchall()]


STORE_BACKENDS = {
    "kv": KeyValueStore,
    "document": DocumentStore,
}


def open_store(backend: str = "kv", db_path: str = "auction.db") -> AuctionStore:
    """Create the storage backend named in config (kv, document or memory)"""
    backend = (backend or "").lower()
    if backend == "memory":
        logger.warning("Using in-memory auction store, auctions are lost on restart")
        return MemoryStore()
    if backend not in STORE_BACKENDS:
        raise ValueError(
            f"Unknown auction backend '{backend}'. "
            f"Choose one of: memory, {', '.join(sorted(STORE_BACKENDS))}"
        )
    logger.info(f"Opening {backend} auction store at {db_path}")
    return STORE_BACKENDS[backend](db_path)
