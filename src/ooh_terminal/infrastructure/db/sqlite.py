"""SQLite persistence layer for the snapshot and the price-history cache."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine


class SQLiteRepository:
    """Synchronous, same-process durable store.

    Offers a key/value surface (``get``/``set``) for serialized documents and
    a ``prices`` table keyed by ``(ticker, trade_date)`` for time series.
    """

    def __init__(self, database_uri: str, *, echo: bool = False) -> None:
        self._engine: Engine = create_engine(database_uri, echo=echo, future=True)
        self._ensure_schema()

    @property
    def engine(self) -> Engine:
        return self._engine

    # -----------------
    # Schema management
    # -----------------
    def _ensure_schema(self) -> None:
        """Create core tables if they do not already exist."""
        ddl = [
            """
            CREATE TABLE IF NOT EXISTS kv_store (
              key TEXT PRIMARY KEY,
              value TEXT NOT NULL,
              updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS prices (
              ticker TEXT NOT NULL,
              trade_date TEXT NOT NULL,
              close REAL NOT NULL,
              PRIMARY KEY (ticker, trade_date)
            );
            """,
            """CREATE INDEX IF NOT EXISTS idx_prices_ticker ON prices(ticker);""",
        ]
        with self._engine.begin() as conn:
            for statement in ddl:
                conn.execute(text(statement))

    # ----------------
    # Key/value store
    # ----------------
    def get(self, key: str) -> Optional[str]:
        query = text("SELECT value FROM kv_store WHERE key = :key LIMIT 1")
        with self._engine.connect() as conn:
            row = conn.execute(query, {"key": key}).first()
            return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        stmt = text(
            """
            INSERT INTO kv_store (key, value, updated_at)
            VALUES (:key, :value, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
              value=excluded.value,
              updated_at=CURRENT_TIMESTAMP
            """
        )
        with self._engine.begin() as conn:
            conn.execute(stmt, {"key": key, "value": value})

    # -------------
    # Prices cache
    # -------------
    def fetch_prices(self, ticker: str, *, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Cached series for ``ticker`` ordered by trade_date ascending.

        With ``limit`` only the most recent rows are returned (still ascending).
        """
        params: Dict[str, Any] = {"ticker": ticker}
        if limit is not None:
            query = text(
                """
                SELECT trade_date, close FROM (
                  SELECT trade_date, close FROM prices
                  WHERE ticker = :ticker
                  ORDER BY trade_date DESC
                  LIMIT :limit
                ) ORDER BY trade_date ASC
                """
            )
            params["limit"] = int(limit)
        else:
            query = text(
                """
                SELECT trade_date, close FROM prices
                WHERE ticker = :ticker
                ORDER BY trade_date ASC
                """
            )
        with self._engine.connect() as conn:
            rows = conn.execute(query, params)
            return [dict(row) for row in rows.mappings()]

    def count_prices(self, ticker: str) -> int:
        query = text("SELECT COUNT(*) FROM prices WHERE ticker = :ticker")
        with self._engine.connect() as conn:
            return int(conn.execute(query, {"ticker": ticker}).scalar() or 0)

    def upsert_prices(self, ticker: str, rows: Iterable[Dict[str, Any]]) -> int:
        """Persist ``{"trade_date", "close"}`` rows; existing dates are overwritten."""
        payload = [
            {"ticker": ticker, "trade_date": str(row["trade_date"]), "close": float(row["close"])}
            for row in rows
            if row.get("trade_date") is not None and row.get("close") is not None
        ]
        if not payload:
            return 0
        stmt = text(
            """
            INSERT INTO prices (ticker, trade_date, close)
            VALUES (:ticker, :trade_date, :close)
            ON CONFLICT(ticker, trade_date) DO UPDATE SET
                close=excluded.close
            """
        )
        with self._engine.begin() as conn:
            conn.execute(stmt, payload)
        return len(payload)
