"""SQLite record store for market data and simulation results.

Market data rows are stored column-per-field so they can be updated in place.
Simulation results are immutable and stored as one JSON document per row;
inserting one is a single transaction, so a result is either fully present
or absent.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from core.models.market import GasTiers, MarketDataRecord
from core.models.simulations import SimulationResult

logger = logging.getLogger(__name__)


class Store:
    """Record store backed by a single SQLite database.

    All access must happen from the thread that created the store (the
    event loop thread), which is what keeps reads from ever seeing a
    half-written record.
    """

    def __init__(self, home: Path) -> None:
        self._home = home
        self._db_path = home / "db.sqlite"
        self._db: sqlite3.Connection | None = None
        self._init_sqlite()

    # ------------------------------------------------------------------
    # SQLite
    # ------------------------------------------------------------------

    def _init_sqlite(self) -> None:
        """Initialize SQLite database and create tables if needed."""
        self._home.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(self._db_path))
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")

        self._db.executescript("""
            CREATE TABLE IF NOT EXISTS market_data (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                asset_name TEXT NOT NULL UNIQUE,
                ticker TEXT NOT NULL,
                price REAL NOT NULL CHECK (price > 0),
                change_24h_percent REAL,
                volume_24h REAL,
                gas_price_gwei REAL,
                gas_tiers TEXT,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS simulations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner_id INTEGER NOT NULL,
                asset_name TEXT NOT NULL,
                created_at TEXT NOT NULL,
                document TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_simulations_owner
                ON simulations(owner_id, created_at);
        """)
        self._db.commit()
        logger.info("SQLite initialized at %s", self._db_path)

    @property
    def db(self) -> sqlite3.Connection:
        if self._db is None:
            raise RuntimeError("Store not initialized")
        return self._db

    def close(self) -> None:
        """Close the SQLite connection."""
        if self._db:
            self._db.close()
            self._db = None

    # ------------------------------------------------------------------
    # Market data
    # ------------------------------------------------------------------

    def save_market_data(self, record: MarketDataRecord) -> MarketDataRecord:
        """Insert or replace the record for `record.asset_name`."""
        existing = self.get_market_data(record.asset_name)
        with self.db:
            if existing is None:
                cursor = self.db.execute(
                    """INSERT INTO market_data
                       (asset_name, ticker, price, change_24h_percent, volume_24h,
                        gas_price_gwei, gas_tiers, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    self._market_values(record),
                )
                record_id = cursor.lastrowid
            else:
                record_id = existing.id
                self.db.execute(
                    """UPDATE market_data
                       SET asset_name = ?, ticker = ?, price = ?, change_24h_percent = ?,
                           volume_24h = ?, gas_price_gwei = ?, gas_tiers = ?, updated_at = ?
                       WHERE id = ?""",
                    (*self._market_values(record), record_id),
                )
        return record.model_copy(update={"id": record_id})

    def get_market_data(self, asset_name: str) -> MarketDataRecord | None:
        row = self.db.execute(
            "SELECT * FROM market_data WHERE asset_name = ?", (asset_name,)
        ).fetchone()
        return self._row_to_market_data(row) if row else None

    def list_market_data(self) -> list[MarketDataRecord]:
        rows = self.db.execute("SELECT * FROM market_data ORDER BY id").fetchall()
        return [self._row_to_market_data(r) for r in rows]

    def update_market_data(self, asset_name: str, changes: dict) -> MarketDataRecord | None:
        """Apply field changes to an existing record and return the new state.

        The merged record is validated before it is written, so an update
        can never store a non-positive price. Returns None if the asset has
        no record.
        """
        current = self.get_market_data(asset_name)
        if current is None:
            return None

        merged = current.model_dump()
        merged.update({k: v for k, v in changes.items() if k not in ("id", "asset_name")})
        merged["updated_at"] = datetime.now(timezone.utc)
        updated = MarketDataRecord.model_validate(merged)

        return self.save_market_data(updated)

    @staticmethod
    def _market_values(record: MarketDataRecord) -> tuple:
        return (
            record.asset_name,
            record.ticker,
            record.price,
            record.change_24h_percent,
            record.volume_24h,
            record.gas_price_gwei,
            record.gas_tiers.model_dump_json() if record.gas_tiers else None,
            record.updated_at.isoformat(),
        )

    def _row_to_market_data(self, row: sqlite3.Row) -> MarketDataRecord:
        return MarketDataRecord(
            id=row["id"],
            asset_name=row["asset_name"],
            ticker=row["ticker"],
            price=row["price"],
            change_24h_percent=row["change_24h_percent"],
            volume_24h=row["volume_24h"],
            gas_price_gwei=row["gas_price_gwei"],
            gas_tiers=GasTiers(**json.loads(row["gas_tiers"])) if row["gas_tiers"] else None,
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Simulations
    # ------------------------------------------------------------------

    def save_simulation(self, result: SimulationResult) -> SimulationResult:
        """Persist a new result and return it with its assigned id."""
        with self.db:
            cursor = self.db.execute(
                """INSERT INTO simulations (owner_id, asset_name, created_at, document)
                   VALUES (?, ?, ?, '')""",
                (result.owner_id, result.asset_name, result.created_at.isoformat()),
            )
            saved = result.model_copy(update={"id": cursor.lastrowid})
            self.db.execute(
                "UPDATE simulations SET document = ? WHERE id = ?",
                (saved.model_dump_json(by_alias=True), saved.id),
            )
        return saved

    def get_simulation(self, simulation_id: int) -> SimulationResult | None:
        row = self.db.execute(
            "SELECT document FROM simulations WHERE id = ?", (simulation_id,)
        ).fetchone()
        return SimulationResult.model_validate_json(row["document"]) if row else None

    def list_simulations(self, owner_id: int | None = None) -> list[SimulationResult]:
        if owner_id is None:
            rows = self.db.execute(
                "SELECT document FROM simulations ORDER BY id"
            ).fetchall()
        else:
            rows = self.db.execute(
                "SELECT document FROM simulations WHERE owner_id = ? ORDER BY id",
                (owner_id,),
            ).fetchall()
        return [SimulationResult.model_validate_json(r["document"]) for r in rows]

    def delete_simulation(self, simulation_id: int) -> bool:
        """Delete a result. Returns True if it existed."""
        with self.db:
            cursor = self.db.execute("DELETE FROM simulations WHERE id = ?", (simulation_id,))
        return cursor.rowcount > 0
