"""
Database module for medicine reference data and scan history.

Two tables hold the data:
- pills: medicine reference records, looked up by class-derived id or by name
- scan_history: one row per confirmed scan

Schema versioning: when schema_meta is missing or carries another version,
scan_history and schema_meta are recreated. The pills table is reference data
shipped with the app and is only created if it does not exist.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from datetime import datetime
from typing import List, Optional

from models.medicine import Medicine, ScanRecord

# Schema version - increment when schema changes
EXPECTED_SCHEMA_VERSION = 2

_PILL_COLUMNS = (
    "id",
    "pill_label",
    "generic_name",
    "brand_name",
    "manufacturer",
    "medical_use",
    "dosage_guidelines",
    "warnings",
    "additional_info",
    "prescription_required",
    "legal_status",
)


class MedicineDatabase:
    """
    SQLite store for medicine records and scan history.

    One connection is shared between the engine worker (recording scans) and
    the web layer (reading history); access is serialized with a lock.
    """

    def __init__(self, local_database_path: str):
        """
        Args:
            local_database_path: Path to the SQLite database file, or ":memory:".
        """
        self.local_database_path = local_database_path
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

        db_dir = os.path.dirname(local_database_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        logging.info(f"Database initialized at {local_database_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self.conn is None:
            self.conn = sqlite3.connect(self.local_database_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
        return self.conn

    def _get_schema_version(self) -> Optional[int]:
        try:
            cursor = self._get_connection().cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_meta'"
            )
            if cursor.fetchone() is None:
                return None
            cursor.execute("SELECT schema_version FROM schema_meta LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error:
            return None

    def _create_schema(self) -> None:
        conn = self._get_connection()
        cursor = conn.cursor()

        for table in ("scan_history", "schema_meta"):
            cursor.execute(f"DROP TABLE IF EXISTS {table}")

        cursor.execute("""
            CREATE TABLE schema_meta (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                schema_version INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS pills (
                id INTEGER PRIMARY KEY,
                pill_label TEXT,
                generic_name TEXT,
                brand_name TEXT,
                manufacturer TEXT,
                medical_use TEXT,
                dosage_guidelines TEXT,
                warnings TEXT,
                additional_info TEXT,
                prescription_required INTEGER DEFAULT 0,
                legal_status TEXT
            )
        """)
        cursor.execute("""
            CREATE TABLE scan_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                medicine_id INTEGER,
                scan_date TEXT NOT NULL,
                brand_name TEXT,
                generic_name TEXT,
                FOREIGN KEY (medicine_id) REFERENCES pills (id)
            )
        """)
        cursor.execute(
            "CREATE INDEX idx_scan_history_date ON scan_history(scan_date)"
        )
        cursor.execute(
            "INSERT INTO schema_meta (id, schema_version) VALUES (1, ?)",
            (EXPECTED_SCHEMA_VERSION,)
        )
        conn.commit()
        logging.info(f"Created schema version {EXPECTED_SCHEMA_VERSION}")

    def initialize(self) -> None:
        """
        Create or migrate the schema.

        Raises:
            sqlite3.Error: If the schema cannot be created.
        """
        with self._lock:
            try:
                current_version = self._get_schema_version()
                if current_version != EXPECTED_SCHEMA_VERSION:
                    if current_version is not None:
                        logging.warning(
                            f"Schema version mismatch: found {current_version}, "
                            f"expected {EXPECTED_SCHEMA_VERSION}. Recreating scan history."
                        )
                    else:
                        logging.info("No schema found, creating fresh database.")
                    self._create_schema()
                else:
                    logging.info(f"Schema version {current_version} is current")
            except sqlite3.Error as e:
                logging.error(f"Database initialization error: {e}")
                raise

    # -------------------------------------------------------------------------
    # Medicines
    # -------------------------------------------------------------------------

    def get_by_id(self, medicine_id: int) -> Optional[Medicine]:
        """Look up a medicine by id; None if missing or on error."""
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute("SELECT * FROM pills WHERE id = ?", (medicine_id,))
                row = cursor.fetchone()
            except sqlite3.Error as e:
                logging.error(f"Error getting medicine {medicine_id}: {e}")
                return None
        if row is None:
            logging.debug(f"No medicine found with id {medicine_id}")
            return None
        return Medicine.from_row(dict(row))

    def get_by_name(self, name: str) -> Optional[Medicine]:
        """First medicine whose brand or generic name contains `name`."""
        pattern = f"%{name}%"
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute(
                    "SELECT * FROM pills WHERE brand_name LIKE ? OR generic_name LIKE ? "
                    "ORDER BY id LIMIT 1",
                    (pattern, pattern),
                )
                row = cursor.fetchone()
            except sqlite3.Error as e:
                logging.error(f"Error searching medicine '{name}': {e}")
                return None
        return Medicine.from_row(dict(row)) if row is not None else None

    def upsert_medicine(self, medicine: Medicine) -> None:
        """Insert or replace a medicine reference record."""
        data = medicine.to_dict()
        data["prescription_required"] = 1 if medicine.prescription_required else 0
        placeholders = ", ".join("?" for _ in _PILL_COLUMNS)
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                f"INSERT OR REPLACE INTO pills ({', '.join(_PILL_COLUMNS)}) VALUES ({placeholders})",
                tuple(data[c] for c in _PILL_COLUMNS),
            )
            conn.commit()

    # -------------------------------------------------------------------------
    # Scan history
    # -------------------------------------------------------------------------

    def record_scan(
        self,
        medicine_id: int,
        brand_name: str,
        generic_name: str,
        scan_date: Optional[datetime] = None,
    ) -> Optional[int]:
        """
        Add a scan history entry.

        Returns:
            ID of the inserted row, or None on error.
        """
        scan_date = scan_date or datetime.now()
        with self._lock:
            try:
                conn = self._get_connection()
                cursor = conn.cursor()
                cursor.execute(
                    "INSERT INTO scan_history (medicine_id, scan_date, brand_name, generic_name) "
                    "VALUES (?, ?, ?, ?)",
                    (medicine_id, scan_date.isoformat(), brand_name, generic_name),
                )
                conn.commit()
            except sqlite3.Error as e:
                logging.error(f"Error recording scan for medicine {medicine_id}: {e}")
                return None
        logging.debug(f"Scan recorded: medicine={medicine_id}, brand={brand_name}")
        return cursor.lastrowid

    def list_scans(self, limit: Optional[int] = None) -> List[ScanRecord]:
        """Scan history, most recent first."""
        query = "SELECT * FROM scan_history ORDER BY scan_date DESC, id DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute(query, params)
                rows = cursor.fetchall()
            except sqlite3.Error as e:
                logging.error(f"Error listing scan history: {e}")
                return []
        return [ScanRecord.from_row(dict(row)) for row in rows]

    def delete_scan(self, scan_id: int) -> int:
        """Delete one history entry; returns the number of rows removed."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute("DELETE FROM scan_history WHERE id = ?", (scan_id,))
            conn.commit()
            return cursor.rowcount

    def clear_scans(self) -> int:
        """Delete all history entries; returns the number of rows removed."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute("DELETE FROM scan_history")
            conn.commit()
        logging.info(f"Scan history cleared ({cursor.rowcount} entries)")
        return cursor.rowcount

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None
                logging.info("Database connection closed")
