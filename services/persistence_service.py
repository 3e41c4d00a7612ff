from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)


class ProcessedStore:
    """SQLite-backed record of handled Gmail message ids plus a per-account low-water-mark.

    A message id is inserted (claimed) before its events and tasks are created,
    so two runs racing on the same message cannot both write it.
    """

    def __init__(self, db_path: Path):
        self._db_path = db_path
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS processed_emails (
                    account TEXT NOT NULL,
                    message_id TEXT NOT NULL,
                    processed_at TEXT NOT NULL,
                    PRIMARY KEY (account, message_id)
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_processed_account
                ON processed_emails(account)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS watermarks (
                    account TEXT PRIMARY KEY,
                    received_at TEXT NOT NULL
                )
                """
            )

    def is_processed(self, account: str, message_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM processed_emails WHERE account=? AND message_id=?",
                (account, message_id),
            ).fetchone()
        return row is not None

    def claim(self, account: str, message_id: str) -> bool:
        """Record the message as taken. Returns False if it was already recorded."""

        timestamp = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO processed_emails(account, message_id, processed_at)
                VALUES (?, ?, ?)
                """,
                (account, message_id, timestamp),
            )
        claimed = cursor.rowcount == 1
        if not claimed:
            LOGGER.debug("Message %s for account %s was already claimed", message_id, account)
        return claimed

    def release(self, account: str, message_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM processed_emails WHERE account=? AND message_id=?",
                (account, message_id),
            )
        LOGGER.debug("Released %s for account %s", message_id, account)

    def get_watermark(self, account: str) -> Optional[datetime]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT received_at FROM watermarks WHERE account=?",
                (account,),
            ).fetchone()
        return datetime.fromisoformat(row[0]) if row else None

    def advance_watermark(self, account: str, received_at: datetime) -> None:
        """Move the mark forward; an older timestamp leaves it unchanged."""

        current = self.get_watermark(account)
        if current is not None and current >= received_at:
            return
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO watermarks(account, received_at) VALUES (?, ?)",
                (account, received_at.isoformat()),
            )
        LOGGER.debug("Low-water-mark for %s advanced to %s", account, received_at.isoformat())
