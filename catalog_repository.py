"""SQLite-backed persistence for catalog snapshots and refresh tasks."""
from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from quote_core.errors import MalformedInputError
from quote_core.models import Catalog

LOGGER = logging.getLogger(__name__)

CATALOG_FILE_GLOB = "catalog-*.json"


@dataclass
class CatalogRecord:
    """A stored catalog snapshot. Snapshots are never updated in place."""

    id: int
    created_at: datetime
    source: str
    catalog: Catalog

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "source": self.source,
            "catalog": self.catalog.to_dict(),
        }


@dataclass
class RefreshTaskRecord:
    """Internal representation of a background catalog refresh."""

    id: str
    status: str
    created_at: datetime
    catalog_id: Optional[int] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the task into a JSON-ready structure."""

        return {
            "id": self.id,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "catalogId": self.catalog_id,
            "error": self.error,
            "errorKind": self.error_kind,
        }


class CatalogRepository:
    """SQLite backed persistence for :class:`CatalogRecord` and refresh tasks."""

    def __init__(self, database: Union[str, Path]) -> None:
        self.database = str(database)
        db_path = Path(database)
        if db_path.parent and not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self.database)
        connection.row_factory = sqlite3.Row
        return connection

    def _ensure_schema(self) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS catalogs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    created_at TEXT NOT NULL,
                    source TEXT NOT NULL,
                    payload TEXT NOT NULL
                )
                """
            )
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS refresh_tasks (
                    id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    catalog_id INTEGER,
                    error TEXT,
                    error_kind TEXT
                )
                """
            )

    def save(self, catalog: Catalog, source: str = "scrape") -> CatalogRecord:
        created_at = datetime.utcnow()
        with self._connect() as connection:
            cursor = connection.execute(
                "INSERT INTO catalogs (created_at, source, payload) VALUES (?, ?, ?)",
                (created_at.isoformat(), source, json.dumps(catalog.to_dict(), ensure_ascii=False)),
            )
            catalog_id = int(cursor.lastrowid)
        LOGGER.info("Catalog snapshot %d saved (%s)", catalog_id, source)
        return CatalogRecord(id=catalog_id, created_at=created_at, source=source, catalog=catalog)

    def latest(self) -> Optional[CatalogRecord]:
        with self._connect() as connection:
            row = connection.execute("SELECT * FROM catalogs ORDER BY id DESC LIMIT 1").fetchone()
        if not row:
            return None
        return CatalogRecord(
            id=row["id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            source=row["source"],
            catalog=Catalog.from_dict(json.loads(row["payload"])),
        )

    def import_file(self, path: Union[str, Path]) -> CatalogRecord:
        """Store a catalog JSON file (``tripTypes``/``origins``/``destinations``/``agents``)."""

        file_path = Path(path)
        try:
            payload = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise MalformedInputError(f"Could not read catalog file {file_path}: {exc}") from exc
        if not isinstance(payload, dict) or not payload.get("tripTypes"):
            raise MalformedInputError(f"{file_path} does not contain a catalog")
        try:
            catalog = Catalog.from_dict(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise MalformedInputError(f"{file_path} has an invalid catalog structure: {exc}") from exc
        return self.save(catalog, source=f"file:{file_path.name}")

    def import_latest_file(self, directory: Union[str, Path]) -> Optional[CatalogRecord]:
        """Import the newest ``catalog-*.json`` of ``directory``, if any."""

        candidates = sorted(Path(directory).glob(CATALOG_FILE_GLOB), reverse=True)
        if not candidates:
            return None
        return self.import_file(candidates[0])

    def create_task(self, record: RefreshTaskRecord) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO refresh_tasks (id, status, created_at, catalog_id, error, error_kind)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.status,
                    record.created_at.isoformat(),
                    record.catalog_id,
                    record.error,
                    record.error_kind,
                ),
            )

    def update_status(self, task_id: str, status: str) -> None:
        with self._connect() as connection:
            connection.execute("UPDATE refresh_tasks SET status = ? WHERE id = ?", (status, task_id))

    def update_result(self, task_id: str, catalog_id: int) -> None:
        with self._connect() as connection:
            connection.execute(
                "UPDATE refresh_tasks SET status = ?, catalog_id = ?, error = NULL, error_kind = NULL WHERE id = ?",
                ("finished", catalog_id, task_id),
            )

    def update_error(self, task_id: str, message: str, kind: Optional[str] = None) -> None:
        with self._connect() as connection:
            connection.execute(
                "UPDATE refresh_tasks SET status = ?, error = ?, error_kind = ?, catalog_id = NULL WHERE id = ?",
                ("failed", message, kind, task_id),
            )

    def get_task(self, task_id: str) -> Optional[RefreshTaskRecord]:
        with self._connect() as connection:
            row = connection.execute("SELECT * FROM refresh_tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            return None
        return RefreshTaskRecord(
            id=row["id"],
            status=row["status"],
            created_at=datetime.fromisoformat(row["created_at"]),
            catalog_id=row["catalog_id"],
            error=row["error"],
            error_kind=row["error_kind"],
        )
