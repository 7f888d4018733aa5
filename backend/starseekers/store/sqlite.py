"""Local vector store backed by SQLite with brute-force cosine search."""

from __future__ import annotations

import math
import sqlite3
import threading
from array import array
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

import orjson

from starseekers.core.errors import IndexOperationFailure
from starseekers.models.entities import IndexRecord, QueryMatch
from starseekers.utils.time import now_ms

DEFAULT_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA foreign_keys=ON;",
    "PRAGMA temp_store=MEMORY;",
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
  id TEXT PRIMARY KEY,
  dim INTEGER NOT NULL,
  vector BLOB NOT NULL,
  metadata TEXT NOT NULL,
  updated_at INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS record_members (
  record_id TEXT NOT NULL REFERENCES records(id) ON DELETE CASCADE,
  user_id TEXT NOT NULL,
  PRIMARY KEY (record_id, user_id)
);
CREATE INDEX IF NOT EXISTS idx_record_members_user ON record_members(user_id);
"""


class SQLiteVectorStore:
    """Single shared collection; ``starredBy`` is mirrored into ``record_members`` for filtering."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path).expanduser() if str(db_path) != ":memory:" else db_path
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def connect(self) -> sqlite3.Connection:
        if self._connection is None:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
            for pragma in DEFAULT_PRAGMAS:
                self._connection.execute(pragma)
            self._connection.executescript(SCHEMA)
        return self._connection

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                conn = self.connect()
                yield conn
                conn.commit()
            except sqlite3.Error as exc:
                if self._connection is not None:
                    self._connection.rollback()
                raise IndexOperationFailure(f"Vector index operation failed: {exc}") from exc

    def fetch(self, ids: Sequence[str]) -> dict[str, IndexRecord]:
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        with self.transaction() as conn:
            rows = conn.execute(
                f"SELECT id, vector, metadata FROM records WHERE id IN ({placeholders})",
                list(ids),
            ).fetchall()
        return {row["id"]: _row_to_record(row) for row in rows}

    def upsert(self, records: Sequence[IndexRecord]) -> None:
        if not records:
            return
        now = now_ms()
        with self.transaction() as conn:
            for record in records:
                conn.execute(
                    """
                    INSERT INTO records (id, dim, vector, metadata, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                      dim = excluded.dim,
                      vector = excluded.vector,
                      metadata = excluded.metadata,
                      updated_at = excluded.updated_at
                    """,
                    [
                        record.id,
                        len(record.values),
                        array("f", record.values).tobytes(),
                        orjson.dumps(record.metadata).decode("utf-8"),
                        now,
                    ],
                )
                _replace_members(conn, record.id, record.starred_by)

    def update_metadata(self, record_id: str, metadata: dict[str, Any]) -> None:
        with self.transaction() as conn:
            row = conn.execute("SELECT metadata FROM records WHERE id = ?", [record_id]).fetchone()
            if row is None:
                raise IndexOperationFailure(f"Record {record_id} does not exist")
            merged = {**orjson.loads(row["metadata"]), **metadata}
            conn.execute(
                "UPDATE records SET metadata = ?, updated_at = ? WHERE id = ?",
                [orjson.dumps(merged).decode("utf-8"), now_ms(), record_id],
            )
            if "starredBy" in metadata:
                _replace_members(conn, record_id, list(metadata["starredBy"] or []))

    def query(self, vector: Sequence[float], top_k: int, member: str) -> list[QueryMatch]:
        with self.transaction() as conn:
            rows = conn.execute(
                """
                SELECT r.id, r.vector, r.metadata FROM records r
                JOIN record_members m ON m.record_id = r.id
                WHERE m.user_id = ?
                """,
                [member],
            ).fetchall()
        scored: list[QueryMatch] = []
        for row in rows:
            record = _row_to_record(row)
            if len(record.values) != len(vector):
                raise IndexOperationFailure("Query vector dimension mismatch")
            scored.append(QueryMatch(id=record.id, score=_cosine(record.values, vector), metadata=record.metadata))
        scored.sort(key=lambda match: match.score, reverse=True)
        return scored[:top_k]

    def count_orphans(self) -> int:
        """Count records no user currently stars."""
        with self.transaction() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS count FROM records r
                WHERE NOT EXISTS (SELECT 1 FROM record_members m WHERE m.record_id = r.id)
                """
            ).fetchone()
        return int(row["count"]) if row else 0

    @property
    def size(self) -> int:
        with self.transaction() as conn:
            row = conn.execute("SELECT COUNT(*) AS count FROM records").fetchone()
        return int(row["count"]) if row else 0


def _replace_members(conn: sqlite3.Connection, record_id: str, members: Sequence[str]) -> None:
    conn.execute("DELETE FROM record_members WHERE record_id = ?", [record_id])
    conn.executemany(
        "INSERT OR IGNORE INTO record_members (record_id, user_id) VALUES (?, ?)",
        [(record_id, str(member)) for member in members],
    )


def _row_to_record(row: sqlite3.Row) -> IndexRecord:
    floats = array("f")
    floats.frombytes(row["vector"])
    return IndexRecord(id=row["id"], values=list(floats), metadata=orjson.loads(row["metadata"]))


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


__all__ = ["SQLiteVectorStore"]
