"""DuckDB-based storage for annotation sessions and their results."""

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

import duckdb
import polars as pl

from snp_annotation.errors import PersistenceError, SessionNotFoundError
from snp_annotation.variants.models import (
    RESULTS_TABLE_NAME,
    SESSIONS_TABLE_NAME,
    AnnotationResult,
    AnnotationSession,
    SessionStatus,
)

_SESSION_COLUMNS = [
    "id",
    "source_name",
    "owner_id",
    "status",
    "total_items",
    "processed_items",
    "processed_count",
    "identifiers",
    "identifier_digest",
    "created_at",
    "updated_at",
]

_RESULT_COLUMNS = list(AnnotationResult.model_fields)

# Fields update_session() may change; id, total_items, identifiers and created_at are immutable
_UPDATABLE_FIELDS = {"status", "processed_items", "source_name"}


def _to_naive_utc(value: datetime) -> datetime:
    """DuckDB TIMESTAMP columns hold naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_naive_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class AnnotationStore:
    """
    DuckDB-backed session and result store.

    Implements both the SessionStore and ResultStore interfaces over a single
    database file. Every write runs in its own transaction and surfaces
    failures as PersistenceError, so the runner can halt without advancing
    progress past a failed step.

    The connection is shared, so every statement runs under `lock`; runners
    for different sessions may use one store from separate threads.
    """

    def __init__(self, db_path: Path | str):
        """
        Initialize AnnotationStore with a DuckDB database.

        Args:
            db_path: Path to DuckDB database file, or ":memory:". Parent
                     directories are created automatically.
        """
        self.db_path = db_path
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = duckdb.connect(str(db_path))
        self.lock = threading.RLock()
        self._create_tables()

    def _create_tables(self) -> None:
        self.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {SESSIONS_TABLE_NAME} (
                id VARCHAR NOT NULL,
                source_name VARCHAR NOT NULL,
                owner_id VARCHAR NOT NULL,
                status VARCHAR NOT NULL,
                total_items INTEGER NOT NULL,
                processed_items VARCHAR[] NOT NULL,
                processed_count INTEGER NOT NULL,
                identifiers VARCHAR[] NOT NULL,
                identifier_digest VARCHAR NOT NULL,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """)
        self.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {RESULTS_TABLE_NAME} (
                session_id VARCHAR NOT NULL,
                identifier VARCHAR NOT NULL,
                most_severe_consequence VARCHAR,
                gene VARCHAR,
                transcript_id VARCHAR,
                clinical_significance VARCHAR,
                amino_acid_change VARCHAR,
                codon_change VARCHAR,
                input VARCHAR,
                PRIMARY KEY (session_id, identifier)
            )
        """)

    @contextmanager
    def _transaction(self, action: str) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run a block in a transaction, converting DuckDB errors to PersistenceError."""
        with self.lock:
            try:
                self.conn.begin()
            except duckdb.Error as e:
                raise PersistenceError(f"Failed to {action}: {e}") from e
            try:
                yield self.conn
                self.conn.commit()
            except duckdb.Error as e:
                self.conn.rollback()
                raise PersistenceError(f"Failed to {action}: {e}") from e
            except Exception:
                self.conn.rollback()
                raise

    # ------------------------------------------------------------------
    # SessionStore
    # ------------------------------------------------------------------

    def create_session(self, session: AnnotationSession) -> str:
        """
        Insert a new session record.

        Args:
            session: Session to persist; its id must be unique

        Returns:
            The session id

        Raises:
            PersistenceError: If the id already exists or the write fails
        """
        row = [
            session.id,
            session.source_name,
            session.owner_id,
            session.status.value,
            session.total_items,
            sorted(session.processed_items),
            session.processed_count,
            list(session.identifiers),
            session.identifier_digest,
            _to_naive_utc(session.created_at),
            _to_naive_utc(session.updated_at),
        ]
        placeholders = ", ".join("?" for _ in _SESSION_COLUMNS)
        with self._transaction("create session") as conn:
            existing = conn.execute(
                f"SELECT COUNT(*) FROM {SESSIONS_TABLE_NAME} WHERE id = ?",
                [session.id],
            ).fetchone()[0]
            if existing:
                raise PersistenceError(f"Session already exists: {session.id}")
            conn.execute(
                f"INSERT INTO {SESSIONS_TABLE_NAME} ({', '.join(_SESSION_COLUMNS)}) "
                f"VALUES ({placeholders})",
                row,
            )
        return session.id

    def update_session(self, session_id: str, **fields: Any) -> None:
        """
        Update mutable session fields.

        processed_count is always derived from processed_items when the
        latter is given, and updated_at is refreshed on every call.

        Args:
            session_id: Session to update
            **fields: Any of status, processed_items, source_name

        Raises:
            ValueError: If an immutable or unknown field is passed
            SessionNotFoundError: If the session doesn't exist
            PersistenceError: If the write fails
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update session fields: {sorted(unknown)}")

        assignments: list[str] = []
        params: list[Any] = []

        if "status" in fields:
            assignments.append("status = ?")
            params.append(SessionStatus(fields["status"]).value)
        if "processed_items" in fields:
            items = sorted(set(fields["processed_items"]))
            assignments.append("processed_items = ?")
            params.append(items)
            assignments.append("processed_count = ?")
            params.append(len(items))
        if "source_name" in fields:
            assignments.append("source_name = ?")
            params.append(fields["source_name"])

        assignments.append("updated_at = ?")
        params.append(_to_naive_utc(datetime.now(timezone.utc)))
        params.append(session_id)

        with self._transaction("update session") as conn:
            updated = conn.execute(
                f"UPDATE {SESSIONS_TABLE_NAME} SET {', '.join(assignments)} "
                f"WHERE id = ? RETURNING id",
                params,
            ).fetchall()
            if not updated:
                raise SessionNotFoundError(session_id)

    def read_session(self, session_id: str) -> AnnotationSession:
        """
        Load a session by id.

        Raises:
            SessionNotFoundError: If the session doesn't exist
        """
        with self.lock:
            row = self.conn.execute(
                f"SELECT {', '.join(_SESSION_COLUMNS)} FROM {SESSIONS_TABLE_NAME} WHERE id = ?",
                [session_id],
            ).fetchone()
        if row is None:
            raise SessionNotFoundError(session_id)
        return self._row_to_session(row)

    def list_sessions(self, owner_id: str | None = None) -> list[AnnotationSession]:
        """
        List sessions, newest first.

        Args:
            owner_id: Restrict to one owner; None lists every session
        """
        query = f"SELECT {', '.join(_SESSION_COLUMNS)} FROM {SESSIONS_TABLE_NAME}"
        params: list[Any] = []
        if owner_id is not None:
            query += " WHERE owner_id = ?"
            params.append(owner_id)
        query += " ORDER BY created_at DESC, id"

        with self.lock:
            rows = self.conn.execute(query, params).fetchall()
        return [self._row_to_session(row) for row in rows]

    def delete_session(self, session_id: str) -> int:
        """
        Delete a session and all of its results (administrative action).

        Returns:
            Number of result rows removed

        Raises:
            SessionNotFoundError: If the session doesn't exist
        """
        self.read_session(session_id)
        with self._transaction("delete session") as conn:
            removed = conn.execute(
                f"SELECT COUNT(*) FROM {RESULTS_TABLE_NAME} WHERE session_id = ?",
                [session_id],
            ).fetchone()[0]
            conn.execute(f"DELETE FROM {RESULTS_TABLE_NAME} WHERE session_id = ?", [session_id])
            conn.execute(f"DELETE FROM {SESSIONS_TABLE_NAME} WHERE id = ?", [session_id])
        return removed

    @staticmethod
    def _row_to_session(row: tuple) -> AnnotationSession:
        record = dict(zip(_SESSION_COLUMNS, row))
        record["processed_items"] = set(record["processed_items"] or [])
        record["identifiers"] = list(record["identifiers"] or [])
        record["created_at"] = _from_naive_utc(record["created_at"])
        record["updated_at"] = _from_naive_utc(record["updated_at"])
        return AnnotationSession.model_validate(record)

    # ------------------------------------------------------------------
    # ResultStore
    # ------------------------------------------------------------------

    def upsert_results(self, session_id: str, results: list[AnnotationResult]) -> None:
        """
        Insert or overwrite results keyed by (session_id, identifier).

        Re-inserting an identifier replaces the previous row, so retrying a
        batch is idempotent.
        """
        if not results:
            return

        # Last result wins when an identifier repeats within one call
        by_identifier = {result.identifier: result for result in results}
        rows = [
            [session_id] + [getattr(result, column) for column in _RESULT_COLUMNS]
            for result in by_identifier.values()
        ]
        columns = ["session_id"] + _RESULT_COLUMNS
        placeholders = ", ".join("?" for _ in columns)

        with self._transaction("upsert results") as conn:
            conn.executemany(
                f"INSERT OR REPLACE INTO {RESULTS_TABLE_NAME} ({', '.join(columns)}) "
                f"VALUES ({placeholders})",
                rows,
            )

    def list_results(self, session_id: str) -> list[AnnotationResult]:
        """List a session's results ordered by identifier."""
        with self.lock:
            rows = self.conn.execute(
                f"SELECT {', '.join(_RESULT_COLUMNS)} FROM {RESULTS_TABLE_NAME} "
                f"WHERE session_id = ? ORDER BY identifier",
                [session_id],
            ).fetchall()
        return [AnnotationResult(**dict(zip(_RESULT_COLUMNS, row))) for row in rows]

    def results_frame(self, session_id: str) -> pl.DataFrame:
        """Load a session's results as a polars DataFrame."""
        with self.lock:
            return self.conn.execute(
                f"SELECT {', '.join(_RESULT_COLUMNS)} FROM {RESULTS_TABLE_NAME} "
                f"WHERE session_id = ? ORDER BY identifier",
                [session_id],
            ).pl()

    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the DuckDB connection."""
        with self.lock:
            if self.conn:
                self.conn.close()
                self.conn = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - closes connection."""
        self.close()
        return False

    @classmethod
    def from_config(cls, config: "AnnotationConfig") -> "AnnotationStore":
        """
        Create AnnotationStore from an AnnotationConfig.

        Args:
            config: AnnotationConfig instance

        Returns:
            AnnotationStore instance
        """
        return cls(config.duckdb_path)
