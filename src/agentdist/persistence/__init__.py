"""Persistence layer for upload manifests, agents and assigned contact items."""

from __future__ import annotations

import logging
import math
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Sequence
from uuid import uuid4

from agentdist.distribution import WorkerGroup
from agentdist.errors import PersistenceFailure
from agentdist.models import CanonicalRecord, WorkerSnapshot


logger = logging.getLogger(__name__)

UNKNOWN_FILENAME = "Unknown"

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
ITEM_STATUS_PENDING = "pending"
AGENT_STATUS_ACTIVE = "active"


@dataclass
class AgentRecord:
    agent_id: str
    name: str
    email: Optional[str]
    status: str
    created_at: datetime
    assigned_count: int = 0

    def snapshot(self) -> WorkerSnapshot:
        return WorkerSnapshot(agent_id=self.agent_id, name=self.name, active=self.status == AGENT_STATUS_ACTIVE)


@dataclass(frozen=True)
class ManifestDraft:
    filename: str
    original_count: int
    uploaded_by: str


@dataclass
class UploadManifest:
    upload_id: str
    filename: str
    original_count: int
    uploaded_by: str
    status: str
    created_at: datetime
    processed_at: Optional[datetime]
    message: Optional[str] = None


@dataclass
class AssignedItem:
    item_id: int
    agent_id: str
    upload_id: str
    position: int
    contact_name: Optional[str]
    phone: Optional[str]
    notes: str
    status: str
    created_at: datetime
    upload_filename: str = UNKNOWN_FILENAME
    upload_date: Optional[datetime] = None


@dataclass
class AssignmentPage:
    agent: AgentRecord
    page: int
    page_size: int
    total_count: int
    items: List[AssignedItem] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class DistributionStore:
    """SQLite-backed store owning manifests and their assigned items.

    The store is an explicit handle: call :meth:`open` once at start-up and
    :meth:`close` at shutdown (or use it as a context manager). A single
    connection is shared and guarded by a lock, so the store may be used from
    FastAPI's worker threads.
    """

    def __init__(self, db_path: Path | str):
        self._use_uri = isinstance(db_path, str) and db_path.startswith("file:")
        self.db_path: Path | str = db_path if self._use_uri or db_path == ":memory:" else Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def open(self) -> "DistributionStore":
        if self._conn is not None:
            return self
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, uri=self._use_uri, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        self._conn = conn
        self._create_schema(conn)
        logger.info("Opened distribution store at %s", self.db_path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        logger.info("Closed distribution store at %s", self.db_path)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> "DistributionStore":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self._conn is None:
                raise RuntimeError("DistributionStore is not open")
            conn = self._conn
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            else:
                conn.commit()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS agents (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS uploads (
                id TEXT PRIMARY KEY,
                filename TEXT NOT NULL,
                original_count INTEGER NOT NULL,
                uploaded_by TEXT NOT NULL,
                status TEXT NOT NULL,
                message TEXT,
                created_at TEXT NOT NULL,
                processed_at TEXT
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS assigned_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                agent_id TEXT NOT NULL,
                upload_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                contact_name TEXT,
                phone TEXT,
                notes TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE (upload_id, agent_id, position)
            )
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_assigned_items_agent ON assigned_items (agent_id, created_at)"
        )
        conn.commit()

    # Agents -----------------------------------------------------------------

    def add_agent(
        self,
        *,
        name: str,
        email: Optional[str] = None,
        status: str = AGENT_STATUS_ACTIVE,
        agent_id: Optional[str] = None,
    ) -> AgentRecord:
        agent_id = agent_id or uuid4().hex
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO agents (id, name, email, status, created_at) VALUES (?, ?, ?, ?, ?)",
                (agent_id, name.strip(), email.lower() if email else None, status, _now().isoformat()),
            )
        agent = self.get_agent(agent_id)
        if agent is None:  # pragma: no cover
            raise KeyError(f"Agent {agent_id} not found after insert")
        return agent

    def set_agent_status(self, agent_id: str, status: str) -> AgentRecord:
        with self._transaction() as conn:
            cursor = conn.execute("UPDATE agents SET status = ? WHERE id = ?", (status, agent_id))
            if cursor.rowcount == 0:
                raise KeyError(f"Agent {agent_id} not found")
        agent = self.get_agent(agent_id)
        if agent is None:  # pragma: no cover
            raise KeyError(f"Agent {agent_id} not found after update")
        return agent

    def get_agent(self, agent_id: str) -> Optional[AgentRecord]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM agents WHERE id = ?", (agent_id,)).fetchone()
        return self._row_to_agent(row) if row is not None else None

    def list_agents(self, *, status: Optional[str] = None) -> List[AgentRecord]:
        query = """
            SELECT a.*, (
                SELECT COUNT(*) FROM assigned_items i WHERE i.agent_id = a.id
            ) AS assigned_count
            FROM agents a
        """
        params: tuple[str, ...] = ()
        if status:
            query += " WHERE a.status = ?"
            params = (status,)
        query += " ORDER BY a.created_at DESC, a.rowid DESC"
        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_agent(row) for row in rows]

    def list_eligible_agents(self, limit: int) -> List[WorkerSnapshot]:
        """Active agents in insertion order, capped at ``limit``."""

        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM agents WHERE status = ? ORDER BY rowid LIMIT ?",
                (AGENT_STATUS_ACTIVE, limit),
            ).fetchall()
        return [self._row_to_agent(row).snapshot() for row in rows]

    # Uploads ----------------------------------------------------------------

    def create_upload(self, draft: ManifestDraft, *, upload_id: Optional[str] = None) -> UploadManifest:
        upload_id = upload_id or uuid4().hex
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO uploads (
                    id, filename, original_count, uploaded_by, status, message, created_at, processed_at
                ) VALUES (?, ?, ?, ?, ?, NULL, ?, NULL)
                """,
                (
                    upload_id,
                    draft.filename,
                    draft.original_count,
                    draft.uploaded_by,
                    STATUS_PROCESSING,
                    _now().isoformat(),
                ),
            )
        return self._require_upload(upload_id)

    def mark_upload_completed(self, upload_id: str) -> UploadManifest:
        return self._set_upload_status(upload_id, STATUS_COMPLETED, message=None)

    def mark_upload_failed(self, upload_id: str, *, message: Optional[str] = None) -> UploadManifest:
        return self._set_upload_status(upload_id, STATUS_FAILED, message=message)

    def _set_upload_status(self, upload_id: str, status: str, *, message: Optional[str]) -> UploadManifest:
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE uploads SET status = ?, message = ?, processed_at = ? WHERE id = ?",
                (status, message, _now().isoformat(), upload_id),
            )
            if cursor.rowcount == 0:
                raise KeyError(f"Upload {upload_id} not found")
        return self._require_upload(upload_id)

    def get_upload(self, upload_id: str) -> Optional[UploadManifest]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM uploads WHERE id = ?", (upload_id,)).fetchone()
        return self._row_to_upload(row) if row is not None else None

    def _require_upload(self, upload_id: str) -> UploadManifest:
        manifest = self.get_upload(upload_id)
        if manifest is None:  # pragma: no cover
            raise KeyError(f"Upload {upload_id} not found")
        return manifest

    def list_uploads(self, limit: Optional[int] = None) -> List[UploadManifest]:
        query = "SELECT * FROM uploads ORDER BY created_at DESC, rowid DESC"
        params: tuple[int, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_upload(row) for row in rows]

    # Assigned items ---------------------------------------------------------

    def insert_items(self, upload_id: str, agent_id: str, records: Sequence[CanonicalRecord]) -> int:
        """Write one agent's group; re-issuing the same group is a no-op."""

        created_at = _now().isoformat()
        payload = [
            (
                agent_id,
                upload_id,
                position,
                record.contact_name,
                record.phone,
                record.notes or "",
                ITEM_STATUS_PENDING,
                created_at,
            )
            for position, record in enumerate(records)
        ]
        if not payload:
            return 0
        with self._transaction() as conn:
            cursor = conn.executemany(
                """
                INSERT OR IGNORE INTO assigned_items (
                    agent_id, upload_id, position, contact_name, phone, notes, status, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                payload,
            )
            return cursor.rowcount

    def commit(self, draft: ManifestDraft, groups: Sequence[WorkerGroup[CanonicalRecord]]) -> UploadManifest:
        """Persist a distribution as manifest, per-agent items, then status flip.

        The steps are separate writes. When one fails after the manifest
        exists, the manifest is marked ``failed`` (or left ``processing`` if
        even that write fails) and items already written are kept.
        """

        try:
            manifest = self.create_upload(draft)
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Failed to create upload record: {exc}") from exc

        upload_id = manifest.upload_id
        try:
            for group in groups:
                written = self.insert_items(upload_id, group.worker.agent_id, group.items)
                logger.debug(
                    "Upload %s: wrote %s/%s items for agent %s",
                    upload_id,
                    written,
                    group.count,
                    group.worker.agent_id,
                )
            return self.mark_upload_completed(upload_id)
        except sqlite3.Error as exc:
            logger.error("Upload %s failed while persisting assignments: %s", upload_id, exc)
            try:
                self.mark_upload_failed(upload_id, message=str(exc))
            except sqlite3.Error as mark_exc:
                logger.warning("Upload %s left in processing state: %s", upload_id, mark_exc)
            raise PersistenceFailure(
                f"Failed to persist assignments: {exc}",
                upload_id=upload_id,
            ) from exc

    def list_assignments(self, agent_id: str, *, page: int = 1, page_size: int = 10) -> AssignmentPage:
        """Page through an agent's items, newest first.

        Raises ``KeyError`` for an unknown agent; an agent without items gets
        an empty page.
        """

        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        agent = self.get_agent(agent_id)
        if agent is None:
            raise KeyError(f"Agent {agent_id} not found")

        offset = (page - 1) * page_size
        with self._transaction() as conn:
            total = conn.execute(
                "SELECT COUNT(*) FROM assigned_items WHERE agent_id = ?",
                (agent_id,),
            ).fetchone()[0]
            rows = conn.execute(
                """
                SELECT i.*, u.filename AS upload_filename, u.created_at AS upload_created_at
                FROM assigned_items i
                LEFT JOIN uploads u ON u.id = i.upload_id
                WHERE i.agent_id = ?
                ORDER BY i.created_at DESC, i.id DESC
                LIMIT ? OFFSET ?
                """,
                (agent_id, page_size, offset),
            ).fetchall()
        agent.assigned_count = total
        return AssignmentPage(
            agent=agent,
            page=page,
            page_size=page_size,
            total_count=total,
            items=[self._row_to_item(row) for row in rows],
        )

    def list_upload_items(self, upload_id: str) -> List[AssignedItem]:
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT i.*, u.filename AS upload_filename, u.created_at AS upload_created_at
                FROM assigned_items i
                LEFT JOIN uploads u ON u.id = i.upload_id
                WHERE i.upload_id = ?
                ORDER BY i.id
                """,
                (upload_id,),
            ).fetchall()
        return [self._row_to_item(row) for row in rows]

    # Row mapping ------------------------------------------------------------

    def _row_to_agent(self, row: sqlite3.Row) -> AgentRecord:
        keys = row.keys()
        return AgentRecord(
            agent_id=row["id"],
            name=row["name"],
            email=row["email"],
            status=row["status"],
            created_at=datetime.fromisoformat(row["created_at"]),
            assigned_count=row["assigned_count"] if "assigned_count" in keys else 0,
        )

    def _row_to_upload(self, row: sqlite3.Row) -> UploadManifest:
        return UploadManifest(
            upload_id=row["id"],
            filename=row["filename"],
            original_count=row["original_count"],
            uploaded_by=row["uploaded_by"],
            status=row["status"],
            created_at=datetime.fromisoformat(row["created_at"]),
            processed_at=_parse_ts(row["processed_at"]),
            message=row["message"],
        )

    def _row_to_item(self, row: sqlite3.Row) -> AssignedItem:
        created_at = datetime.fromisoformat(row["created_at"])
        filename = row["upload_filename"]
        return AssignedItem(
            item_id=row["id"],
            agent_id=row["agent_id"],
            upload_id=row["upload_id"],
            position=row["position"],
            contact_name=row["contact_name"],
            phone=row["phone"],
            notes=row["notes"] or "",
            status=row["status"],
            created_at=created_at,
            upload_filename=filename if filename is not None else UNKNOWN_FILENAME,
            upload_date=_parse_ts(row["upload_created_at"]) or created_at,
        )


__all__ = [
    "AgentRecord",
    "AssignedItem",
    "AssignmentPage",
    "DistributionStore",
    "ManifestDraft",
    "UploadManifest",
    "UNKNOWN_FILENAME",
]
