"""
Coordination Store - SQLite-backed append/update-only record storage.

Features:
- One connection and one transaction per unit of work
- Write units take the database write lock up front (BEGIN IMMEDIATE)
- Status changes are conditional on the expected current status
- Records are never deleted
"""

import json
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Iterable, Optional

import aiosqlite

from .errors import InvalidTransitionError, NoPendingTaskError, StoreUnavailableError
from .models import (
	CoordinationRecord,
	CoordinationStatus,
	CoordinationType,
	TaskData,
	can_transition,
)

logger = logging.getLogger(__name__)

SCHEMA = """
	CREATE TABLE IF NOT EXISTS coordination (
		id TEXT PRIMARY KEY,
		project_id TEXT NOT NULL,
		initiator_agent_id TEXT NOT NULL,
		target_agent_id TEXT NOT NULL,
		coordination_type TEXT NOT NULL,
		message TEXT NOT NULL DEFAULT '',
		task_data TEXT NOT NULL DEFAULT '{}',
		workflow_type TEXT,
		workflow_step INTEGER,
		status TEXT NOT NULL,
		response TEXT,
		deadline TEXT,
		created_at TEXT NOT NULL,
		updated_at TEXT NOT NULL
	);

	CREATE INDEX IF NOT EXISTS idx_coordination_project
		ON coordination(project_id, created_at);
	CREATE INDEX IF NOT EXISTS idx_coordination_target
		ON coordination(project_id, target_agent_id, status);
	CREATE INDEX IF NOT EXISTS idx_coordination_step
		ON coordination(project_id, workflow_type, workflow_step, status);
"""

# rowid breaks ties between records created within the same microsecond
ORDER_BY = "ORDER BY created_at ASC, rowid ASC"


def _record_from_row(row: aiosqlite.Row) -> CoordinationRecord:
	return CoordinationRecord(
		id=row["id"],
		project_id=row["project_id"],
		initiator_agent_id=row["initiator_agent_id"],
		target_agent_id=row["target_agent_id"],
		coordination_type=CoordinationType(row["coordination_type"]),
		message=row["message"],
		task_data=TaskData.model_validate(json.loads(row["task_data"] or "{}")),
		status=CoordinationStatus(row["status"]),
		response=row["response"],
		deadline=row["deadline"],
		created_at=row["created_at"],
		updated_at=row["updated_at"],
	)


class StoreSession:
	"""Store operations bound to one open transaction."""

	def __init__(self, db: aiosqlite.Connection):
		self._db = db

	async def _fetch_one(self, query: str, params: Iterable) -> Optional[CoordinationRecord]:
		async with self._db.execute(query, tuple(params)) as cursor:
			row = await cursor.fetchone()
		return _record_from_row(row) if row else None

	async def _fetch_all(self, query: str, params: Iterable) -> list[CoordinationRecord]:
		async with self._db.execute(query, tuple(params)) as cursor:
			rows = await cursor.fetchall()
		return [_record_from_row(row) for row in rows]

	async def insert(self, record: CoordinationRecord) -> CoordinationRecord:
		"""Insert a new record, assigning its id and timestamps."""
		now = datetime.now().isoformat()
		record = record.model_copy(update={
			"id": record.id or str(uuid.uuid4()),
			"created_at": now,
			"updated_at": now,
		})
		task_data = record.task_data

		await self._db.execute(
			"""
			INSERT INTO coordination (id, project_id, initiator_agent_id, target_agent_id,
				coordination_type, message, task_data, workflow_type, workflow_step,
				status, response, deadline, created_at, updated_at)
			VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
			""",
			(
				record.id,
				record.project_id,
				record.initiator_agent_id,
				record.target_agent_id,
				record.coordination_type.value,
				record.message,
				json.dumps(task_data.model_dump(by_alias=True, exclude_none=True)),
				task_data.workflow_type,
				task_data.workflow_step,
				record.status.value,
				record.response,
				record.deadline,
				record.created_at,
				record.updated_at,
			),
		)
		return record

	async def get(self, record_id: str) -> Optional[CoordinationRecord]:
		"""Get a record by ID."""
		return await self._fetch_one("SELECT * FROM coordination WHERE id = ?", (record_id,))

	async def find_for_agent(
		self,
		project_id: str,
		target_agent_id: str,
		statuses: Iterable[CoordinationStatus] = (CoordinationStatus.PENDING,),
	) -> Optional[CoordinationRecord]:
		"""Get the oldest record for an agent in a project with one of the given statuses."""
		statuses = [s.value for s in statuses]
		placeholders = ",".join("?" * len(statuses))
		return await self._fetch_one(
			f"""
			SELECT * FROM coordination
			WHERE project_id = ? AND target_agent_id = ? AND status IN ({placeholders})
			{ORDER_BY} LIMIT 1
			""",
			(project_id, target_agent_id, *statuses),
		)

	async def has_pending(self, project_id: str, target_agent_id: str) -> bool:
		"""Check if an agent already holds a pending record in a project."""
		return await self.find_for_agent(project_id, target_agent_id) is not None

	async def transition(
		self,
		record_id: str,
		from_status: CoordinationStatus,
		to_status: CoordinationStatus,
		response: Optional[str] = None,
	) -> Optional[CoordinationRecord]:
		"""
		Move a record between statuses if it is still at ``from_status``.

		No state-machine policy is applied here.

		Returns:
			The updated record, or None if the record was not at ``from_status``
		"""
		now = datetime.now().isoformat()
		if response is None:
			cursor = await self._db.execute(
				"UPDATE coordination SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
				(to_status.value, now, record_id, from_status.value),
			)
		else:
			cursor = await self._db.execute(
				"UPDATE coordination SET status = ?, response = ?, updated_at = ? WHERE id = ? AND status = ?",
				(to_status.value, response, now, record_id, from_status.value),
			)
		changed = cursor.rowcount
		await cursor.close()
		if changed != 1:
			return None
		return await self.get(record_id)

	async def update_status(
		self,
		project_id: str,
		target_agent_id: str,
		new_status: CoordinationStatus,
		response: Optional[str] = None,
		from_statuses: Iterable[CoordinationStatus] = (CoordinationStatus.PENDING,),
	) -> CoordinationRecord:
		"""
		Update an agent's oldest record that may move to ``new_status``.

		Only records in ``from_statuses`` from which ``new_status`` is
		reachable are candidates, so an older in-progress task does not
		shadow a newer pending one when starting work.

		Raises:
			NoPendingTaskError: If no record matches the filter
			InvalidTransitionError: If records match but none may move to ``new_status``
		"""
		from_statuses = tuple(from_statuses)
		eligible = tuple(s for s in from_statuses if can_transition(s, new_status))
		record = await self.find_for_agent(project_id, target_agent_id, eligible) if eligible else None
		if record is None:
			blocked = await self.find_for_agent(project_id, target_agent_id, from_statuses)
			if blocked is not None:
				raise InvalidTransitionError(
					f"Cannot move task {blocked.id} from {blocked.status.value} to {new_status.value}"
				)
			wanted = "/".join(s.value for s in from_statuses)
			raise NoPendingTaskError(
				f"No {wanted} task for agent {target_agent_id} in project {project_id}"
			)

		updated = await self.transition(record.id, record.status, new_status, response)
		if updated is None:
			raise InvalidTransitionError(f"Task {record.id} changed status concurrently")
		return updated

	async def list_by_project(self, project_id: str) -> list[CoordinationRecord]:
		"""All records of a project in creation order."""
		return await self._fetch_all(
			f"SELECT * FROM coordination WHERE project_id = ? {ORDER_BY}",
			(project_id,),
		)

	async def list_waiting_for_step(
		self, project_id: str, workflow_type: str, workflow_step: int,
	) -> list[CoordinationRecord]:
		"""Records of one workflow step still gated behind their predecessor."""
		return await self._fetch_all(
			f"""
			SELECT * FROM coordination
			WHERE project_id = ? AND workflow_type = ? AND workflow_step = ? AND status = ?
			{ORDER_BY}
			""",
			(project_id, workflow_type, workflow_step, CoordinationStatus.WAITING.value),
		)

	async def list_workflow_steps(self, project_id: str, workflow_type: str) -> list[CoordinationRecord]:
		"""Gated step records of one workflow in a project, handoffs excluded."""
		return await self._fetch_all(
			f"""
			SELECT * FROM coordination
			WHERE project_id = ? AND workflow_type = ? AND workflow_step IS NOT NULL
				AND coordination_type != ?
			{ORDER_BY}
			""",
			(project_id, workflow_type, CoordinationType.HANDOFF.value),
		)

	async def list_overdue(self, now: str) -> list[CoordinationRecord]:
		"""In-progress records whose deadline is before ``now``."""
		return await self._fetch_all(
			f"""
			SELECT * FROM coordination
			WHERE status = ? AND deadline IS NOT NULL AND deadline < ?
			{ORDER_BY}
			""",
			(CoordinationStatus.IN_PROGRESS.value, now),
		)


class CoordinationStore:
	"""
	SQLite-backed coordination record storage.

	Usage:
		store = CoordinationStore("data/coordination.db")

		# One atomic unit of work
		async with store.transaction() as session:
			record = await session.insert(record)
			await session.transition(record.id, CoordinationStatus.PENDING, CoordinationStatus.COMPLETED)

		# Single operations open their own transaction
		records = await store.list_by_project("p1")
	"""

	def __init__(self, db_path: str = "", busy_timeout: float = 5.0):
		"""Initialize the store. The schema is created on first use."""
		if not db_path:
			from .config import get_config
			config = get_config()
			db_path = str(config.db_path)
			busy_timeout = config.busy_timeout
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self.busy_timeout = busy_timeout
		self._initialized = False

	async def init(self) -> None:
		"""Initialize the database schema."""
		try:
			async with aiosqlite.connect(self.db_path, timeout=self.busy_timeout) as db:
				await db.executescript(SCHEMA)
				await db.commit()
		except aiosqlite.Error as e:
			logger.error(f"Failed to initialize coordination store at {self.db_path}: {e}")
			raise StoreUnavailableError(f"Coordination store unavailable: {e}") from e
		self._initialized = True
		logger.debug(f"Coordination store initialized: {self.db_path}")

	@asynccontextmanager
	async def transaction(self, write: bool = True) -> AsyncIterator[StoreSession]:
		"""
		Open a connection and run one transaction.

		Commits when the block exits normally and rolls back on any
		exception. Database errors surface as StoreUnavailableError;
		other exceptions propagate unchanged.
		"""
		if not self._initialized:
			await self.init()

		try:
			db = await aiosqlite.connect(self.db_path, timeout=self.busy_timeout, isolation_level=None)
		except aiosqlite.Error as e:
			logger.error(f"Failed to open coordination store {self.db_path}: {e}")
			raise StoreUnavailableError(f"Coordination store unavailable: {e}") from e

		try:
			db.row_factory = aiosqlite.Row
			await db.execute("BEGIN IMMEDIATE" if write else "BEGIN")
			try:
				yield StoreSession(db)
			except BaseException:
				if db.in_transaction:
					await db.execute("ROLLBACK")
				raise
			await db.execute("COMMIT")
		except aiosqlite.Error as e:
			logger.error(f"Coordination store error: {e}")
			raise StoreUnavailableError(f"Coordination store unavailable: {e}") from e
		finally:
			await db.close()

	async def insert(self, record: CoordinationRecord) -> CoordinationRecord:
		async with self.transaction() as session:
			return await session.insert(record)

	async def get(self, record_id: str) -> Optional[CoordinationRecord]:
		async with self.transaction(write=False) as session:
			return await session.get(record_id)

	async def update_status(
		self,
		project_id: str,
		target_agent_id: str,
		new_status: CoordinationStatus,
		response: Optional[str] = None,
	) -> CoordinationRecord:
		async with self.transaction() as session:
			return await session.update_status(project_id, target_agent_id, new_status, response)

	async def list_by_project(self, project_id: str) -> list[CoordinationRecord]:
		async with self.transaction(write=False) as session:
			return await session.list_by_project(project_id)

	async def list_waiting_for_step(
		self, project_id: str, workflow_type: str, workflow_step: int,
	) -> list[CoordinationRecord]:
		async with self.transaction(write=False) as session:
			return await session.list_waiting_for_step(project_id, workflow_type, workflow_step)
