"""Tests for the SQLite coordination store."""

from pathlib import Path

import pytest

from agent_coordination.errors import (
	InvalidTransitionError,
	NoPendingTaskError,
	StoreUnavailableError,
)
from agent_coordination.models import (
	CoordinationRecord,
	CoordinationStatus,
	CoordinationType,
	TaskData,
)
from agent_coordination.store import CoordinationStore


def _record(project_id: str = "p1", target: str = "qa_engineer", **kwargs) -> CoordinationRecord:
	return CoordinationRecord(
		project_id=project_id,
		initiator_agent_id="manager",
		target_agent_id=target,
		message="Write tests",
		**kwargs,
	)


@pytest.fixture
def store(tmp_path: Path) -> CoordinationStore:
	return CoordinationStore(str(tmp_path / "coordination.db"))


class TestInsertAndRead:
	"""Tests for inserting and listing records."""

	@pytest.mark.asyncio
	async def test_insert_assigns_id_and_timestamps(self, store):
		record = await store.insert(_record())

		assert record.id
		assert record.created_at
		assert record.updated_at == record.created_at

		loaded = await store.get(record.id)
		assert loaded.model_dump() == record.model_dump()

	@pytest.mark.asyncio
	async def test_task_data_round_trips_with_extra_keys(self, store):
		data = TaskData.model_validate({
			"workflowType": "create_web_app",
			"workflowStep": 2,
			"stepDescription": "Generate code",
			"repo": "git@example.com:app.git",
		})
		record = await store.insert(_record(task_data=data))

		loaded = await store.get(record.id)
		assert loaded.task_data.workflow_type == "create_web_app"
		assert loaded.task_data.workflow_step == 2
		assert loaded.task_data.model_dump(by_alias=True)["repo"] == "git@example.com:app.git"

	@pytest.mark.asyncio
	async def test_list_by_project_in_insertion_order(self, store):
		first = await store.insert(_record(target="qa_engineer"))
		second = await store.insert(_record(target="devops_engineer"))
		await store.insert(_record(project_id="other"))

		records = await store.list_by_project("p1")
		assert [r.id for r in records] == [first.id, second.id]

	@pytest.mark.asyncio
	async def test_list_by_project_unknown_is_empty(self, store):
		assert await store.list_by_project("nope") == []

	@pytest.mark.asyncio
	async def test_list_waiting_for_step(self, store):
		def step(n: int, status: CoordinationStatus) -> CoordinationRecord:
			return _record(
				task_data=TaskData(workflow_type="create_web_app", workflow_step=n),
				status=status,
			)

		await store.insert(step(1, CoordinationStatus.PENDING))
		waiting = await store.insert(step(2, CoordinationStatus.WAITING))
		await store.insert(step(3, CoordinationStatus.WAITING))

		found = await store.list_waiting_for_step("p1", "create_web_app", 2)
		assert [r.id for r in found] == [waiting.id]
		assert await store.list_waiting_for_step("p1", "create_web_app", 1) == []
		assert await store.list_waiting_for_step("p1", "create_mobile_app", 2) == []


class TestUpdateStatus:
	"""Tests for the filtered status update."""

	@pytest.mark.asyncio
	async def test_updates_pending_record(self, store):
		record = await store.insert(_record())

		updated = await store.update_status("p1", "qa_engineer", CoordinationStatus.COMPLETED, "done")

		assert updated.id == record.id
		assert updated.status == CoordinationStatus.COMPLETED
		assert updated.response == "done"

	@pytest.mark.asyncio
	async def test_no_pending_record_raises(self, store):
		with pytest.raises(NoPendingTaskError):
			await store.update_status("p1", "qa_engineer", CoordinationStatus.COMPLETED)

	@pytest.mark.asyncio
	async def test_picks_oldest_pending_record(self, store):
		oldest = await store.insert(_record())
		newer = await store.insert(_record())

		updated = await store.update_status("p1", "qa_engineer", CoordinationStatus.IN_PROGRESS)

		assert updated.id == oldest.id
		assert (await store.get(newer.id)).status == CoordinationStatus.PENDING

	@pytest.mark.asyncio
	async def test_disallowed_move_raises_and_keeps_record(self, store):
		record = await store.insert(_record())

		with pytest.raises(InvalidTransitionError):
			await store.update_status("p1", "qa_engineer", CoordinationStatus.WAITING)

		assert (await store.get(record.id)).status == CoordinationStatus.PENDING

	@pytest.mark.asyncio
	async def test_skips_records_that_cannot_reach_status(self, store):
		busy = await store.insert(_record(status=CoordinationStatus.IN_PROGRESS))
		queued = await store.insert(_record())
		active = (CoordinationStatus.PENDING, CoordinationStatus.IN_PROGRESS)

		started = await store.update_status(
			"p1", "qa_engineer", CoordinationStatus.IN_PROGRESS, from_statuses=active,
		)
		assert started.id == queued.id

		with pytest.raises(InvalidTransitionError):
			await store.update_status("p1", "qa_engineer", CoordinationStatus.IN_PROGRESS, from_statuses=active)

		finished = await store.update_status(
			"p1", "qa_engineer", CoordinationStatus.COMPLETED, from_statuses=active,
		)
		assert finished.id == busy.id

	@pytest.mark.asyncio
	async def test_lists_workflow_steps_without_handoffs(self, store):
		step = await store.insert(_record(task_data=TaskData(workflow_type="create_web_app", workflow_step=1)))
		await store.insert(_record(
			target="devops_engineer",
			coordination_type=CoordinationType.HANDOFF,
			task_data=TaskData(workflow_type="create_web_app", workflow_step=2),
		))
		await store.insert(_record(target="manager", task_data=TaskData(workflow_type="create_web_app")))

		async with store.transaction(write=False) as session:
			steps = await session.list_workflow_steps("p1", "create_web_app")

		assert [r.id for r in steps] == [step.id]


class TestTransactions:
	"""Tests for transaction and conditional-update behaviour."""

	@pytest.mark.asyncio
	async def test_conditional_transition_misses_on_wrong_status(self, store):
		record = await store.insert(_record())

		async with store.transaction() as session:
			missed = await session.transition(
				record.id, CoordinationStatus.WAITING, CoordinationStatus.PENDING,
			)
		assert missed is None

	@pytest.mark.asyncio
	async def test_exception_rolls_back_whole_unit(self, store):
		with pytest.raises(RuntimeError):
			async with store.transaction() as session:
				await session.insert(_record())
				await session.insert(_record(target="devops_engineer"))
				raise RuntimeError("boom")

		assert await store.list_by_project("p1") == []

	@pytest.mark.asyncio
	async def test_has_pending(self, store):
		await store.insert(_record(coordination_type=CoordinationType.HANDOFF))

		async with store.transaction(write=False) as session:
			assert await session.has_pending("p1", "qa_engineer")
			assert not await session.has_pending("p1", "devops_engineer")

	@pytest.mark.asyncio
	async def test_list_overdue(self, store):
		overdue = await store.insert(_record(
			status=CoordinationStatus.IN_PROGRESS, deadline="2020-01-01T00:00:00",
		))
		await store.insert(_record(
			target="devops_engineer", status=CoordinationStatus.IN_PROGRESS, deadline="2999-01-01T00:00:00",
		))
		await store.insert(_record(target="security_engineer", deadline="2020-01-01T00:00:00"))

		async with store.transaction(write=False) as session:
			found = await session.list_overdue("2025-01-01T00:00:00")
		assert [r.id for r in found] == [overdue.id]

	@pytest.mark.asyncio
	async def test_unusable_database_raises_store_unavailable(self, tmp_path: Path):
		db_path = tmp_path / "coordination.db"
		db_path.write_text("this is not a sqlite database" * 100)
		store = CoordinationStore(str(db_path))

		with pytest.raises(StoreUnavailableError):
			await store.list_by_project("p1")
