"""Task completion ledger tests."""

from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.middleware.exceptions import BusinessLogicError
from sproutify.models.task_completion import TaskCompletion
from sproutify.services.task_ledger import (
    COMPLETED,
    IN_PROGRESS,
    PENDING,
    TaskKey,
    get_task_status,
    load_statuses,
    request_tag,
    set_task_status,
)

DAY = date(2024, 5, 10)


@pytest.mark.unit
class TestTaskKey:

    def test_as_string(self):
        key = TaskKey("delivery", DAY, customer_name="Green Bistro", product_name="Pea Tray")
        assert key.as_string() == "delivery|2024-05-10||Green Bistro|Pea Tray"

    def test_separator_in_names_cannot_collide(self):
        a = TaskKey("delivery", DAY, customer_name="A|B", product_name="C")
        b = TaskKey("delivery", DAY, customer_name="A", product_name="B|C")
        assert a.as_string() != b.as_string()

    def test_keys_are_values(self):
        assert TaskKey("sowing", DAY, "r1") == TaskKey("sowing", DAY, "r1")
        assert len({TaskKey("sowing", DAY, "r1"), TaskKey("sowing", DAY, "r1")}) == 1

    def test_request_tag(self):
        assert request_tag("abc") == "request:abc"


@pytest.mark.integration
@pytest.mark.asyncio
class TestLedger:

    async def _rows(self, db: AsyncSession) -> int:
        return await db.scalar(select(func.count(TaskCompletion.id)))

    async def test_missing_row_is_pending(self, db_session: AsyncSession, farm):
        assert await get_task_status(db_session, farm.id, TaskKey("sowing", DAY, "r1")) == PENDING

    async def test_upsert_keeps_one_row(self, db_session: AsyncSession, farm):
        key = TaskKey("sowing", DAY, "r1")
        await set_task_status(db_session, farm.id, key, IN_PROGRESS, actor="ana")
        await set_task_status(db_session, farm.id, key, COMPLETED, batch_id="b1", actor="ben")

        assert await self._rows(db_session) == 1
        row = (await db_session.execute(select(TaskCompletion))).scalar_one()
        await db_session.refresh(row)
        assert row.status == COMPLETED
        assert row.batch_id == "b1"
        assert row.completed_by == "ben"
        assert row.task_key == key.as_string()

    async def test_pending_deletes_row(self, db_session: AsyncSession, farm):
        key = TaskKey("harvesting", DAY, "r1")
        await set_task_status(db_session, farm.id, key, COMPLETED)
        await set_task_status(db_session, farm.id, key, PENDING)

        assert await self._rows(db_session) == 0
        assert await get_task_status(db_session, farm.id, key) == PENDING

    async def test_ledger_is_per_farm(self, db_session: AsyncSession, farm):
        key = TaskKey("sowing", DAY, "r1")
        await set_task_status(db_session, farm.id, key, COMPLETED)
        assert await get_task_status(db_session, "farm-0002", key) == PENDING

    async def test_load_statuses(self, db_session: AsyncSession, farm):
        done = TaskKey("sowing", DAY, "r1")
        open_ = TaskKey("sowing", DAY, "r2")
        await set_task_status(db_session, farm.id, done, COMPLETED)

        statuses = await load_statuses(db_session, farm.id, [done, open_])
        assert statuses == {done.as_string(): COMPLETED}
        assert await load_statuses(db_session, farm.id, []) == {}

    async def test_invalid_status(self, db_session: AsyncSession, farm):
        with pytest.raises(BusinessLogicError):
            await set_task_status(db_session, farm.id, TaskKey("sowing", DAY), "done-ish")

    async def test_invalid_task_type(self, db_session: AsyncSession, farm):
        with pytest.raises(BusinessLogicError):
            await set_task_status(db_session, farm.id, TaskKey("juggling", DAY), COMPLETED)
