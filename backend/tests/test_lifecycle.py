"""Tray lifecycle tests: derived status, losses, harvests and steps."""

from datetime import date, timedelta
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.middleware.exceptions import BusinessLogicError, ResourceNotFoundError, TerminalStateError
from sproutify.models.activity_log import ActivityLog
from sproutify.services.lifecycle import (
    GROWING,
    HARVESTED,
    LOST,
    complete_tray_steps,
    list_trays,
    mark_trays_lost,
    passive_phase,
    passive_tray_status,
    record_harvest,
    resolve_tray_status,
    skip_tray_steps,
    tray_harvest_date,
    tray_status,
)

from tests.factories import make_recipe, make_tray, make_variety

SOW = date(2024, 5, 6)


def _pending(name, scheduled, order):
    return SimpleNamespace(
        step_name=name, scheduled_date=scheduled, sequence_order=order,
        completed=False, skipped=False,
    )


@pytest.mark.unit
class TestResolveTrayStatus:

    def test_lost_beats_everything(self):
        pending = [_pending("Blackout", SOW, 1)]
        assert resolve_tray_status("lost", SOW, pending) == LOST
        assert resolve_tray_status("lost", None, pending) == LOST

    def test_harvest_date_means_harvested(self):
        assert resolve_tray_status("active", SOW, [_pending("Grow", SOW, 1)]) == HARVESTED
        assert resolve_tray_status("harvested", None, []) == HARVESTED

    def test_earliest_pending_step_names_the_stage(self):
        pending = [
            _pending("Grow", SOW + timedelta(days=5), 3),
            _pending("Blackout", SOW + timedelta(days=3), 2),
        ]
        assert resolve_tray_status("active", None, pending) == "Blackout"

    def test_same_date_broken_by_sequence(self):
        pending = [_pending("Water", SOW, 2), _pending("Cover", SOW, 1)]
        assert resolve_tray_status("active", None, pending) == "Cover"

    def test_unscheduled_steps_sort_last(self):
        pending = [_pending("Later", None, 1), _pending("Now", SOW, 2)]
        assert resolve_tray_status("active", None, pending) == "Now"

    def test_nothing_pending_is_growing(self):
        assert resolve_tray_status("active", None, []) == GROWING

    @pytest.mark.parametrize("name,phase", [
        ("Germination", "Germination"),
        ("germinate", "Germination"),
        ("Blackout", "Blackout"),
        ("Dark period", "Blackout"),
        ("Grow", "Growing"),
        (None, "Growing"),
    ])
    def test_passive_phase(self, name, phase):
        assert passive_phase(name) == phase


@pytest.mark.integration
@pytest.mark.asyncio
class TestTrayActions:

    @pytest_asyncio.fixture
    async def recipe(self, db_session: AsyncSession, farm):
        variety = await make_variety(db_session)
        return await make_recipe(db_session, variety)

    async def test_new_tray_is_in_first_step(self, db_session: AsyncSession, recipe):
        tray = await make_tray(db_session, recipe, SOW)
        assert tray_status(tray) == "Germination"
        assert tray_harvest_date(tray) == SOW + timedelta(days=10)

    async def test_lost_tray_with_pending_step_is_lost(self, db_session: AsyncSession, farm, recipe):
        tray = await make_tray(db_session, recipe, SOW)
        await mark_trays_lost(db_session, farm.id, [tray.id], "mold", "white fuzz", actor="ana")

        assert any(not s.completed for s in tray.steps)
        assert tray_status(tray) == LOST
        assert tray.loss_reason == "mold"
        assert tray.lost_at is not None

    async def test_unknown_loss_reason_rejected(self, db_session: AsyncSession, farm, recipe):
        tray = await make_tray(db_session, recipe, SOW)
        with pytest.raises(BusinessLogicError):
            await mark_trays_lost(db_session, farm.id, [tray.id], "aliens")

    async def test_lost_is_terminal(self, db_session: AsyncSession, farm, recipe):
        tray = await make_tray(db_session, recipe, SOW)
        await mark_trays_lost(db_session, farm.id, [tray.id], "pest")

        with pytest.raises(TerminalStateError):
            await record_harvest(db_session, farm.id, [tray.id])
        with pytest.raises(TerminalStateError):
            await complete_tray_steps(db_session, farm.id, [tray.id], "Blackout")
        with pytest.raises(TerminalStateError):
            await mark_trays_lost(db_session, farm.id, [tray.id], "pest")

    async def test_harvest_splits_yield_and_closes_steps(self, db_session: AsyncSession, farm, recipe):
        a = await make_tray(db_session, recipe, SOW, tray_code="A")
        b = await make_tray(db_session, recipe, SOW, tray_code="B")
        harvest_on = SOW + timedelta(days=10)

        await record_harvest(db_session, farm.id, [a.id, b.id], harvest_on, 500)

        for tray in (a, b):
            assert tray_status(tray) == HARVESTED
            assert tray.harvest_date == harvest_on
            assert tray.yield_grams == 250
            assert all(s.completed for s in tray.steps)

    async def test_double_harvest_rejected(self, db_session: AsyncSession, farm, recipe):
        tray = await make_tray(db_session, recipe, SOW)
        await record_harvest(db_session, farm.id, [tray.id], SOW + timedelta(days=10))
        with pytest.raises(TerminalStateError):
            await record_harvest(db_session, farm.id, [tray.id])

    async def test_harvested_tray_cannot_be_lost(self, db_session: AsyncSession, farm, recipe):
        harvested = await make_tray(db_session, recipe, SOW, tray_code="A")
        growing = await make_tray(db_session, recipe, SOW, tray_code="B")
        await record_harvest(db_session, farm.id, [harvested.id], SOW + timedelta(days=10))

        with pytest.raises(TerminalStateError, match="already harvested: A"):
            await mark_trays_lost(db_session, farm.id, [harvested.id, growing.id], "mold")
        assert harvested.loss_reason is None
        assert growing.status == "active"

    async def test_unknown_tray(self, db_session: AsyncSession, farm):
        with pytest.raises(ResourceNotFoundError):
            await record_harvest(db_session, farm.id, ["nope"])

    async def test_empty_tray_list(self, db_session: AsyncSession, farm):
        with pytest.raises(BusinessLogicError):
            await mark_trays_lost(db_session, farm.id, [], "mold")

    async def test_complete_and_skip_steps(self, db_session: AsyncSession, farm, recipe):
        tray = await make_tray(db_session, recipe, SOW)

        assert await complete_tray_steps(db_session, farm.id, [tray.id], "Germination") == 1
        assert tray_status(tray) == "Blackout"

        assert await skip_tray_steps(db_session, farm.id, [tray.id], "Blackout") == 1
        assert tray_status(tray) == "Grow"

        # Completing a skipped step clears the skip
        await complete_tray_steps(db_session, farm.id, [tray.id], "Blackout")
        blackout = next(s for s in tray.steps if s.step_name == "Blackout")
        assert blackout.completed and not blackout.skipped

    async def test_completing_missing_step(self, db_session: AsyncSession, farm, recipe):
        tray = await make_tray(db_session, recipe, SOW)
        with pytest.raises(BusinessLogicError):
            await complete_tray_steps(db_session, farm.id, [tray.id], "Mist")

    async def test_actions_are_logged(self, db_session: AsyncSession, farm, recipe):
        tray = await make_tray(db_session, recipe, SOW)
        await mark_trays_lost(db_session, farm.id, [tray.id], "mold", actor="ana")
        await db_session.flush()

        logs = (await db_session.execute(select(ActivityLog))).scalars().all()
        assert [(log.action, log.entity_type, log.actor) for log in logs] == [("lost", "tray", "ana")]

    async def test_list_trays_hides_finished(self, db_session: AsyncSession, farm, recipe):
        growing = await make_tray(db_session, recipe, SOW, tray_code="G")
        lost = await make_tray(db_session, recipe, SOW, tray_code="L")
        await mark_trays_lost(db_session, farm.id, [lost.id], "pest")

        views = await list_trays(db_session, farm.id, today=SOW + timedelta(days=1))
        assert [v.tray.id for v in views] == [growing.id]
        assert views[0].days_since_sow == 1

        views = await list_trays(db_session, farm.id, include_finished=True)
        assert {v.status for v in views} == {"Germination", LOST}

    async def test_passive_status(self, db_session: AsyncSession, farm, recipe):
        early = await make_tray(db_session, recipe, SOW, tray_code="E")
        ready_soon = await make_tray(db_session, recipe, SOW - timedelta(days=8), tray_code="R")

        passive = await passive_tray_status(db_session, farm.id, SOW + timedelta(days=1))
        phases = {(g.phase, g.variety): g.tray_ids for g in passive.groups}
        assert phases[("Germination", "Pea Shoots")] == [early.id]
        assert phases[("Growing", "Pea Shoots")] == [ready_soon.id]
        assert [v.tray.id for v in passive.nearly_ready] == [ready_soon.id]
