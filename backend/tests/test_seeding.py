"""Seeding request pipeline tests."""

from datetime import date, timedelta

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sproutify import database
from sproutify.middleware.exceptions import (
    BusinessLogicError,
    DuplicateTaskError,
    InsufficientInventoryError,
    ResourceNotFoundError,
    TerminalStateError,
)
from sproutify.models.recipe import Recipe
from sproutify.models.seed_batch import SeedBatch
from sproutify.models.soaked_seed import SoakedSeed
from sproutify.models.task_completion import TaskCompletion
from sproutify.models.tray_creation_request import TrayCreationRequest
from sproutify.services import seeding
from sproutify.services.seeding import (
    cancel_seeding_request,
    complete_seed_task,
    complete_soak_task,
    create_seeding_request,
    discard_soaked_seed,
    ensure_farm_recipe,
    generate_requests_from_orders,
    reschedule_seeding_request,
    use_soaked_seed,
)
from sproutify.services.task_ledger import COMPLETED, IN_PROGRESS, TaskKey, get_task_status, request_tag

from tests.factories import (
    FARM_ID,
    OTHER_FARM_ID,
    make_batch,
    make_customer,
    make_farm,
    make_product,
    make_recipe,
    make_standing_order,
    make_variety,
)

DAY = date(2024, 5, 10)


async def _count(db: AsyncSession, model) -> int:
    return await db.scalar(select(func.count(model.id)))


@pytest_asyncio.fixture
async def variety(db_session: AsyncSession, farm):
    return await make_variety(db_session, "Pea Shoots", seed_quantity=100)


@pytest_asyncio.fixture
async def recipe(db_session: AsyncSession, variety):
    return await make_recipe(db_session, variety)


@pytest_asyncio.fixture
async def batch(db_session: AsyncSession, variety):
    return await make_batch(db_session, variety, 1000, date(2024, 1, 15))


@pytest.mark.integration
@pytest.mark.asyncio
class TestManualRequests:

    async def test_create_request(self, db_session: AsyncSession, farm, recipe):
        customer = await make_customer(db_session)
        req = await create_seeding_request(
            db_session, farm.id, recipe_id=recipe.id, quantity=5, seed_date=DAY,
            customer_id=customer.id, actor="ana",
        )
        assert req.status == "pending"
        assert req.source == "manual"
        assert req.quantity == 5
        assert req.quantity_remaining == 5
        assert req.recipe_name == recipe.name
        assert req.variety_name == "Pea Shoots"
        assert req.customer_name == "Green Bistro"

    async def test_create_never_touches_inventory(self, db_session: AsyncSession, farm, recipe, batch):
        await create_seeding_request(
            db_session, farm.id, recipe_id=recipe.id, quantity=3, seed_date=DAY, batch_id=batch.id,
        )
        await db_session.refresh(batch)
        assert batch.quantity_grams == 1000

    async def test_create_with_too_small_batch(self, db_session: AsyncSession, farm, recipe, batch):
        with pytest.raises(InsufficientInventoryError):
            await create_seeding_request(
                db_session, farm.id, recipe_id=recipe.id, quantity=20, seed_date=DAY, batch_id=batch.id,
            )
        assert await _count(db_session, TrayCreationRequest) == 0

    async def test_other_farm_recipe_invisible(self, db_session: AsyncSession, farm, variety):
        foreign = await make_recipe(db_session, variety, name="Theirs", farm_id=OTHER_FARM_ID)
        with pytest.raises(ResourceNotFoundError):
            await create_seeding_request(
                db_session, farm.id, recipe_id=foreign.id, quantity=1, seed_date=DAY,
            )

    async def test_cancel_only_from_pending(self, db_session: AsyncSession, farm, recipe):
        req = await create_seeding_request(
            db_session, farm.id, recipe_id=recipe.id, quantity=2, seed_date=DAY,
        )
        await cancel_seeding_request(db_session, farm.id, req.id, "customer paused")
        assert req.status == "cancelled"
        assert req.cancelled_reason == "customer paused"
        assert req.cancelled_at is not None

        with pytest.raises(TerminalStateError):
            await cancel_seeding_request(db_session, farm.id, req.id)
        with pytest.raises(TerminalStateError):
            await reschedule_seeding_request(db_session, farm.id, req.id, DAY + timedelta(days=1))

    async def test_reschedule_keeps_original_date(self, db_session: AsyncSession, farm, recipe):
        req = await create_seeding_request(
            db_session, farm.id, recipe_id=recipe.id, quantity=2, seed_date=DAY,
        )
        await reschedule_seeding_request(db_session, farm.id, req.id, DAY + timedelta(days=2))
        assert req.seed_date == DAY + timedelta(days=2)
        assert req.rescheduled_from == DAY


@pytest.mark.integration
@pytest.mark.asyncio
class TestCompleteSeedTask:

    async def test_writes_one_request_per_tray(self, db_session: AsyncSession, farm, recipe, batch):
        requests = await complete_seed_task(
            db_session, farm.id, recipe_id=recipe.id, task_date=DAY, quantity=3, batch_id=batch.id,
        )
        assert len(requests) == 3
        for req in requests:
            assert req.quantity == 1
            assert req.batch_id == batch.id
            assert req.seed_date == DAY
            assert req.requested_at.date() == DAY
            assert req.source == "task"

        key = TaskKey("sowing", DAY, recipe.id)
        assert await get_task_status(db_session, farm.id, key) == COMPLETED
        await db_session.refresh(batch)
        assert batch.quantity_grams == 1000

    async def test_missing_batch_rejected_before_any_write(self, db_session: AsyncSession, farm, recipe):
        with pytest.raises(BusinessLogicError, match="Batch ID is required"):
            await complete_seed_task(
                db_session, farm.id, recipe_id=recipe.id, task_date=DAY, quantity=2, batch_id=None,
            )
        assert await _count(db_session, TrayCreationRequest) == 0
        assert await _count(db_session, TaskCompletion) == 0

    async def test_insufficient_batch_rejected_before_any_write(
        self, db_session: AsyncSession, farm, recipe, variety
    ):
        small = await make_batch(db_session, variety, 150)
        with pytest.raises(InsufficientInventoryError) as exc:
            await complete_seed_task(
                db_session, farm.id, recipe_id=recipe.id, task_date=DAY, quantity=2, batch_id=small.id,
            )
        assert exc.value.shortfall_grams == 50
        assert await _count(db_session, TrayCreationRequest) == 0
        assert await _count(db_session, TaskCompletion) == 0

    async def test_completed_task_cannot_complete_again(self, db_session: AsyncSession, farm, recipe, batch):
        await complete_seed_task(
            db_session, farm.id, recipe_id=recipe.id, task_date=DAY, quantity=1, batch_id=batch.id,
        )
        with pytest.raises(DuplicateTaskError):
            await complete_seed_task(
                db_session, farm.id, recipe_id=recipe.id, task_date=DAY, quantity=1, batch_id=batch.id,
            )
        assert await _count(db_session, TrayCreationRequest) == 1

    async def test_request_source_advances_and_fulfills(self, db_session: AsyncSession, farm, recipe, batch):
        source = await create_seeding_request(
            db_session, farm.id, recipe_id=recipe.id, quantity=5, seed_date=DAY,
        )
        await complete_seed_task(
            db_session, farm.id, recipe_id=None, task_date=DAY, quantity=2,
            batch_id=batch.id, request_id=source.id,
        )
        assert source.quantity_completed == 2
        assert source.status == "pending"
        request_key = TaskKey("sowing", DAY, recipe.id, product_name=request_tag(source.id))
        assert await get_task_status(db_session, farm.id, request_key) == IN_PROGRESS

        requests = await complete_seed_task(
            db_session, farm.id, recipe_id=None, task_date=DAY, quantity=3,
            batch_id=batch.id, request_id=source.id,
        )
        assert source.quantity_remaining == 0
        assert source.status == "fulfilled"
        assert all(r.parent_request_id == source.id for r in requests)

        assert await get_task_status(db_session, farm.id, request_key) == COMPLETED

        with pytest.raises(TerminalStateError):
            await complete_seed_task(
                db_session, farm.id, recipe_id=None, task_date=DAY, quantity=1,
                batch_id=batch.id, request_id=source.id,
            )

    async def test_request_quantity_cannot_be_exceeded(self, db_session: AsyncSession, farm, recipe, batch):
        source = await create_seeding_request(
            db_session, farm.id, recipe_id=recipe.id, quantity=2, seed_date=DAY,
        )
        with pytest.raises(BusinessLogicError):
            await complete_seed_task(
                db_session, farm.id, recipe_id=None, task_date=DAY, quantity=3,
                batch_id=batch.id, request_id=source.id,
            )

    async def test_quantity_below_one(self, db_session: AsyncSession, farm, recipe, batch):
        with pytest.raises(BusinessLogicError):
            await complete_seed_task(
                db_session, farm.id, recipe_id=recipe.id, task_date=DAY, quantity=0, batch_id=batch.id,
            )


@pytest.mark.integration
@pytest.mark.asyncio
class TestGlobalCopyOnUse:

    async def _global_recipe(self, db: AsyncSession, variety):
        return await make_recipe(db, variety, name="Sunflower (template)", is_global=True)

    async def _farm_copies(self, db: AsyncSession, farm_id: str) -> list[Recipe]:
        result = await db.execute(
            select(Recipe).where(Recipe.farm_id == farm_id, Recipe.source_recipe_id.is_not(None))
        )
        return list(result.scalars().all())

    async def test_copy_made_once_and_reused(self, db_session: AsyncSession, farm, variety, batch):
        template = await self._global_recipe(db_session, variety)

        first = await complete_seed_task(
            db_session, farm.id, recipe_id=template.id, task_date=DAY, quantity=1, batch_id=batch.id,
        )
        copies = await self._farm_copies(db_session, farm.id)
        assert len(copies) == 1
        copy = copies[0]
        assert copy.source_recipe_id == template.id
        assert copy.name == template.name
        assert [s.name for s in copy.steps] == [s.name for s in template.steps]
        assert first[0].recipe_id == copy.id

        second = await complete_seed_task(
            db_session, farm.id, recipe_id=template.id, task_date=DAY + timedelta(days=1),
            quantity=2, batch_id=batch.id,
        )
        assert len(await self._farm_copies(db_session, farm.id)) == 1
        assert {r.recipe_id for r in second} == {copy.id}

    async def test_task_key_uses_template_id(self, db_session: AsyncSession, farm, variety, batch):
        template = await self._global_recipe(db_session, variety)
        await complete_seed_task(
            db_session, farm.id, recipe_id=template.id, task_date=DAY, quantity=1, batch_id=batch.id,
        )
        copy = (await self._farm_copies(db_session, farm.id))[0]

        # Completing again through the copy hits the same ledger row
        with pytest.raises(DuplicateTaskError):
            await complete_seed_task(
                db_session, farm.id, recipe_id=copy.id, task_date=DAY, quantity=1, batch_id=batch.id,
            )

    async def test_farm_recipe_returned_as_is(self, db_session: AsyncSession, farm, recipe):
        assert await ensure_farm_recipe(db_session, farm.id, recipe) is recipe

    async def test_other_farm_recipe_not_copied(self, db_session: AsyncSession, farm, variety):
        foreign = await make_recipe(db_session, variety, name="Theirs", farm_id=OTHER_FARM_ID)
        with pytest.raises(ResourceNotFoundError):
            await ensure_farm_recipe(db_session, farm.id, foreign)


@pytest.mark.integration
@pytest.mark.asyncio
class TestSoaking:

    @pytest_asyncio.fixture
    async def soak_recipe(self, db_session: AsyncSession, variety):
        return await make_recipe(db_session, variety, name="Pea (soaked)", requires_soak=True)

    async def test_soak_records_soaked_seed(self, db_session: AsyncSession, farm, soak_recipe, batch):
        soaked = await complete_soak_task(
            db_session, farm.id, recipe_id=soak_recipe.id, soak_date=DAY, quantity=2, batch_id=batch.id,
        )
        assert soaked.quantity_grams == 200
        assert soaked.quantity_remaining_grams == 200
        assert soaked.expires_on == DAY + timedelta(days=1)
        assert soaked.status == "available"

        key = TaskKey("soaking", DAY, soak_recipe.id)
        assert await get_task_status(db_session, farm.id, key) == COMPLETED
        await db_session.refresh(batch)
        assert batch.quantity_grams == 1000

    async def test_soak_rejected_for_recipe_without_soak(self, db_session: AsyncSession, farm, recipe, batch):
        with pytest.raises(BusinessLogicError):
            await complete_soak_task(
                db_session, farm.id, recipe_id=recipe.id, soak_date=DAY, quantity=1, batch_id=batch.id,
            )
        assert await _count(db_session, SoakedSeed) == 0

    async def test_sowing_draws_down_soaked_seed(self, db_session: AsyncSession, farm, soak_recipe, batch):
        soaked = await complete_soak_task(
            db_session, farm.id, recipe_id=soak_recipe.id, soak_date=DAY, quantity=3, batch_id=batch.id,
        )
        await complete_seed_task(
            db_session, farm.id, recipe_id=soak_recipe.id, task_date=DAY + timedelta(days=1),
            quantity=2, batch_id=batch.id,
        )
        assert soaked.quantity_remaining_grams == 100
        assert soaked.status == "available"

    async def test_use_leftover_soaked_seed(self, db_session: AsyncSession, farm, soak_recipe, batch):
        soaked = await complete_soak_task(
            db_session, farm.id, recipe_id=soak_recipe.id, soak_date=DAY, quantity=2, batch_id=batch.id,
        )
        requests = await use_soaked_seed(db_session, farm.id, soaked.id, 2, DAY + timedelta(days=1))
        assert len(requests) == 2
        assert {r.source for r in requests} == {"soaked_seed"}
        assert {r.batch_id for r in requests} == {batch.id}
        assert soaked.status == "used"

        with pytest.raises(TerminalStateError):
            await use_soaked_seed(db_session, farm.id, soaked.id, 1)

    async def test_use_more_than_left(self, db_session: AsyncSession, farm, soak_recipe, batch):
        soaked = await complete_soak_task(
            db_session, farm.id, recipe_id=soak_recipe.id, soak_date=DAY, quantity=1, batch_id=batch.id,
        )
        with pytest.raises(InsufficientInventoryError):
            await use_soaked_seed(db_session, farm.id, soaked.id, 2)

    async def test_discard(self, db_session: AsyncSession, farm, soak_recipe, batch):
        soaked = await complete_soak_task(
            db_session, farm.id, recipe_id=soak_recipe.id, soak_date=DAY, quantity=1, batch_id=batch.id,
        )
        await discard_soaked_seed(db_session, farm.id, soaked.id, "sour smell")
        assert soaked.status == "discarded"
        assert soaked.discard_reason == "sour smell"
        await db_session.refresh(batch)
        assert batch.quantity_grams == 1000


@pytest.mark.integration
@pytest.mark.asyncio
class TestGenerateFromOrders:

    async def test_generate_is_rerunnable(self, db_session: AsyncSession, farm, recipe):
        customer = await make_customer(db_session)
        product = await make_product(db_session, "Pea Tray", [(recipe, 1)])
        order = await make_standing_order(
            db_session, customer, [(product, 2.5)], ["friday"], date(2024, 5, 1)
        )

        # Fri 05-10 delivery → sow Tue 04-30; Fri 05-17 → sow Tue 05-07
        created = await generate_requests_from_orders(
            db_session, farm.id, date(2024, 4, 29), date(2024, 5, 5)
        )
        assert [(r.seed_date, r.quantity) for r in created] == [(date(2024, 4, 30), 3)]
        req = created[0]
        assert req.source == "standing_order"
        assert req.standing_order_id == order.id
        assert req.customer_name == "Green Bistro"

        again = await generate_requests_from_orders(
            db_session, farm.id, date(2024, 4, 29), date(2024, 5, 5)
        )
        assert again == []

    async def test_completed_sowing_not_regenerated(
        self, db_session: AsyncSession, farm, recipe, batch
    ):
        product = await make_product(db_session, "Pea Tray", [(recipe, 1)])
        await make_standing_order(db_session, None, [(product, 1)], ["friday"], date(2024, 5, 1))
        await complete_seed_task(
            db_session, farm.id, recipe_id=recipe.id, task_date=date(2024, 4, 30),
            quantity=1, batch_id=batch.id,
        )
        created = await generate_requests_from_orders(
            db_session, farm.id, date(2024, 4, 30), date(2024, 4, 30)
        )
        assert created == []

    async def test_standing_order_request_completes_schedule_task(
        self, db_session: AsyncSession, farm, recipe, batch
    ):
        product = await make_product(db_session, "Pea Tray", [(recipe, 1)])
        await make_standing_order(db_session, None, [(product, 2)], ["friday"], date(2024, 5, 1))
        [req] = await generate_requests_from_orders(
            db_session, farm.id, date(2024, 4, 30), date(2024, 4, 30)
        )
        await complete_seed_task(
            db_session, farm.id, recipe_id=None, task_date=req.seed_date, quantity=2,
            batch_id=batch.id, request_id=req.id,
        )
        schedule_key = TaskKey("sowing", req.seed_date, recipe.id)
        assert await get_task_status(db_session, farm.id, schedule_key) == COMPLETED

    async def test_end_before_start(self, db_session: AsyncSession, farm):
        with pytest.raises(BusinessLogicError):
            await generate_requests_from_orders(db_session, farm.id, DAY, DAY - timedelta(days=1))


@pytest.mark.integration
@pytest.mark.asyncio
class TestRequestTransaction:
    """A seed task runs inside get_db's transaction; any failure undoes all of it."""

    @pytest_asyncio.fixture
    async def session_factory(self, test_engine, monkeypatch):
        factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
        monkeypatch.setattr(database, "async_session", factory)
        return factory

    @pytest_asyncio.fixture
    async def stocked(self, session_factory):
        async with session_factory() as setup:
            await make_farm(setup)
            variety = await make_variety(setup)
            template = await make_recipe(setup, variety, name="Sunflower (template)", is_global=True)
            batch = await make_batch(setup, variety, 1000)
            await setup.commit()
        return template, batch

    async def _complete_in_request(self, template, batch):
        sessions = database.get_db()
        db = await sessions.__anext__()
        try:
            await complete_seed_task(
                db, FARM_ID, recipe_id=template.id, task_date=DAY, quantity=2, batch_id=batch.id,
            )
        except Exception as exc:
            await sessions.athrow(exc)

    async def _assert_nothing_written(self, session_factory):
        async with session_factory() as check:
            assert await _count(check, TrayCreationRequest) == 0
            assert await _count(check, TaskCompletion) == 0
            copies = await check.scalar(
                select(func.count(Recipe.id)).where(Recipe.source_recipe_id.is_not(None))
            )
            assert copies == 0
            batch = (await check.execute(select(SeedBatch))).scalar_one()
            assert batch.quantity_grams == 1000

    async def test_copy_failure_aborts_everything(self, session_factory, stocked, monkeypatch):
        real_copy = seeding.ensure_farm_recipe

        async def failing_copy(db, farm_id, recipe, actor=None):
            await real_copy(db, farm_id, recipe, actor)
            raise IntegrityError("INSERT INTO recipes", {}, Exception("uq_recipes_farm_source"))

        monkeypatch.setattr(seeding, "ensure_farm_recipe", failing_copy)

        with pytest.raises(IntegrityError):
            await self._complete_in_request(*stocked)
        await self._assert_nothing_written(session_factory)

    async def test_late_failure_undoes_requests_and_ledger(self, session_factory, stocked, monkeypatch):
        real_log = seeding.log_activity

        async def failing_log(db, farm_id, actor, **entry):
            if entry["action"] == "completed":
                raise OperationalError("INSERT INTO activity_logs", {}, Exception("connection lost"))
            await real_log(db, farm_id, actor, **entry)

        monkeypatch.setattr(seeding, "log_activity", failing_log)

        with pytest.raises(OperationalError):
            await self._complete_in_request(*stocked)
        await self._assert_nothing_written(session_factory)
