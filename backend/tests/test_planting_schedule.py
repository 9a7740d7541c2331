"""Planting schedule projection tests."""

from datetime import date, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.services.planting_schedule import (
    align_to_seeding_day,
    build_planting_schedule,
    delivery_dates,
    load_planting_schedule,
    split_by_ratio,
    weekday_index,
)

from tests.factories import (
    make_customer,
    make_product,
    make_recipe,
    make_standing_order,
    make_variety,
)

# 2024-05-10 is a Friday
FRIDAY = date(2024, 5, 10)


def _recipe(recipe_id="r1", grow_days=10, requires_soak=False, source_recipe_id=None):
    return SimpleNamespace(
        id=recipe_id,
        source_recipe_id=source_recipe_id,
        name=f"Recipe {recipe_id}",
        variety_id="v1",
        variety_name="Radish",
        variety=None,
        seed_quantity=30,
        seed_quantity_unit="grams",
        requires_soak=requires_soak,
        steps=[SimpleNamespace(sequence_order=1, name="Grow", duration=grow_days, duration_unit="days")],
    )


def _order(mappings, quantity=1.0, delivery_days=("friday",), start=date(2024, 1, 1),
           end=None, frequency="weekly", lead_days=None):
    product = SimpleNamespace(
        id="p1", name="Spicy Mix",
        recipe_mappings=[SimpleNamespace(recipe_id=rid, ratio=ratio) for rid, ratio in mappings],
    )
    return SimpleNamespace(
        id="o1", order_name="Bistro weekly", customer_id="c1",
        customer=SimpleNamespace(name="Green Bistro"),
        delivery_days=list(delivery_days), start_date=start, end_date=end,
        frequency=frequency, lead_days=lead_days, is_active=True,
        items=[SimpleNamespace(id="i1", product=product, quantity=quantity)],
    )


@pytest.mark.unit
class TestDeliveryDates:

    def test_weekly(self):
        order = _order([("r1", 1)], delivery_days=("monday", "friday"), start=date(2024, 5, 1))
        assert delivery_dates(order, date(2024, 5, 6), date(2024, 5, 17)) == [
            date(2024, 5, 6), date(2024, 5, 10), date(2024, 5, 13), date(2024, 5, 17),
        ]

    def test_biweekly_counts_from_start(self):
        order = _order([("r1", 1)], start=date(2024, 5, 6), frequency="bi-weekly")
        assert delivery_dates(order, date(2024, 5, 1), date(2024, 6, 7)) == [
            date(2024, 5, 10), date(2024, 5, 24), date(2024, 6, 7),
        ]

    def test_bounded_by_order_dates(self):
        order = _order([("r1", 1)], start=date(2024, 5, 8), end=date(2024, 5, 20))
        assert delivery_dates(order, date(2024, 5, 1), date(2024, 5, 31)) == [
            date(2024, 5, 10), date(2024, 5, 17),
        ]

    def test_no_delivery_days(self):
        order = _order([("r1", 1)], delivery_days=())
        assert delivery_dates(order, date(2024, 5, 1), date(2024, 5, 31)) == []

    def test_unknown_weekday(self):
        with pytest.raises(ValueError):
            weekday_index("Caturday")


@pytest.mark.unit
class TestScheduleRules:

    def test_align_moves_back_to_seeding_day(self):
        # Thursday 2024-05-09 → Monday 2024-05-06
        assert align_to_seeding_day(date(2024, 5, 9), ["monday"]) == date(2024, 5, 6)
        assert align_to_seeding_day(date(2024, 5, 9), ["thursday"]) == date(2024, 5, 9)
        assert align_to_seeding_day(date(2024, 5, 9), []) == date(2024, 5, 9)

    def test_split_by_ratio(self):
        mappings = [SimpleNamespace(recipe_id="a", ratio=1), SimpleNamespace(recipe_id="b", ratio=3)]
        assert split_by_ratio(4, mappings) == [("a", 1.0), ("b", 3.0)]

    def test_sow_harvest_and_soak_dates(self):
        recipes = {"r1": _recipe(grow_days=8, requires_soak=True)}
        order = _order([("r1", 1)], quantity=2, lead_days=1)

        [entry] = build_planting_schedule([order], recipes, FRIDAY, FRIDAY)
        assert entry.delivery_date == FRIDAY
        assert entry.sow_date == FRIDAY - timedelta(days=9)
        assert entry.harvest_date == FRIDAY - timedelta(days=1)
        assert entry.soak_date == entry.sow_date - timedelta(days=1)
        assert entry.days_before_delivery == 9
        assert entry.trays == 2
        assert entry.seed_grams_per_tray == 30

    def test_default_lead_days_when_order_has_none(self):
        recipes = {"r1": _recipe(grow_days=5)}
        [entry] = build_planting_schedule(
            [_order([("r1", 1)])], recipes, FRIDAY, FRIDAY, default_lead_days=2
        )
        assert entry.sow_date == FRIDAY - timedelta(days=7)

    def test_fractional_trays_round_up(self):
        recipes = {"a": _recipe("a"), "b": _recipe("b")}
        entries = build_planting_schedule(
            [_order([("a", 1), ("b", 1)], quantity=3)], recipes, FRIDAY, FRIDAY
        )
        assert sorted(e.quantity for e in entries) == [1.5, 1.5]
        assert [e.trays for e in entries] == [2, 2]

    def test_entries_keyed_by_template(self):
        recipes = {"copy": _recipe("copy", source_recipe_id="template")}
        [entry] = build_planting_schedule([_order([("copy", 1)])], recipes, FRIDAY, FRIDAY)
        assert entry.recipe_id == "template"

    def test_unknown_recipe_skipped(self):
        assert build_planting_schedule([_order([("missing", 1)])], {}, FRIDAY, FRIDAY) == []


@pytest.mark.integration
@pytest.mark.asyncio
class TestLoadPlantingSchedule:

    async def test_entries_touching_window(self, db_session: AsyncSession, farm):
        variety = await make_variety(db_session)
        recipe = await make_recipe(db_session, variety)  # 10 days
        customer = await make_customer(db_session)
        product = await make_product(db_session, "Pea Tray", [(recipe, 1)])
        await make_standing_order(db_session, customer, [(product, 2)], ["friday"], date(2024, 5, 1))

        # Sowing on Tue 2024-04-30 for the Fri 2024-05-10 delivery
        entries = await load_planting_schedule(db_session, farm.id, date(2024, 4, 30), date(2024, 4, 30))
        assert [(e.sow_date, e.delivery_date) for e in entries] == [
            (date(2024, 4, 30), date(2024, 5, 10)),
        ]
        assert entries[0].customer_name == "Green Bistro"
        assert entries[0].trays == 2

    async def test_farm_seeding_days_and_lead(self, db_session: AsyncSession, farm):
        farm.seeding_days = ["monday"]
        farm.delivery_lead_days = 1
        variety = await make_variety(db_session)
        recipe = await make_recipe(db_session, variety)
        product = await make_product(db_session, "Pea Tray", [(recipe, 1)])
        await make_standing_order(db_session, None, [(product, 1)], ["friday"], date(2024, 5, 1))

        entries = await load_planting_schedule(db_session, farm.id, date(2024, 5, 10), date(2024, 5, 10))
        # 05-10 − 10 − 1 = Mon 04-29, already a seeding day
        assert [e.sow_date for e in entries] == [date(2024, 4, 29)]

    async def test_other_farm_orders_ignored(self, db_session: AsyncSession, farm):
        variety = await make_variety(db_session)
        recipe = await make_recipe(db_session, variety)
        product = await make_product(db_session, "Pea Tray", [(recipe, 1)])
        await make_standing_order(
            db_session, None, [(product, 1)], ["friday"], date(2024, 5, 1), farm_id="farm-0002"
        )
        assert await load_planting_schedule(db_session, farm.id, FRIDAY, FRIDAY) == []
