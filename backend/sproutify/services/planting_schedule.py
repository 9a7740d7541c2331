"""Planting schedule: sow/harvest/delivery dates projected from standing orders.

Derived on demand and never stored.  For every active standing order,
delivery date and product line:

  1. the product's trays are split over its recipes by ratio / total ratio
  2. sow date     = delivery − grow days − lead days (harvest → delivery)
  3. the sow date moves back (at most 6 days) onto an allowed seeding day
  4. harvest date = sow date + grow days
  5. soak date    = sow date − 1, for recipes that require soaking

Lead days come from the order, then the farm, then settings.

Entries reference recipes by their key id: the template id for a farm's
copy of a global recipe, else the recipe's own id.  A task derived before
a template was copied and one derived after therefore share a key.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.config import settings
from sproutify.middleware.exceptions import RecipeConfigurationError
from sproutify.models.farm import Farm
from sproutify.models.standing_order import StandingOrder
from sproutify.services.batch_matching import seed_requirement_grams
from sproutify.services.durations import total_grow_days
from sproutify.services.recipes import load_recipes

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

MAX_ALIGNMENT_DAYS = 6

_BIWEEKLY = {"bi-weekly", "biweekly"}


@dataclass(frozen=True)
class ScheduleEntry:
    standing_order_id: str
    order_name: str
    order_item_id: str
    customer_id: str | None
    customer_name: str | None
    product_id: str
    product_name: str
    product_quantity: float
    recipe_id: str
    recipe_name: str
    variety_name: str | None
    # Trays of this recipe; fractional when a product is split by ratio
    quantity: float
    delivery_date: date
    sow_date: date
    harvest_date: date
    soak_date: date | None
    grow_days: int
    seed_grams_per_tray: float | None

    @property
    def days_before_delivery(self) -> int:
        return (self.delivery_date - self.sow_date).days

    @property
    def trays(self) -> int:
        """Whole trays to sow; partial trays cannot be sown."""
        return math.ceil(round(self.quantity, 6))

    def touches(self, start: date, end: date) -> bool:
        dates = (self.soak_date, self.sow_date, self.harvest_date, self.delivery_date)
        return any(d is not None and start <= d <= end for d in dates)

    def growing_on(self, day: date) -> bool:
        """Sown before ``day`` with the harvest still to come."""
        return self.sow_date < day <= self.harvest_date


def recipe_key(recipe: Any) -> str:
    return recipe.source_recipe_id or recipe.id


def weekday_index(name: str) -> int:
    try:
        return WEEKDAYS.index(name.strip().lower())
    except ValueError:
        raise ValueError(f"Unknown weekday: {name!r}") from None


def delivery_dates(order: Any, start: date, end: date) -> list[date]:
    """Delivery dates of ``order`` between ``start`` and ``end`` inclusive.

    Periods of 7 (weekly) or 14 (bi-weekly) days are counted from the
    order's start date; deliveries fall on the listed weekdays of the
    first week of each period.
    """
    if not order.delivery_days:
        return []
    first = max(start, order.start_date)
    last = min(end, order.end_date) if order.end_date else end
    if first > last:
        return []

    period = 14 if (order.frequency or "").lower() in _BIWEEKLY else 7
    weekdays = sorted({weekday_index(d) for d in order.delivery_days})

    skipped_periods = (first - order.start_date).days // period
    period_start = order.start_date + timedelta(days=skipped_periods * period)

    dates = []
    while period_start <= last:
        for weekday in weekdays:
            candidate = period_start + timedelta(days=(weekday - period_start.weekday()) % 7)
            if first <= candidate <= last:
                dates.append(candidate)
        period_start += timedelta(days=period)
    return sorted(dates)


def align_to_seeding_day(sow_date: date, seeding_days: Iterable[str] | None) -> date:
    """Move ``sow_date`` back onto the nearest allowed seeding day."""
    allowed = {weekday_index(d) for d in (seeding_days or [])}
    if not allowed:
        return sow_date
    for back in range(MAX_ALIGNMENT_DAYS + 1):
        candidate = sow_date - timedelta(days=back)
        if candidate.weekday() in allowed:
            return candidate
    return sow_date


def split_by_ratio(quantity: float, mappings: Iterable[Any]) -> list[tuple[str, float]]:
    mappings = list(mappings)
    ratios = [m.ratio if m.ratio and m.ratio > 0 else 1.0 for m in mappings]
    total = sum(ratios)
    if not total:
        return []
    return [(m.recipe_id, quantity * r / total) for m, r in zip(mappings, ratios)]


def _seed_grams(recipe: Any) -> float | None:
    try:
        return seed_requirement_grams(recipe)
    except RecipeConfigurationError:
        return None


def build_planting_schedule(
    orders: Iterable[Any],
    recipes: dict[str, Any],
    delivery_start: date,
    delivery_end: date,
    seeding_days: Iterable[str] | None = None,
    default_lead_days: int = 0,
) -> list[ScheduleEntry]:
    """Project every order line delivered between the two dates."""
    seeding_days = list(seeding_days or [])
    entries = []
    for order in orders:
        if not order.is_active:
            continue
        lead_days = order.lead_days if order.lead_days is not None else default_lead_days
        customer = order.customer
        deliveries = delivery_dates(order, delivery_start, delivery_end)
        if not deliveries:
            continue

        for item in order.items:
            product = item.product
            for recipe_id, quantity in split_by_ratio(item.quantity, product.recipe_mappings):
                recipe = recipes.get(recipe_id)
                if recipe is None:
                    logger.warning(
                        "Order %s maps product %s to unknown recipe %s",
                        order.id, product.id, recipe_id,
                    )
                    continue
                grow_days = total_grow_days(recipe.steps)
                for delivery in deliveries:
                    sow = delivery - timedelta(days=grow_days + lead_days)
                    sow = align_to_seeding_day(sow, seeding_days)
                    entries.append(ScheduleEntry(
                        standing_order_id=order.id,
                        order_name=order.order_name,
                        order_item_id=item.id,
                        customer_id=order.customer_id,
                        customer_name=customer.name if customer else None,
                        product_id=product.id,
                        product_name=product.name,
                        product_quantity=item.quantity,
                        recipe_id=recipe_key(recipe),
                        recipe_name=recipe.name,
                        variety_name=recipe.variety_name,
                        quantity=quantity,
                        delivery_date=delivery,
                        sow_date=sow,
                        harvest_date=sow + timedelta(days=grow_days),
                        soak_date=sow - timedelta(days=1) if recipe.requires_soak else None,
                        grow_days=grow_days,
                        seed_grams_per_tray=_seed_grams(recipe),
                    ))

    entries.sort(key=lambda e: (e.sow_date, e.recipe_name, e.delivery_date, e.order_name))
    return entries


async def _project_schedule(
    db: AsyncSession,
    farm_id: str,
    start: date,
    end: date,
) -> list[ScheduleEntry]:
    farm = await db.get(Farm, farm_id)
    if farm is not None and farm.delivery_lead_days is not None:
        default_lead = farm.delivery_lead_days
    else:
        default_lead = settings.default_delivery_lead_days
    seeding_days = farm.seeding_days if farm is not None else None

    result = await db.execute(
        select(StandingOrder).where(
            StandingOrder.farm_id == farm_id,
            StandingOrder.is_active == True,  # noqa: E712
            or_(StandingOrder.end_date.is_(None), StandingOrder.end_date >= start),
        )
    )
    orders = list(result.scalars().all())
    if not orders:
        return []

    recipe_ids = {
        m.recipe_id
        for o in orders for i in o.items for m in i.product.recipe_mappings
    }
    recipes = await load_recipes(db, farm_id, recipe_ids)

    # Every date of an entry falls on or before its delivery, so deliveries
    # up to end + the longest possible offset cover the window
    longest_grow = max((total_grow_days(r.steps) for r in recipes.values()), default=0)
    longest_lead = max(
        [o.lead_days for o in orders if o.lead_days is not None] + [default_lead]
    )
    horizon = longest_grow + longest_lead + MAX_ALIGNMENT_DAYS + 1

    return build_planting_schedule(
        orders,
        recipes,
        delivery_start=start,
        delivery_end=end + timedelta(days=horizon),
        seeding_days=seeding_days,
        default_lead_days=default_lead,
    )


async def load_planting_schedule(
    db: AsyncSession,
    farm_id: str,
    start: date,
    end: date,
) -> list[ScheduleEntry]:
    """Entries with a soak, sow, harvest or delivery date inside [start, end]."""
    entries = await _project_schedule(db, farm_id, start, end)
    return [e for e in entries if e.touches(start, end)]


async def load_growing_entries(db: AsyncSession, farm_id: str, on_date: date) -> list[ScheduleEntry]:
    # Harvest falls on or before delivery, so every growing entry delivers on or after on_date
    entries = await _project_schedule(db, farm_id, on_date, on_date)
    return [e for e in entries if e.growing_on(on_date)]
