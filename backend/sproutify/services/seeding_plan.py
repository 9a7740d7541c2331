"""Seeding plan: one sow date's schedule rolled up per recipe for printing.

Per recipe group:
  total_trays       sum of ceil(trays) over contributing order lines
                    (2.4 + 3.1 trays → 3 + 4 = 7, never ceil(5.5) = 6)
  total_seed_grams  seed per tray × total_trays
  orders            each contributing line with its delivery date and lead

Summary totals are sums over the groups.  Read-only; nothing is written.
"""

import csv
import io
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.services.planting_schedule import ScheduleEntry, load_planting_schedule


@dataclass
class PlanOrder:
    order_name: str
    customer_name: str | None
    product_name: str
    trays: int
    delivery_date: date
    days_before_delivery: int


@dataclass
class PlanGroup:
    recipe_id: str
    recipe_name: str
    variety_name: str | None
    seed_grams_per_tray: float | None
    total_trays: int = 0
    orders: list[PlanOrder] = field(default_factory=list)

    @property
    def total_seed_grams(self) -> float:
        return round((self.seed_grams_per_tray or 0) * self.total_trays, 2)


@dataclass
class SeedingPlan:
    sow_date: date
    groups: list[PlanGroup]

    @property
    def variety_count(self) -> int:
        return len(self.groups)

    @property
    def total_trays(self) -> int:
        return sum(g.total_trays for g in self.groups)

    @property
    def total_seed_grams(self) -> float:
        return round(sum(g.total_seed_grams for g in self.groups), 2)


def build_seeding_plan(entries: Iterable[ScheduleEntry], sow_date: date) -> SeedingPlan:
    groups: dict[str, PlanGroup] = {}
    for entry in entries:
        if entry.sow_date != sow_date:
            continue
        group = groups.get(entry.recipe_id)
        if group is None:
            group = groups[entry.recipe_id] = PlanGroup(
                recipe_id=entry.recipe_id,
                recipe_name=entry.recipe_name,
                variety_name=entry.variety_name,
                seed_grams_per_tray=entry.seed_grams_per_tray,
            )
        group.total_trays += entry.trays
        group.orders.append(PlanOrder(
            order_name=entry.order_name,
            customer_name=entry.customer_name,
            product_name=entry.product_name,
            trays=entry.trays,
            delivery_date=entry.delivery_date,
            days_before_delivery=entry.days_before_delivery,
        ))

    for group in groups.values():
        group.orders.sort(key=lambda o: (o.delivery_date, o.order_name))
    ordered = sorted(groups.values(), key=lambda g: (g.recipe_name, g.recipe_id))
    return SeedingPlan(sow_date=sow_date, groups=ordered)


def format_seed_mass(grams: float) -> str:
    if grams >= 1000:
        return f"{grams / 1000:.2f} kg"
    return f"{grams:.1f} g"


def seeding_plan_csv(plan: SeedingPlan) -> str:
    """One row per contributing order line, for spreadsheet export."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([
        "sow_date", "recipe", "variety", "seed_per_tray_g", "recipe_total_trays",
        "recipe_total_seed", "order", "customer", "product", "trays",
        "delivery_date", "days_before_delivery",
    ])
    for group in plan.groups:
        for order in group.orders:
            writer.writerow([
                plan.sow_date.isoformat(),
                group.recipe_name,
                group.variety_name or "",
                "" if group.seed_grams_per_tray is None else f"{group.seed_grams_per_tray:g}",
                group.total_trays,
                format_seed_mass(group.total_seed_grams),
                order.order_name,
                order.customer_name or "",
                order.product_name,
                order.trays,
                order.delivery_date.isoformat(),
                order.days_before_delivery,
            ])
    writer.writerow([])
    writer.writerow([
        "summary", f"{plan.variety_count} varieties", "", "", plan.total_trays,
        format_seed_mass(plan.total_seed_grams),
    ])
    return buffer.getvalue()


async def load_seeding_plan(db: AsyncSession, farm_id: str, sow_date: date) -> SeedingPlan:
    entries = await load_planting_schedule(db, farm_id, sow_date, sow_date)
    return build_seeding_plan(entries, sow_date)
