"""Batch matcher: finds seed batches able to cover a recipe's seed need.

Two explicit steps, never collapsed into one:

  1. match_batches()         → every batch of the recipe's variety holding
                               at least the required grams
  2. validate_batch_choice() → the caller (an operator) picks one of them

``earliest_purchase_first`` is available as a named strategy for callers
that want an automatic pick; the matcher itself never chooses.

Seed requirements are normalised to grams (1 oz = 28.35 g).  A recipe
with no variety, or whose variety has no per-tray seed quantity, is a
configuration error, distinct from an inventory shortfall.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.middleware.exceptions import (
    BusinessLogicError,
    InsufficientInventoryError,
    RecipeConfigurationError,
    ResourceNotFoundError,
)
from sproutify.models.recipe import Recipe
from sproutify.models.seed_batch import SeedBatch
from sproutify.services.recipes import get_visible_recipe

GRAMS_PER_OUNCE = 28.35
GRAMS_PER_POUND = 453.59

_GRAMS_PER_UNIT = {
    "g": 1.0,
    "gram": 1.0,
    "grams": 1.0,
    "kg": 1000.0,
    "kilogram": 1000.0,
    "kilograms": 1000.0,
    "oz": GRAMS_PER_OUNCE,
    "ounce": GRAMS_PER_OUNCE,
    "ounces": GRAMS_PER_OUNCE,
    "lb": GRAMS_PER_POUND,
    "lbs": GRAMS_PER_POUND,
    "pound": GRAMS_PER_POUND,
    "pounds": GRAMS_PER_POUND,
}


def to_grams(quantity: float, unit: str | None) -> float:
    factor = _GRAMS_PER_UNIT.get((unit or "grams").strip().lower())
    if factor is None:
        raise ValueError(f"Unknown seed quantity unit: {unit!r}")
    return float(quantity) * factor


@dataclass(frozen=True)
class SeedQuantity:
    """A seed mass tagged with its unit, normalised to grams on write."""
    amount: float
    unit: str = "grams"

    @property
    def grams(self) -> float:
        return round(to_grams(self.amount, self.unit), 3)


@dataclass
class BatchMatch:
    recipe_id: str
    variety_id: str
    variety_name: str | None
    per_tray_grams: float
    trays: int
    required_grams: float
    candidates: list = field(default_factory=list)


# ── Pure rules ──────────────────────────────────────────────

def seed_requirement_grams(recipe: Any, variety: Any = None) -> float:
    """Grams of seed needed for one tray of ``recipe``.

    The recipe's own seed quantity overrides its variety's.
    """
    variety = variety if variety is not None else getattr(recipe, "variety", None)
    if recipe.variety_id is None and variety is None:
        raise RecipeConfigurationError(
            f"Recipe '{recipe.name}' has no variety linked", recipe_id=recipe.id
        )

    if recipe.seed_quantity:
        amount, unit = recipe.seed_quantity, recipe.seed_quantity_unit
    elif variety is not None and variety.seed_quantity:
        amount, unit = variety.seed_quantity, variety.seed_quantity_unit
    else:
        name = variety.name if variety is not None else recipe.variety_name
        raise RecipeConfigurationError(
            f"Variety '{name}' has no seed quantity per tray", recipe_id=recipe.id
        )

    try:
        return round(to_grams(amount, unit), 3)
    except ValueError as exc:
        raise RecipeConfigurationError(str(exc), recipe_id=recipe.id) from exc


def filter_sufficient(
    batches: Iterable[Any],
    required_grams: float,
    variety_name: str | None = None,
) -> list:
    """Batches holding at least ``required_grams``.

    Raises InsufficientInventoryError naming the largest batch's quantity
    (0 when there is no batch at all) when none qualifies.
    """
    batches = list(batches)
    candidates = [b for b in batches if (b.quantity_grams or 0) >= required_grams]
    if not candidates:
        best = max((b.quantity_grams or 0 for b in batches), default=0.0)
        raise InsufficientInventoryError(required_grams, float(best), variety_name)
    return candidates


def earliest_purchase_first(candidates: Iterable[Any]) -> Any | None:
    """Named strategy: the qualifying batch bought first."""
    return min(
        candidates,
        key=lambda b: (b.purchase_date or date.max, b.id),
        default=None,
    )


# ── Queries ─────────────────────────────────────────────────

async def _variety_batches(db: AsyncSession, farm_id: str, variety_id: str) -> list[SeedBatch]:
    result = await db.execute(
        select(SeedBatch)
        .where(
            SeedBatch.farm_id == farm_id,
            SeedBatch.variety_id == variety_id,
            SeedBatch.is_active == True,  # noqa: E712
        )
        .order_by(SeedBatch.purchase_date, SeedBatch.id)
    )
    return list(result.scalars().all())


async def match_batches(
    db: AsyncSession,
    farm_id: str,
    recipe_id: str,
    trays: int = 1,
) -> BatchMatch:
    """Every batch able to seed ``trays`` trays of the recipe."""
    recipe = await get_visible_recipe(db, farm_id, recipe_id)
    return await match_batches_for_recipe(db, farm_id, recipe, trays)


async def match_batches_for_recipe(
    db: AsyncSession,
    farm_id: str,
    recipe: Recipe,
    trays: int = 1,
) -> BatchMatch:
    per_tray = seed_requirement_grams(recipe)
    required = round(per_tray * trays, 3)
    batches = await _variety_batches(db, farm_id, recipe.variety_id)
    candidates = filter_sufficient(batches, required, recipe.variety_name)
    return BatchMatch(
        recipe_id=recipe.id,
        variety_id=recipe.variety_id,
        variety_name=recipe.variety_name,
        per_tray_grams=per_tray,
        trays=trays,
        required_grams=required,
        candidates=candidates,
    )


async def validate_batch_choice(
    db: AsyncSession,
    farm_id: str,
    recipe: Recipe,
    batch_id: str,
    trays: int = 1,
) -> SeedBatch:
    """Check the operator's chosen batch against the recipe and return it.

    Quantities are a snapshot; the fulfillment boundary re-checks them
    when it actually allocates.
    """
    batch = await db.get(SeedBatch, batch_id)
    if not batch or batch.farm_id != farm_id:
        raise ResourceNotFoundError("Seed batch", batch_id)
    if not batch.is_active:
        raise BusinessLogicError(f"Seed batch {batch_id} is no longer active")
    if recipe.variety_id and batch.variety_id != recipe.variety_id:
        raise BusinessLogicError(
            f"Seed batch {batch_id} is not for variety '{recipe.variety_name}'"
        )

    per_tray = seed_requirement_grams(recipe)
    filter_sufficient([batch], round(per_tray * trays, 3), recipe.variety_name)
    return batch
