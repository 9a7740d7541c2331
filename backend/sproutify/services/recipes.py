"""Recipe lookup and maintenance.

A farm sees its own recipes plus every global template.  Recipes of other
farms are invisible and reported as not found.
"""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.middleware.exceptions import ResourceNotFoundError
from sproutify.models.recipe import Recipe, Step
from sproutify.services.durations import ordered_steps


def _visible_to(farm_id: str):
    return or_(Recipe.farm_id == farm_id, Recipe.is_global == True)  # noqa: E712


async def get_visible_recipe(db: AsyncSession, farm_id: str, recipe_id: str) -> Recipe:
    result = await db.execute(
        select(Recipe).where(Recipe.id == recipe_id, _visible_to(farm_id))
    )
    recipe = result.scalar_one_or_none()
    if not recipe:
        raise ResourceNotFoundError("Recipe", recipe_id)
    return recipe


async def load_recipes(db: AsyncSession, farm_id: str, recipe_ids) -> dict[str, Recipe]:
    ids = set(recipe_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(Recipe).where(Recipe.id.in_(ids), _visible_to(farm_id))
    )
    return {r.id: r for r in result.scalars().all()}


async def list_recipes(
    db: AsyncSession,
    farm_id: str,
    include_global: bool = True,
) -> list[Recipe]:
    query = select(Recipe).where(Recipe.is_active == True)  # noqa: E712
    if include_global:
        query = query.where(_visible_to(farm_id))
    else:
        query = query.where(Recipe.farm_id == farm_id)
    result = await db.execute(query.order_by(Recipe.name))
    return list(result.scalars().all())


async def create_recipe(db: AsyncSession, farm_id: str, data: dict, steps: list[dict]) -> Recipe:
    """Create a farm-owned recipe with its ordered steps."""
    recipe = Recipe(
        farm_id=farm_id,
        is_global=False,
        steps=[Step(**s) for s in steps],
        **data,
    )
    # Rejects duplicate sequence positions before the unique constraint does
    ordered_steps(recipe.steps)
    db.add(recipe)
    await db.flush()
    return recipe
