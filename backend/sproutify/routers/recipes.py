"""Recipe router: farm recipes and global templates.

Endpoints:
    GET    /api/recipes/                   Farm recipes plus global templates
    GET    /api/recipes/{recipe_id}        Single recipe with steps and total days
    POST   /api/recipes/                   Create a farm recipe
    POST   /api/recipes/copy               Copy a global template into the farm
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.database import get_db
from sproutify.farm_context import current_actor, current_farm_id
from sproutify.middleware.exceptions import ResourceNotFoundError
from sproutify.models.variety import Variety
from sproutify.schemas.recipe import RecipeCopyRequest, RecipeCreate, RecipeOut
from sproutify.services.recipes import create_recipe, get_visible_recipe, list_recipes
from sproutify.services.seeding import ensure_farm_recipe
from sproutify.utils.activity import log_activity

router = APIRouter()


@router.get("/", response_model=list[RecipeOut])
async def get_recipes(
    include_global: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    recipes = await list_recipes(db, farm_id, include_global=include_global)
    return [RecipeOut.model_validate(r) for r in recipes]


@router.get("/{recipe_id}", response_model=RecipeOut)
async def get_recipe(
    recipe_id: str,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
):
    recipe = await get_visible_recipe(db, farm_id, recipe_id)
    return RecipeOut.model_validate(recipe)


@router.post("/", response_model=RecipeOut, status_code=status.HTTP_201_CREATED)
async def post_recipe(
    body: RecipeCreate,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    """Create a farm recipe.  A linked variety supplies the variety name."""
    data = body.model_dump(exclude={"steps"})
    if body.variety_id:
        variety = await db.get(Variety, body.variety_id)
        if not variety or variety.farm_id not in (None, farm_id):
            raise ResourceNotFoundError("Variety", body.variety_id)
        data["variety_name"] = data["variety_name"] or variety.name
        data["variety"] = variety

    recipe = await create_recipe(
        db, farm_id, data, [s.model_dump() for s in body.steps]
    )
    await log_activity(
        db, farm_id, actor,
        action="created",
        entity_type="recipe",
        entity_id=recipe.id,
        entity_code=recipe.name,
        summary=f"Created recipe '{recipe.name}' with {len(body.steps)} step(s)",
    )
    return RecipeOut.model_validate(recipe)


@router.post("/copy", response_model=RecipeOut, status_code=status.HTTP_201_CREATED)
async def copy_recipe(
    body: RecipeCopyRequest,
    db: AsyncSession = Depends(get_db),
    farm_id: str = Depends(current_farm_id),
    actor: str | None = Depends(current_actor),
):
    """Copy a global template into the farm; returns the existing copy if any."""
    recipe = await get_visible_recipe(db, farm_id, body.recipe_id)
    farm_recipe = await ensure_farm_recipe(db, farm_id, recipe, actor)
    return RecipeOut.model_validate(farm_recipe)
