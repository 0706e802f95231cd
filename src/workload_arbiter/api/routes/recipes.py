"""
Recipe catalog and manual override.

  GET  /api/v1/recipes                -- List the catalog in registration order
                                         (?category=Gaming narrows it to one category)
  POST /api/v1/recipes/match          -- Which recipes match a process list
  POST /api/v1/recipes/{name}/apply   -- Apply a recipe now (manual override)
  POST /api/v1/recipes/{name}/revert  -- Revert everything pending under a name

Security:
  - Process names are validated before matching
  - apply/revert require the API key and are rate limited
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ...errors import ErrorKind
from ...security import ValidationError, validate_list_size, validate_process_name
from ..middleware.auth import verify_api_key
from ..middleware.rate_limit import check_rate_limit
from ..models.requests import MatchRequest
from ..models.responses import (
    ConfigurationResultResponse,
    MatchResponse,
    RecipeInfo,
    RecipeListResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_PROCESSES = 2000


@router.get("/recipes", response_model=RecipeListResponse)
async def list_recipes(
    request: Request,
    category: str | None = Query(None, max_length=64, description="Only this category"),
) -> RecipeListResponse:
    catalog = request.app.state.engine.catalog
    selected = catalog.by_category(category) if category else list(catalog)
    recipes = [RecipeInfo(**r.to_dict()) for r in selected]
    return RecipeListResponse(recipes=recipes, total=len(recipes))


@router.post("/recipes/match", response_model=MatchResponse)
async def match_recipes(body: MatchRequest, request: Request) -> MatchResponse:
    try:
        validate_list_size(body.processes, "processes", max_items=MAX_PROCESSES)
        for name in body.processes:
            validate_process_name(name)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    catalog = request.app.state.engine.catalog
    matches = catalog.match(body.processes)
    best = catalog.select_best(matches)
    return MatchResponse(matches=[r.name for r in matches], best=best.name if best else None)


@router.post("/recipes/{name}/apply", response_model=ConfigurationResultResponse)
async def apply_recipe(
    name: str,
    request: Request,
    _auth=Depends(verify_api_key),
    _rate: None = Depends(check_rate_limit),
) -> ConfigurationResultResponse:
    result = await request.app.state.engine.apply_recipe_by_name(name)
    if result.error_kind is ErrorKind.NO_MATCHING_RECIPE:
        raise HTTPException(status_code=404, detail=result.message)
    logger.info(f"[RecipesAPI] Manual apply of '{name}': {result.message}")
    return ConfigurationResultResponse(**result.to_dict())


@router.post("/recipes/{name}/revert", response_model=ConfigurationResultResponse)
async def revert_recipe(
    name: str,
    request: Request,
    _auth=Depends(verify_api_key),
    _rate: None = Depends(check_rate_limit),
) -> ConfigurationResultResponse:
    result = await request.app.state.engine.revert(name)
    logger.info(f"[RecipesAPI] Revert of '{name}': {result.message}")
    return ConfigurationResultResponse(**result.to_dict())
