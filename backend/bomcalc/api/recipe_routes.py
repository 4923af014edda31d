"""Recipe routes — material requirement calculation and recipe lookup."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from bomcalc.api.deps import get_catalog
from bomcalc.services.catalog_provider import CatalogProvider
from bomcalc.services.recipe_engine import RecipeResolver, RequirementRequest

router = APIRouter(prefix="/api/recipes", tags=["Recipes"])
logger = logging.getLogger("bomcalc-recipes")


class CalculationItem(BaseModel):
    product_id: str = ""
    product_name: str = ""
    quantity: float = Field(1.0, ge=0)
    unit: str = "piece"


class CalculateRequest(BaseModel):
    items: List[CalculationItem]


@router.post("/calculate")
async def calculate_requirements(
    req: CalculateRequest,
    catalog: CatalogProvider = Depends(get_catalog),
):
    """Expand the requested products into a merged raw-material breakdown."""
    if not req.items:
        raise HTTPException(status_code=400, detail="Please add at least one product to calculate")

    requests = [
        RequirementRequest(
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            unit=item.unit,
        )
        for item in req.items
    ]
    try:
        result = await RecipeResolver(catalog).resolve(requests)
    except Exception as e:
        logger.error(f"Requirement calculation failed: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Failed to calculate recipes. Please try again.")

    return result.to_dict()


@router.get("/product/{product_id}")
async def get_recipe_for_product(
    product_id: str,
    catalog: CatalogProvider = Depends(get_catalog),
):
    """Active recipe of a product, with its unconfigured (zero-rate) lines flagged."""
    recipe = await catalog.get_recipe_by_product_id(product_id)
    if recipe is None:
        raise HTTPException(status_code=404, detail="Recipe not found")

    data = recipe.model_dump()
    data["unconfigured_materials"] = [
        line.material_id for line in recipe.materials if not line.is_configured
    ]
    data["ready_for_planning"] = not data["unconfigured_materials"]
    return data
