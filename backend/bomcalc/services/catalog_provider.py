"""
Catalog providers — the read-only collaborators the recipe resolver consumes.

A provider answers three lookups (product by id, raw material by id, active
recipe by product id) and hands back typed boundary records, or None when
nothing matches. Providers never mutate the catalogs they read.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bomcalc.models.catalog_schema import (
    IndividualProductStats,
    MaterialRecord,
    ProductRecord,
    RecipeRecord,
)
from bomcalc.models.orm_models import IndividualProduct, Product, RawMaterial, Recipe

logger = logging.getLogger("bomcalc-catalog")


class CatalogProvider(Protocol):

    async def get_product_by_id(self, product_id: str) -> Optional[ProductRecord]:
        ...

    async def get_material_by_id(self, material_id: str) -> Optional[MaterialRecord]:
        ...

    async def get_recipe_by_product_id(self, product_id: str) -> Optional[RecipeRecord]:
        ...


ProductInput = Union[ProductRecord, Dict[str, Any]]
MaterialInput = Union[MaterialRecord, Dict[str, Any]]
RecipeInput = Union[RecipeRecord, Dict[str, Any]]


class InMemoryCatalog:
    """
    Catalog snapshot held in memory.

    Accepts records or plain dicts. Several recipes may be registered for one
    product; the last active one wins, mirroring "newest active version".
    """

    def __init__(
        self,
        products: Optional[Iterable[ProductInput]] = None,
        materials: Optional[Iterable[MaterialInput]] = None,
        recipes: Optional[Iterable[RecipeInput]] = None,
    ) -> None:
        self._products: Dict[str, ProductRecord] = {}
        self._materials: Dict[str, MaterialRecord] = {}
        self._recipes: Dict[str, List[RecipeRecord]] = {}
        for product in products or []:
            self.add_product(product)
        for material in materials or []:
            self.add_material(material)
        for recipe in recipes or []:
            self.add_recipe(recipe)

    def add_product(self, product: ProductInput) -> ProductRecord:
        record = ProductRecord.model_validate(product)
        self._products[record.id] = record
        return record

    def add_material(self, material: MaterialInput) -> MaterialRecord:
        record = MaterialRecord.model_validate(material)
        self._materials[record.id] = record
        return record

    def add_recipe(self, recipe: RecipeInput) -> RecipeRecord:
        record = RecipeRecord.model_validate(recipe)
        self._recipes.setdefault(record.product_id, []).append(record)
        return record

    async def get_product_by_id(self, product_id: str) -> Optional[ProductRecord]:
        return self._products.get(product_id)

    async def get_material_by_id(self, material_id: str) -> Optional[MaterialRecord]:
        return self._materials.get(material_id)

    async def get_recipe_by_product_id(self, product_id: str) -> Optional[RecipeRecord]:
        active = [r for r in self._recipes.get(product_id, []) if r.is_active]
        return active[-1] if active else None


class SqlCatalog:
    """Catalog backed by the ORM tables, read through one AsyncSession."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_product_by_id(self, product_id: str) -> Optional[ProductRecord]:
        product = await self.db.get(Product, product_id)
        if product is None:
            return None

        stats = None
        if product.individual_stock_tracking:
            stats = await self._individual_stats(product.id)

        return ProductRecord.model_validate({
            "id": product.id,
            "name": product.name,
            "length": product.length,
            "width": product.width,
            "length_unit": product.length_unit,
            "width_unit": product.width_unit,
            "weight": product.weight,
            "gsm": product.gsm,
            "product_type": product.product_type,
            "unit": product.unit,
            "current_stock": product.current_stock,
            "individual_stock_tracking": product.individual_stock_tracking,
            "individual_product_stats": stats,
        })

    async def get_material_by_id(self, material_id: str) -> Optional[MaterialRecord]:
        material = await self.db.get(RawMaterial, material_id)
        if material is None:
            return None
        return MaterialRecord.model_validate(material)

    async def get_recipe_by_product_id(self, product_id: str) -> Optional[RecipeRecord]:
        result = await self.db.execute(
            select(Recipe)
            .where(Recipe.product_id == product_id, Recipe.is_active.is_(True))
            .order_by(Recipe.updated_at.desc(), Recipe.created_at.desc())
            .options(selectinload(Recipe.materials))
            .limit(1)
        )
        recipe = result.scalars().first()
        if recipe is None:
            return None
        return RecipeRecord.model_validate(recipe)

    async def _individual_stats(self, product_id: str) -> IndividualProductStats:
        result = await self.db.execute(
            select(IndividualProduct.status, func.count(IndividualProduct.id))
            .where(IndividualProduct.product_id == product_id)
            .group_by(IndividualProduct.status)
        )
        counts = {status: count for status, count in result.all()}
        logger.debug("Individual stock for %s: %s", product_id, counts)
        return IndividualProductStats(
            total=sum(counts.values()),
            available=counts.get("available", 0),
        )
