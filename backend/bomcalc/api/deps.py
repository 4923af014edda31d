"""FastAPI dependency injection — catalog providers and engines."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bomcalc.db import get_db
from bomcalc.services.catalog_provider import CatalogProvider, SqlCatalog
from bomcalc.services.pricing_engine import PricingEngine

_PRICING_ENGINE = PricingEngine()


async def get_catalog(db: AsyncSession = Depends(get_db)) -> CatalogProvider:
    """Catalog bound to the request's DB session. Overridden in tests."""
    return SqlCatalog(db)


def get_pricing_engine() -> PricingEngine:
    return _PRICING_ENGINE
