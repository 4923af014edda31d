"""Pricing routes — pricing unit catalog, line prices, order totals, unit values."""
import logging
from dataclasses import asdict
from typing import List, Literal, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from bomcalc.api.deps import get_pricing_engine
from bomcalc.services.pricing_engine import PricingEngine
from bomcalc.services.unit_converter import (
    PRICING_UNITS,
    ProductDimensions,
    calculate_line_price,
    derive_unit_value,
    format_unit_label,
    get_available_pricing_units,
    get_suggested_pricing_unit,
    uses_fallback_price,
    validate_dimensions_for_unit,
)

router = APIRouter(prefix="/api/pricing", tags=["Pricing"])
logger = logging.getLogger("bomcalc-pricing")

ProductType = Literal["carpet", "raw_material", "bulk_product", "finished_good", "textile", "fiber"]


# ─── Pydantic schemas ────────────────────────────────────────────────────────

class DimensionsPayload(BaseModel):
    width: Optional[float] = None
    length: Optional[float] = None
    weight: Optional[Union[float, str]] = None   # legacy rows send "180 GSM"
    gsm: Optional[float] = None
    product_type: Optional[ProductType] = None

    def to_dimensions(self) -> ProductDimensions:
        return ProductDimensions(
            width=self.width,
            length=self.length,
            weight=self.weight,
            gsm=self.gsm,
            product_type=self.product_type,
        )


class LinePriceRequest(BaseModel):
    unit_price: float
    quantity: float
    pricing_unit: str = "unit"
    dimensions: DimensionsPayload = Field(default_factory=DimensionsPayload)
    length_unit: Optional[str] = None
    width_unit: Optional[str] = None


class OrderItemPayload(BaseModel):
    product_name: str = ""
    unit_price: float
    quantity: float
    pricing_unit: str = "unit"
    product_dimensions: DimensionsPayload = Field(default_factory=DimensionsPayload)
    length_unit: Optional[str] = None
    width_unit: Optional[str] = None
    gst_rate: Optional[float] = None
    gst_included: Optional[bool] = None


class OrderPricingRequest(BaseModel):
    items: List[OrderItemPayload]


class UnitValueRequest(BaseModel):
    dimensions: DimensionsPayload
    unit: str


# ─── Routes ──────────────────────────────────────────────────────────────────

@router.get("/units")
async def list_pricing_units():
    return [asdict(info) for info in PRICING_UNITS]


@router.post("/line-price")
async def line_price(req: LinePriceRequest):
    total = calculate_line_price(
        req.unit_price,
        req.quantity,
        req.pricing_unit,
        req.dimensions.to_dimensions(),
        req.length_unit,
        req.width_unit,
    )
    return {
        "pricing_unit": req.pricing_unit,
        "total_price": total,
        "degraded": uses_fallback_price(req.pricing_unit, req.dimensions.to_dimensions()),
        "unit_label": format_unit_label(req.pricing_unit, req.quantity),
    }


@router.post("/order")
async def price_order(
    req: OrderPricingRequest,
    engine: PricingEngine = Depends(get_pricing_engine),
):
    items = []
    for payload in req.items:
        item = payload.model_dump()
        item["product_dimensions"] = payload.product_dimensions.to_dimensions()
        items.append(item)

    lines = [engine.calculate_item_price(item).to_dict() for item in items]
    logger.debug("Priced %d order lines", len(lines))
    return {
        "items": lines,
        "order_total": engine.calculate_order_total(items),
        "is_valid": all(line["is_valid"] for line in lines),
    }


@router.post("/unit-value")
async def unit_value(req: UnitValueRequest):
    dims = req.dimensions.to_dimensions()
    return {
        "unit": req.unit,
        "unit_value": derive_unit_value(dims, req.unit),
        "is_valid": validate_dimensions_for_unit(dims, req.unit),
        "suggested_unit": get_suggested_pricing_unit(dims),
        "available_units": get_available_pricing_units(dims),
    }
