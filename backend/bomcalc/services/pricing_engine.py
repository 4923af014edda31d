"""
PricingEngine — order-line pricing with GST split.

Wraps ``calculate_line_price`` with the per-item basis shown next to each
order line (sqm / sqft / grams / kg per item) and splits the line total into
subtotal and GST, for GST-inclusive and GST-exclusive prices.

All monetary values are in INR.
"""

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from bomcalc.services.perf_monitor import timed
from bomcalc.services.unit_converter import (
    ProductDimensions,
    calculate_line_price,
    resolve_gsm,
    parse_numeric,
    to_feet,
    to_meters,
)

logger = logging.getLogger("bomcalc-pricing")

_DEFAULT_GST_RATE: float = float(os.getenv("DEFAULT_GST_RATE", "18"))
_MISSING_PRICE_MSG = "Please enter a price"


@dataclass
class PricingCalculation:
    unit_price: float
    quantity: float
    unit_value: float
    total_value: float
    subtotal: float         # before GST
    gst_amount: float
    total_price: float      # including GST
    pricing_unit: str
    is_valid: bool
    error_message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _gst_split(base_price: float, gst_rate: float, gst_included: bool):
    """Return (subtotal, gst_amount, total_price) for a line base price."""
    if gst_included:
        gst_amount = (base_price * gst_rate) / (100 + gst_rate)
        return base_price - gst_amount, gst_amount, base_price
    gst_amount = (base_price * gst_rate) / 100
    return base_price, gst_amount, base_price + gst_amount


class PricingEngine:

    def __init__(self, default_gst_rate: Optional[float] = None) -> None:
        self.default_gst_rate: float = (
            float(default_gst_rate) if default_gst_rate is not None else _DEFAULT_GST_RATE
        )

    def calculate_item_price(self, item: Dict[str, Any]) -> PricingCalculation:
        """
        Price one order line.

        Args:
            item: dict with keys unit_price, quantity, pricing_unit,
                  product_dimensions (dict or ProductDimensions), and optional
                  length_unit, width_unit, gst_rate, gst_included

        Returns:
            PricingCalculation
        """
        unit_price = float(item.get("unit_price") or 0)
        quantity = float(item.get("quantity") or 0)
        pricing_unit = item.get("pricing_unit") or "unit"
        gst_rate = item.get("gst_rate")
        gst_rate = self.default_gst_rate if gst_rate is None else float(gst_rate)
        gst_included = item.get("gst_included")
        gst_included = True if gst_included is None else bool(gst_included)

        dims = item.get("product_dimensions")
        if not isinstance(dims, ProductDimensions):
            dims = ProductDimensions.from_dict(dims)

        if pricing_unit == "unit":
            base_price = unit_price * quantity
            subtotal, gst_amount, total_price = _gst_split(base_price, gst_rate, gst_included)
            return PricingCalculation(
                unit_price=unit_price,
                quantity=quantity,
                unit_value=unit_price,
                total_value=unit_price * quantity,
                subtotal=subtotal,
                gst_amount=gst_amount,
                total_price=total_price,
                pricing_unit="unit",
                is_valid=unit_price > 0 and quantity > 0,
                error_message=_MISSING_PRICE_MSG if unit_price <= 0 else "",
            )

        if unit_price <= 0:
            return PricingCalculation(
                unit_price=unit_price,
                quantity=quantity,
                unit_value=unit_price,
                total_value=unit_price * quantity,
                subtotal=0.0,
                gst_amount=0.0,
                total_price=unit_price * quantity,
                pricing_unit=pricing_unit,
                is_valid=False,
                error_message=_MISSING_PRICE_MSG,
            )

        length_unit = item.get("length_unit")
        width_unit = item.get("width_unit")
        unit_value = self._unit_value(dims, pricing_unit, length_unit, width_unit)

        base_price = calculate_line_price(
            unit_price, quantity, pricing_unit, dims, length_unit, width_unit
        )
        subtotal, gst_amount, total_price = _gst_split(base_price, gst_rate, gst_included)

        return PricingCalculation(
            unit_price=unit_price,
            quantity=quantity,
            unit_value=unit_value,
            total_value=unit_value * quantity,
            subtotal=subtotal,
            gst_amount=gst_amount,
            total_price=total_price,
            pricing_unit=pricing_unit,
            is_valid=quantity > 0,
        )

    @timed
    def calculate_order_total(self, items: List[Dict[str, Any]]) -> float:
        """Sum of GST-inclusive totals over every order line."""
        total = 0.0
        for item in items:
            total += self.calculate_item_price(item).total_price or 0.0
        return total

    def validate_item(self, item: Dict[str, Any]) -> bool:
        return self.calculate_item_price(item).is_valid

    def _unit_value(
        self,
        dims: ProductDimensions,
        pricing_unit: str,
        length_unit: Optional[str],
        width_unit: Optional[str],
    ) -> float:
        """Per-item basis the line is priced on, shown beside the line total."""
        length = parse_numeric(dims.length) or 0.0
        width = parse_numeric(dims.width) or 0.0
        has_area = bool(length and width)

        if pricing_unit == "sqm":
            if not has_area:
                return 0.0
            return to_meters(length, length_unit or "m") * to_meters(width, width_unit or "m")

        if pricing_unit == "sqft":
            if not has_area:
                return 0.0
            return to_feet(length, length_unit or "m") * to_feet(width, width_unit or "m")

        if pricing_unit in ("gsm", "kg"):
            gsm = resolve_gsm(dims)
            sqm_per_item = (
                to_meters(length, length_unit or "m") * to_meters(width, width_unit or "m")
                if has_area else 0.0
            )
            if pricing_unit == "gsm":
                return gsm * sqm_per_item if has_area else gsm
            if has_area and gsm > 0:
                return (gsm * sqm_per_item) / 1000
            return parse_numeric(dims.weight) or 0.0

        logger.debug("No per-item basis for pricing unit %r", pricing_unit)
        return 0.0
