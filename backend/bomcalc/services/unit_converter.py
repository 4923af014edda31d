"""
Unit conversion & pricing arithmetic for carpet / textile products.

Covers:
  - Length conversion (mm, cm, in, ft, yd, m) with a permissive meters fallback
  - Area conversion (sqm <-> sqft)
  - Unit value derivation for a pricing basis (area, weight, textile)
  - Line pricing for the five pricing units (unit, sqm, sqft, gsm, kg)
  - Dimension validation and pricing-unit suggestion helpers

Every function here is pure: no I/O, no shared state. Degraded input
(missing dimensions, missing gsm) never raises; each pricing branch falls
back to ``unit_price * quantity``.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union


Number = Union[int, float]

PRODUCT_TYPES: Tuple[str, ...] = (
    "carpet", "raw_material", "bulk_product", "finished_good", "textile", "fiber",
)


# ---------------------------------------------------------------------------
# Conversion tables
# ---------------------------------------------------------------------------

# Factor to multiply by to get meters
_LENGTH_TO_METERS: Dict[str, float] = {
    "mm": 0.001,
    "millimeter": 0.001,
    "millimeters": 0.001,
    "cm": 0.01,
    "centimeter": 0.01,
    "centimeters": 0.01,
    "feet": 0.3048,
    "ft": 0.3048,
    "inches": 0.0254,
    "in": 0.0254,
    "yards": 0.9144,
    "yd": 0.9144,
    "m": 1.0,
    "meter": 1.0,
    "meters": 1.0,
}

# Area factors relative to square meters (1 sqm = 10.764 sqft)
_AREA_FACTORS: Dict[str, float] = {
    "sqm": 1.0,
    "sqft": 10.764,
}

# Weight factors relative to kg (kg is the only weight unit priced today)
_WEIGHT_FACTORS: Dict[str, float] = {
    "kg": 1.0,
}

# Display-only factor used by the SQM summaries (finer than the pricing ratio)
SQM_TO_SQFT_DISPLAY: float = 10.7639

_GRAMS_PER_KG: float = 1000.0


# ---------------------------------------------------------------------------
# Pricing unit catalog
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PricingUnitInfo:
    unit: str
    label: str
    description: str
    category: str               # area | weight | textile | count
    requires_dimensions: bool
    applicable_to: Tuple[str, ...]


PRICING_UNITS: Tuple[PricingUnitInfo, ...] = (
    PricingUnitInfo(
        unit="sqft",
        label="Per Square Foot",
        description="Price per square foot",
        category="area",
        requires_dimensions=True,
        applicable_to=("carpet", "finished_good", "raw_material"),
    ),
    PricingUnitInfo(
        unit="sqm",
        label="Per Square Meter",
        description="Price per square meter",
        category="area",
        requires_dimensions=True,
        applicable_to=("carpet", "finished_good", "raw_material"),
    ),
    PricingUnitInfo(
        unit="kg",
        label="Per Kilogram",
        description="Price per kilogram",
        category="weight",
        requires_dimensions=True,
        applicable_to=("raw_material", "bulk_product", "carpet", "finished_good"),
    ),
    PricingUnitInfo(
        unit="gsm",
        label="Per GSM",
        description="Price per gram per square meter",
        category="textile",
        requires_dimensions=True,
        applicable_to=("carpet", "textile", "fiber", "finished_good"),
    ),
    PricingUnitInfo(
        unit="unit",
        label="Per Unit",
        description="Price per discrete product",
        category="count",
        requires_dimensions=False,
        applicable_to=PRODUCT_TYPES,
    ),
)

_PRICING_UNIT_INDEX: Dict[str, PricingUnitInfo] = {u.unit: u for u in PRICING_UNITS}


def get_pricing_unit_info(unit: Optional[str]) -> Optional[PricingUnitInfo]:
    if not unit:
        return None
    return _PRICING_UNIT_INDEX.get(unit)


# ---------------------------------------------------------------------------
# Product dimensions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProductDimensions:
    """
    Physical description of one product item, used only as calculation input.

    ``weight`` may hold a legacy free-text value such as ``"180 GSM"``; the
    gsm/kg pricing branches parse its numeric part when ``gsm`` is absent.
    """
    width: Optional[float] = None         # meters unless a width unit is supplied
    length: Optional[float] = None        # meters unless a length unit is supplied
    weight: Optional[Union[float, str]] = None   # kg
    gsm: Optional[float] = None           # grams per square meter
    product_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ProductDimensions":
        data = data or {}
        return cls(
            width=data.get("width"),
            length=data.get("length"),
            weight=data.get("weight"),
            gsm=data.get("gsm"),
            product_type=data.get("product_type") or data.get("productType"),
        )


_NUMERIC_STRIP_RE = re.compile(r"[^\d.\-]")
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)")


def parse_numeric(value: Any) -> Optional[float]:
    """
    Lenient number parsing for loosely typed catalog fields.

    Numbers pass through; strings are stripped of everything except digits,
    dots and minus signs, then the longest leading number is taken
    ("180 GSM" -> 180.0, "2.5m" -> 2.5). Returns None when nothing parses.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        # Decimal and other numeric types
        return float(value) if not isinstance(value, str) else _parse_text(value)
    except (TypeError, ValueError):
        return None


def _parse_text(text: str) -> Optional[float]:
    match = _LEADING_NUMBER_RE.match(_NUMERIC_STRIP_RE.sub("", text))
    if not match:
        return None
    return float(match.group(0))


def _amount(value: Any) -> float:
    """Numeric value of a dimension field, 0.0 when missing or unparseable."""
    return parse_numeric(value) or 0.0


def resolve_gsm(dimensions: ProductDimensions) -> float:
    """gsm field first, then the numeric part of a legacy weight value, else 0."""
    return _amount(dimensions.gsm) or _amount(dimensions.weight)


# ---------------------------------------------------------------------------
# Length & area conversion
# ---------------------------------------------------------------------------

def _length_factor(unit: Optional[str]) -> float:
    return _LENGTH_TO_METERS.get((unit or "m").lower(), 1.0)


def to_meters(value: Number, unit: Optional[str]) -> float:
    """Convert a length to meters. Unknown units are taken as meters."""
    return value * _length_factor(unit)


def to_feet(value: Number, unit: Optional[str]) -> float:
    """
    Convert a length to feet.

    Uses the exact factors order pricing has always used (m -> ft is
    3.28084, not 1 / 0.3048). Unknown units are taken as feet already.
    """
    unit_lower = (unit or "m").lower()
    if unit_lower in ("mm", "millimeter", "millimeters"):
        return value / 304.8
    if unit_lower in ("cm", "centimeter", "centimeters"):
        return value / 30.48
    if unit_lower in ("m", "meter", "meters"):
        return value * 3.28084
    if unit_lower in ("inches", "in"):
        return value / 12
    if unit_lower in ("yards", "yd"):
        return value * 3
    return value


def convert_length(value: Number, from_unit: Optional[str], to_unit: Optional[str]) -> float:
    """
    Convert between any two supported length units (case-insensitive).

    Unrecognized unit strings on either side are treated as meters.
    """
    from_factor = _length_factor(from_unit)
    to_factor = _length_factor(to_unit)
    if from_factor == to_factor:
        return float(value)
    return value * from_factor / to_factor


def convert_area(value: Number, from_unit: str, to_unit: str) -> float:
    """Convert between sqm and sqft (1 sqm = 10.764 sqft)."""
    if from_unit == to_unit:
        return value
    value_in_sqm = value
    if from_unit != "sqm":
        value_in_sqm = value / _AREA_FACTORS.get(from_unit, 1.0)
    if to_unit == "sqm":
        return value_in_sqm
    return value_in_sqm * _AREA_FACTORS.get(to_unit, 1.0)


def _convert_weight(value: float, from_unit: str, to_unit: str) -> float:
    if from_unit == to_unit:
        return value
    return value / _WEIGHT_FACTORS.get(from_unit, 1.0) * _WEIGHT_FACTORS.get(to_unit, 1.0)


def calculate_sqm(
    length: Union[Number, str, None],
    width: Union[Number, str, None],
    length_unit: Optional[str],
    width_unit: Optional[str],
) -> float:
    """Area in square meters of a length x width item given in any length units."""
    return to_meters(_amount(length), length_unit) * to_meters(_amount(width), width_unit)


def sqm_to_sqft(sqm: Number) -> float:
    return sqm * SQM_TO_SQFT_DISPLAY


def format_sqm_with_sqft(sqm: Number) -> str:
    return f"{sqm:.4f} sqm ({sqm_to_sqft(sqm):.4f} sqft)"


def calculate_product_ratio(source: Dict[str, Any], target: Dict[str, Any]) -> float:
    """
    Units of ``source`` product needed for 1 sqm of ``target`` product.

    Both products must carry explicit length and width units; when any of
    the four is missing, or the source has no area, the ratio is 0.
    """
    source_length_unit = source.get("length_unit") or source.get("lengthUnit") or ""
    source_width_unit = source.get("width_unit") or source.get("widthUnit") or ""
    target_length_unit = target.get("length_unit") or target.get("lengthUnit") or ""
    target_width_unit = target.get("width_unit") or target.get("widthUnit") or ""
    if not (source_length_unit and source_width_unit and target_length_unit and target_width_unit):
        return 0.0

    source_sqm = calculate_sqm(
        source.get("length"), source.get("width"), source_length_unit, source_width_unit
    )
    if source_sqm <= 0:
        return 0.0
    return 1 / source_sqm


# ---------------------------------------------------------------------------
# Unit value & pricing
# ---------------------------------------------------------------------------

def derive_unit_value(dimensions: ProductDimensions, target_unit: str) -> float:
    """
    Priceable quantity of one item in ``target_unit``.

    area    -> length x width converted to the target area unit
    weight  -> raw weight converted to the target weight unit
    textile -> raw gsm
    other   -> 0
    """
    info = get_pricing_unit_info(target_unit)
    if info is None:
        return 0.0

    if info.category == "area":
        width = _amount(dimensions.width)
        length = _amount(dimensions.length)
        if not width or not length:
            return 0.0
        return convert_area(width * length, "sqm", target_unit)

    if info.category == "weight":
        weight = _amount(dimensions.weight)
        if not weight:
            return 0.0
        return _convert_weight(weight, "kg", target_unit)

    if info.category == "textile":
        if target_unit == "gsm":
            return _amount(dimensions.gsm)
        return 0.0

    return 0.0


def _sqm_per_item(
    dimensions: ProductDimensions,
    length_unit: Optional[str],
    width_unit: Optional[str],
) -> float:
    length_m = to_meters(_amount(dimensions.length), length_unit or "m")
    width_m = to_meters(_amount(dimensions.width), width_unit or "m")
    return length_m * width_m


def _has_area(dimensions: ProductDimensions) -> bool:
    return bool(_amount(dimensions.length) and _amount(dimensions.width))


def calculate_line_price(
    unit_price: Number,
    quantity: Number,
    pricing_unit: Optional[str],
    dimensions: Optional[ProductDimensions] = None,
    length_unit: Optional[str] = None,
    width_unit: Optional[str] = None,
) -> float:
    """
    Total price of ``quantity`` items priced per ``pricing_unit``.

    Every branch degrades to ``unit_price * quantity`` when the inputs it
    needs are missing; pricing never raises on incomplete product data.
    """
    dims = dimensions or ProductDimensions()
    base = unit_price * quantity

    if pricing_unit == "unit":
        return base
    if get_pricing_unit_info(pricing_unit) is None:
        return base

    if pricing_unit == "sqm":
        if not _has_area(dims):
            return base
        return unit_price * _sqm_per_item(dims, length_unit, width_unit) * quantity

    if pricing_unit == "sqft":
        if not _has_area(dims):
            return base
        length_ft = to_feet(_amount(dims.length), length_unit or "m")
        width_ft = to_feet(_amount(dims.width), width_unit or "m")
        return unit_price * (length_ft * width_ft) * quantity

    if pricing_unit == "gsm":
        gsm = resolve_gsm(dims)
        if gsm <= 0:
            return base
        if _has_area(dims):
            grams_per_item = gsm * _sqm_per_item(dims, length_unit, width_unit)
            return unit_price * grams_per_item * quantity
        return unit_price * gsm * quantity

    if pricing_unit == "kg":
        gsm = resolve_gsm(dims)
        if _has_area(dims) and gsm > 0:
            kg_per_item = (gsm * _sqm_per_item(dims, length_unit, width_unit)) / _GRAMS_PER_KG
            return unit_price * (kg_per_item * quantity)
        return base

    return base


def uses_fallback_price(pricing_unit: Optional[str], dimensions: Optional[ProductDimensions] = None) -> bool:
    """True when calculate_line_price would return ``unit_price * quantity`` for a unit that wants dimensions."""
    dims = dimensions or ProductDimensions()
    if pricing_unit == "unit":
        return False
    if get_pricing_unit_info(pricing_unit) is None:
        return True
    if pricing_unit in ("sqm", "sqft"):
        return not _has_area(dims)
    if pricing_unit == "gsm":
        return resolve_gsm(dims) <= 0
    if pricing_unit == "kg":
        return not (_has_area(dims) and resolve_gsm(dims) > 0)
    return True


def validate_dimensions_for_unit(dimensions: ProductDimensions, unit: str) -> bool:
    """
    Whether ``unit`` can be priced without degrading for these dimensions.

    Advisory only: callers use it to warn before a fallback price is shown.
    """
    info = get_pricing_unit_info(unit)
    if info is None:
        return False
    if not info.requires_dimensions:
        return True

    width, length, weight = dimensions.width, dimensions.length, dimensions.weight
    if info.category in ("area", "weight"):
        return bool(_amount(width) and _amount(length) and _amount(weight))
    if info.category == "textile":
        if unit == "gsm":
            return bool(_amount(weight) or _amount(dimensions.gsm))
        return False
    return True


# ---------------------------------------------------------------------------
# Pricing unit helpers
# ---------------------------------------------------------------------------

def format_unit_label(unit: str, quantity: Number = 1) -> str:
    if unit == "unit":
        return "product" if quantity == 1 else "products"

    info = get_pricing_unit_info(unit)
    if info is None:
        return unit

    label = info.label.lower()
    if quantity == 1:
        return label
    if label.endswith("foot"):
        return label[: -len("foot")] + "feet"
    if label.endswith("meter"):
        return label + "s"
    if label.endswith("kilogram"):
        return label + "s"
    return label


def get_suggested_pricing_unit(dimensions: ProductDimensions) -> str:
    if _amount(dimensions.gsm) > 0:
        return "gsm"
    if _has_area(dimensions):
        return "sqm"
    if _amount(dimensions.weight):
        return "kg"
    return "sqm"


def get_available_pricing_units(dimensions: ProductDimensions) -> List[str]:
    """Catalog units applicable to the product type and computable for its dimensions."""
    available = []
    for info in PRICING_UNITS:
        if dimensions.product_type and dimensions.product_type not in info.applicable_to:
            continue
        if info.requires_dimensions and not validate_dimensions_for_unit(dimensions, info.unit):
            continue
        available.append(info.unit)
    return available
