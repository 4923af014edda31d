"""
Typed boundary records for the product, raw-material and recipe catalogs.

Catalog rows arrive loosely typed (dimensions as free text, stock fields
null or missing). These models coerce them once, at the point the resolver
consumes them, and expose the stock precedence rules as properties.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from bomcalc.services.unit_converter import ProductDimensions, calculate_sqm, parse_numeric


def _as_id(value: Any) -> str:
    return "" if value is None else str(value)


class IndividualProductStats(BaseModel):
    """Counts of serialized (individually tracked) units of a product."""
    total: int = 0
    available: int = 0

    model_config = {"extra": "ignore", "from_attributes": True}


class ProductRecord(BaseModel):
    id: str
    name: str = ""
    length: Optional[float] = None
    width: Optional[float] = None
    length_unit: Optional[str] = None
    width_unit: Optional[str] = None
    weight: Optional[float] = None
    gsm: Optional[float] = None
    product_type: Optional[str] = None
    unit: Optional[str] = None
    current_stock: Optional[float] = None
    individual_stock_tracking: bool = False
    individual_product_stats: Optional[IndividualProductStats] = None

    model_config = {"extra": "ignore", "from_attributes": True}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return _as_id(value)

    @field_validator("length", "width", "weight", "gsm", "current_stock", mode="before")
    @classmethod
    def _coerce_numbers(cls, value: Any) -> Optional[float]:
        return parse_numeric(value)

    @field_validator("individual_stock_tracking", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return bool(value)

    @property
    def area_per_unit(self) -> float:
        """Square meters per unit, from length and width in their own units; 0 when either is missing."""
        return calculate_sqm(self.length, self.width, self.length_unit or "m", self.width_unit or "m")

    @property
    def effective_stock(self) -> float:
        """
        Stock figure shown for this product.

        Serialized units are counted live, so when the product uses
        individual tracking and stats exist, their ``available`` count wins
        over the cached ``current_stock``.
        """
        if self.individual_stock_tracking and self.individual_product_stats is not None:
            return float(self.individual_product_stats.available)
        return self.current_stock or 0.0

    def to_dimensions(self) -> ProductDimensions:
        return ProductDimensions(
            width=self.width,
            length=self.length,
            weight=self.weight,
            gsm=self.gsm,
            product_type=self.product_type,
        )


class MaterialRecord(BaseModel):
    id: str
    name: str = ""
    unit: str = ""
    current_stock: Optional[float] = None
    available_stock: Optional[float] = None

    model_config = {"extra": "ignore", "from_attributes": True}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return _as_id(value)

    @field_validator("current_stock", "available_stock", mode="before")
    @classmethod
    def _coerce_numbers(cls, value: Any) -> Optional[float]:
        return parse_numeric(value)

    @field_validator("unit", mode="before")
    @classmethod
    def _coerce_unit(cls, value: Any) -> str:
        return value or ""

    @property
    def effective_stock(self) -> float:
        """available_stock first, then current_stock, else 0."""
        if self.available_stock is not None:
            return self.available_stock
        if self.current_stock is not None:
            return self.current_stock
        return 0.0


class RecipeLineRecord(BaseModel):
    material_id: str
    material_name: str = ""
    material_type: str = "raw_material"      # raw_material | product
    quantity_per_sqm: float = Field(0.0, ge=0)
    unit: str = ""

    model_config = {"extra": "ignore", "from_attributes": True}

    @field_validator("material_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return _as_id(value)

    @field_validator("quantity_per_sqm", mode="before")
    @classmethod
    def _coerce_rate(cls, value: Any) -> float:
        parsed = parse_numeric(value)
        return 0.0 if parsed is None else parsed

    @field_validator("unit", "material_name", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return value or ""

    @property
    def is_configured(self) -> bool:
        """A zero rate means the line was never filled in."""
        return self.quantity_per_sqm > 0


class RecipeRecord(BaseModel):
    id: Optional[str] = None
    product_id: str
    version: str = "1"
    is_active: bool = True
    materials: List[RecipeLineRecord] = Field(default_factory=list)

    model_config = {"extra": "ignore", "from_attributes": True}

    @field_validator("id", "product_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return None if value is None else str(value)

    @field_validator("materials", mode="before")
    @classmethod
    def _coerce_materials(cls, value: Any) -> Any:
        return value or []

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> str:
        return "1" if value is None else str(value)
