"""ORM Models for the bomcalc catalogs — SQLAlchemy 2.0"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    String, Text, Boolean, Integer, Numeric, DateTime, ForeignKey, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from bomcalc.db import Base


def gen_uuid():
    return str(uuid.uuid4())


# ── PRODUCTS ──────────────────────────────────────────────────────────────────
class Product(Base):
    __tablename__ = "products"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_type: Mapped[Optional[str]] = mapped_column(String(50))  # carpet | finished_good | ...
    # Dimensions are stored as entered ("2.5", "12 ft"); parsed at the catalog boundary
    length: Mapped[Optional[str]] = mapped_column(String(50))
    width: Mapped[Optional[str]] = mapped_column(String(50))
    length_unit: Mapped[Optional[str]] = mapped_column(String(20))
    width_unit: Mapped[Optional[str]] = mapped_column(String(20))
    weight: Mapped[Optional[str]] = mapped_column(String(50))    # legacy rows hold "180 GSM"
    gsm: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4))
    unit: Mapped[Optional[str]] = mapped_column(String(50), default="piece")
    current_stock: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 4), default=0)
    individual_stock_tracking: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    individual_products: Mapped[list["IndividualProduct"]] = relationship(
        "IndividualProduct", back_populates="product", cascade="all, delete-orphan"
    )
    recipes: Mapped[list["Recipe"]] = relationship(
        "Recipe", back_populates="product", cascade="all, delete-orphan"
    )


class IndividualProduct(Base):
    """One serialized unit (e.g. a single roll) of an individually tracked product."""
    __tablename__ = "individual_products"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    serial_number: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(30), default="available")  # available | reserved | sold | damaged
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    product: Mapped["Product"] = relationship("Product", back_populates="individual_products")

    __table_args__ = (
        Index("ix_individual_products_product_status", "product_id", "status"),
    )


# ── RAW MATERIALS ─────────────────────────────────────────────────────────────
class RawMaterial(Base):
    __tablename__ = "raw_materials"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(50), default="kg")
    current_stock: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 4), default=0)
    # Stock not reserved by open production batches; preferred over current_stock when set
    available_stock: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 4))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ── RECIPES ───────────────────────────────────────────────────────────────────
class Recipe(Base):
    __tablename__ = "recipes"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    version: Mapped[str] = mapped_column(String(20), default="1")
    base_unit: Mapped[str] = mapped_column(String(20), default="sqm")
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    product: Mapped["Product"] = relationship("Product", back_populates="recipes")
    materials: Mapped[list["RecipeMaterial"]] = relationship(
        "RecipeMaterial",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeMaterial.position",
    )

    __table_args__ = (
        Index("ix_recipes_product_active", "product_id", "is_active"),
    )


class RecipeMaterial(Base):
    __tablename__ = "recipe_materials"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    recipe_id: Mapped[str] = mapped_column(String(36), ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)
    # Either a raw_materials.id or a products.id, so no foreign key
    material_id: Mapped[str] = mapped_column(String(36), nullable=False)
    material_name: Mapped[str] = mapped_column(String(255), nullable=False)
    material_type: Mapped[str] = mapped_column(String(20), default="raw_material")  # raw_material | product
    quantity_per_sqm: Mapped[Decimal] = mapped_column(Numeric(14, 6), default=0)  # 0 = not configured
    unit: Mapped[str] = mapped_column(String(50), default="kg")
    recipe: Mapped["Recipe"] = relationship("Recipe", back_populates="materials")
