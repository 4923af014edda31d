"""
conftest.py — Shared pytest fixtures for the bomcalc backend test suite.

Most tests are pure unit tests over the conversion / pricing functions and
the recipe resolver running against an in-memory catalog. The SQL catalog
tests build their own in-memory SQLite database.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``bomcalc.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any bomcalc imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Pricing fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def pricing_engine():
    """PricingEngine with an explicit 18% default GST rate."""
    from bomcalc.services.pricing_engine import PricingEngine
    return PricingEngine(default_gst_rate=18.0)


@pytest.fixture
def carpet_dimensions():
    """
    A 2 m x 1.5 m carpet at 200 gsm.
    Area per item = 3.0 sqm, weight per item = 200 x 3 / 1000 = 0.6 kg.
    """
    from bomcalc.services.unit_converter import ProductDimensions
    return ProductDimensions(length=2.0, width=1.5, gsm=200.0, product_type="carpet")


# ---------------------------------------------------------------------------
# Recipe catalog fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def catalog_rows():
    """
    Raw rows for a small carpet workshop.

    Raw materials:
      rm-yarn     Wool Yarn      available 50 (current 80)
      rm-latex    Latex Binder   current 5 (no available figure)
      rm-backing  Jute Backing   available 100

    Products (area per unit):
      p-rug   Hand-Tufted Rug   2 x 1.5  = 3 sqm
      p-base  Base Fabric       2 x 0.5  = 1 sqm, individually tracked, 7 available
      p-mat   Floor Mat         1 x 1    = 1 sqm

    Recipes (per sqm of parent):
      p-rug:  yarn 2.0, latex 0.5, p-base 1.0
      p-base: backing 1.0, yarn 0.25
      p-mat:  yarn 1.0, latex 0.2
    """
    materials = [
        {"id": "rm-yarn", "name": "Wool Yarn", "unit": "kg",
         "current_stock": 80, "available_stock": 50},
        {"id": "rm-latex", "name": "Latex Binder", "unit": "L",
         "current_stock": 5},
        {"id": "rm-backing", "name": "Jute Backing", "unit": "sqm",
         "current_stock": 120, "available_stock": 100},
    ]
    products = [
        {"id": "p-rug", "name": "Hand-Tufted Rug", "length": "2", "width": "1.5",
         "length_unit": "m", "width_unit": "m", "unit": "piece", "current_stock": 4},
        {"id": "p-base", "name": "Base Fabric", "length": 2, "width": 0.5,
         "unit": "roll", "current_stock": 10, "individual_stock_tracking": True,
         "individual_product_stats": {"total": 9, "available": 7}},
        {"id": "p-mat", "name": "Floor Mat", "length": 1, "width": 1,
         "unit": "piece", "current_stock": 0},
    ]
    recipes = [
        {"product_id": "p-rug", "materials": [
            {"material_id": "rm-yarn", "material_name": "Wool Yarn",
             "material_type": "raw_material", "quantity_per_sqm": 2.0, "unit": "kg"},
            {"material_id": "rm-latex", "material_name": "Latex Binder",
             "material_type": "raw_material", "quantity_per_sqm": 0.5, "unit": "L"},
            {"material_id": "p-base", "material_name": "Base Fabric",
             "material_type": "product", "quantity_per_sqm": 1.0, "unit": "sqm"},
        ]},
        {"product_id": "p-base", "materials": [
            {"material_id": "rm-backing", "material_name": "Jute Backing",
             "material_type": "raw_material", "quantity_per_sqm": 1.0, "unit": "sqm"},
            {"material_id": "rm-yarn", "material_name": "Wool Yarn",
             "material_type": "raw_material", "quantity_per_sqm": 0.25, "unit": "kg"},
        ]},
        {"product_id": "p-mat", "materials": [
            {"material_id": "rm-yarn", "material_name": "Wool Yarn",
             "material_type": "raw_material", "quantity_per_sqm": 1.0, "unit": "kg"},
            {"material_id": "rm-latex", "material_name": "Latex Binder",
             "material_type": "raw_material", "quantity_per_sqm": 0.2, "unit": "L"},
        ]},
    ]
    return {"products": products, "materials": materials, "recipes": recipes}


@pytest.fixture
def workshop_catalog(catalog_rows):
    """InMemoryCatalog built from ``catalog_rows``."""
    from bomcalc.services.catalog_provider import InMemoryCatalog
    return InMemoryCatalog(**catalog_rows)


@pytest.fixture(autouse=True)
def reset_tracker():
    """Metrics are process-wide; start every test from zero."""
    from bomcalc.services.perf_monitor import tracker
    tracker.reset()
    yield
    tracker.reset()
