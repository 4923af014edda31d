"""
test_recipe_engine.py — Unit tests for RecipeResolver (recipe -> raw materials).

Tests cover:
  - SQM scaling of recipe lines and nested product expansion
  - Breakdown merging, additivity across top-level requests
  - Stock shortage flags and stock precedence rules
  - Cycle safety and sibling branches sharing a sub-product
  - Zero-dimension nested products
  - Missing recipes, unresolvable lines, unconfigured (zero-rate) lines
  - Per-request isolation when a catalog lookup raises
  - Deterministic ordering, step numbering and step order

All tests run against InMemoryCatalog; no database required.
"""

import asyncio

import pytest

from bomcalc.services.catalog_provider import InMemoryCatalog
from bomcalc.services.perf_monitor import tracker
from bomcalc.services.recipe_engine import (
    SKIP_COLLABORATOR_FAILURE,
    SKIP_CYCLE,
    SKIP_NO_RECIPE,
    SKIP_UNRESOLVED,
    RecipeResolver,
    RequirementRequest,
    resolve_requirements,
)


def _resolve(catalog, requests):
    return asyncio.run(resolve_requirements(requests, catalog))


def _totals(result):
    return {entry.material_id: entry.total_quantity for entry in result.breakdown}


def _line(material_id, rate, material_type="raw_material", name=None, unit="kg"):
    return {
        "material_id": material_id,
        "material_name": name or material_id,
        "material_type": material_type,
        "quantity_per_sqm": rate,
        "unit": unit,
    }


def _single_material_catalog(available_stock):
    """One 1 x 1 m product consuming 1 kg/sqm of one material."""
    return InMemoryCatalog(
        products=[{"id": "p", "name": "Panel", "length": 1, "width": 1}],
        materials=[{"id": "m", "name": "Resin", "unit": "kg", "available_stock": available_stock}],
        recipes=[{"product_id": "p", "materials": [_line("m", 1.0, name="Resin")]}],
    )


class _FailingCatalog(InMemoryCatalog):
    """Raises on recipe lookup for the given product ids."""

    def __init__(self, failing_ids, **rows):
        super().__init__(**rows)
        self.failing_ids = set(failing_ids)

    async def get_recipe_by_product_id(self, product_id):
        if product_id in self.failing_ids:
            raise ConnectionError(f"catalog unavailable for {product_id}")
        return await super().get_recipe_by_product_id(product_id)


# ===========================================================================
# Class 1: Scaling & nested expansion
# ===========================================================================

class TestScaling:

    def test_nested_rug_expansion(self, workshop_catalog):
        """
        2 rugs x 3 sqm = 6 sqm:
          yarn 2.0 x 6 = 12, latex 0.5 x 6 = 3, base fabric 1.0 x 6 = 6 sqm -> 6 units
        6 base fabric x 1 sqm = 6 sqm:
          backing 1.0 x 6 = 6, yarn 0.25 x 6 = 1.5
        Totals: yarn 13.5, latex 3, backing 6.
        """
        result = _resolve(workshop_catalog, [{"product_id": "p-rug", "product_name": "Hand-Tufted Rug", "quantity": 2}])
        totals = _totals(result)
        assert totals["rm-yarn"] == pytest.approx(13.5)
        assert totals["rm-latex"] == pytest.approx(3.0)
        assert totals["rm-backing"] == pytest.approx(6.0)
        assert not result.is_partial

    def test_sources_record_each_contribution(self, workshop_catalog):
        result = _resolve(workshop_catalog, [{"product_id": "p-rug", "product_name": "Hand-Tufted Rug", "quantity": 2}])
        yarn = next(e for e in result.breakdown if e.material_id == "rm-yarn")
        assert [(s.product_name, s.quantity_needed) for s in yarn.sources] == [
            ("Hand-Tufted Rug", 12.0),
            ("Base Fabric", 1.5),
        ]

    def test_products_needed_in_nested_units(self, workshop_catalog):
        result = _resolve(workshop_catalog, [RequirementRequest("p-rug", "Hand-Tufted Rug", 2)])
        rug_step = next(s for s in result.steps if s.product_id == "p-rug")
        assert len(rug_step.products_needed) == 1
        base = rug_step.products_needed[0]
        assert base.product_id == "p-base"
        assert base.quantity == pytest.approx(6.0)
        assert base.unit == "roll"
        # individually tracked: 7 available serialized rolls, not the cached 10
        assert base.current_stock == 7

    def test_zero_dimension_nested_product(self):
        """Nested product without dimensions keeps the required quantity unchanged."""
        catalog = InMemoryCatalog(
            products=[
                {"id": "outer", "name": "Outer", "length": 2, "width": 2},
                {"id": "thread", "name": "Thread Spool", "unit": "spool"},
            ],
            recipes=[{"product_id": "outer", "materials": [_line("thread", 0.5, "product", "Thread Spool")]}],
        )
        result = _resolve(catalog, [{"product_id": "outer", "product_name": "Outer", "quantity": 3}])
        step = next(s for s in result.steps if s.product_id == "outer")
        # required = 0.5 x (3 x 4 sqm) = 6
        assert step.products_needed[0].quantity == pytest.approx(6.0)
        # the spool has no recipe of its own
        assert [(s.product_id, s.reason) for s in result.skipped] == [("thread", SKIP_NO_RECIPE)]

    def test_missing_product_row_gives_zero_area(self):
        catalog = InMemoryCatalog(
            materials=[{"id": "m", "name": "Resin", "current_stock": 1}],
            recipes=[{"product_id": "ghost", "materials": [_line("m", 2.0)]}],
        )
        result = _resolve(catalog, [{"product_id": "ghost", "quantity": 5}])
        assert _totals(result) == {"m": 0.0}
        assert result.steps[0].current_stock == 0.0

    def test_centimeter_product_area(self):
        """A 200 x 100 cm rug is 2 sqm, so 1 kg/sqm of yarn needs 2 kg."""
        catalog = InMemoryCatalog(
            products=[{"id": "rug", "name": "Rug", "length": 200, "width": 100,
                       "length_unit": "cm", "width_unit": "cm"}],
            materials=[{"id": "yarn", "name": "Yarn", "unit": "kg", "available_stock": 10}],
            recipes=[{"product_id": "rug", "materials": [_line("yarn", 1.0, name="Yarn")]}],
        )
        result = _resolve(catalog, [{"product_id": "rug", "product_name": "Rug", "quantity": 1}])
        yarn = result.breakdown[0]
        assert yarn.total_quantity == pytest.approx(2.0)
        assert yarn.shortage == 0.0
        assert yarn.is_available

    def test_feet_product_area(self):
        """10 x 5 ft = 3.048 m x 1.524 m."""
        catalog = InMemoryCatalog(
            products=[{"id": "runner", "name": "Runner", "length": "10 ft", "width": 5,
                       "length_unit": "ft", "width_unit": "ft"}],
            materials=[{"id": "yarn", "name": "Yarn", "unit": "kg", "available_stock": 100}],
            recipes=[{"product_id": "runner", "materials": [_line("yarn", 1.0, name="Yarn")]}],
        )
        result = _resolve(catalog, [{"product_id": "runner", "quantity": 2}])
        assert _totals(result)["yarn"] == pytest.approx(2 * 3.048 * 1.524)

    def test_nested_product_area_in_centimeters(self):
        """1 sqm of a 50 x 200 cm panel is exactly one panel."""
        catalog = InMemoryCatalog(
            products=[
                {"id": "frame", "name": "Frame", "length": 1, "width": 1},
                {"id": "panel", "name": "Panel", "length": 50, "width": 200,
                 "length_unit": "cm", "width_unit": "cm", "unit": "piece"},
            ],
            materials=[{"id": "glue", "name": "Glue", "unit": "kg", "available_stock": 5}],
            recipes=[
                {"product_id": "frame", "materials": [_line("panel", 1.0, "product", "Panel")]},
                {"product_id": "panel", "materials": [_line("glue", 0.5, name="Glue")]},
            ],
        )
        result = _resolve(catalog, [{"product_id": "frame", "product_name": "Frame", "quantity": 1}])
        frame_step = next(s for s in result.steps if s.product_id == "frame")
        assert frame_step.products_needed[0].quantity == pytest.approx(1.0)
        assert _totals(result)["glue"] == pytest.approx(0.5)


# ===========================================================================
# Class 2: Merging & additivity
# ===========================================================================

class TestAdditivity:

    def test_two_requests_sum(self, workshop_catalog):
        rug = _totals(_resolve(workshop_catalog, [{"product_id": "p-rug", "quantity": 2}]))
        mat = _totals(_resolve(workshop_catalog, [{"product_id": "p-mat", "quantity": 5}]))
        both = _totals(_resolve(workshop_catalog, [
            {"product_id": "p-rug", "quantity": 2},
            {"product_id": "p-mat", "quantity": 5},
        ]))
        for material_id in set(rug) | set(mat):
            assert both[material_id] == pytest.approx(rug.get(material_id, 0) + mat.get(material_id, 0))

    def test_one_entry_per_material(self, workshop_catalog):
        result = _resolve(workshop_catalog, [
            {"product_id": "p-rug", "quantity": 1},
            {"product_id": "p-mat", "quantity": 1},
        ])
        ids = [e.material_id for e in result.breakdown]
        assert len(ids) == len(set(ids))

    def test_empty_requests(self, workshop_catalog):
        result = _resolve(workshop_catalog, [])
        assert result.breakdown == []
        assert result.steps == []
        assert result.summary_message() == "Calculated 0 raw materials needed using SQM-based recipes"

    def test_request_without_product_id_is_ignored(self, workshop_catalog):
        result = _resolve(workshop_catalog, [{"product_name": "Unnamed", "quantity": 3}])
        assert result.breakdown == []
        assert not result.is_partial

    def test_unparseable_quantity_does_not_abort_other_requests(self, workshop_catalog):
        result = _resolve(workshop_catalog, [
            {"product_id": "p-rug", "quantity": "lots"},
            {"product_id": "p-mat", "quantity": "2 pcs"},
        ])
        totals = _totals(result)
        # p-mat is 1 sqm: yarn 1 x 2, latex 0.2 x 2; the rug resolves at quantity 0
        assert totals["rm-yarn"] == pytest.approx(2.0)
        assert totals["rm-latex"] == pytest.approx(0.4)
        assert [s.product_id for s in result.steps][-1] == "p-mat"


# ===========================================================================
# Class 3: Stock & shortage
# ===========================================================================

class TestShortage:

    def test_shortage_when_stock_short(self):
        """available 5, needed 8 -> shortage 3."""
        result = _resolve(_single_material_catalog(5), [{"product_id": "p", "quantity": 8}])
        entry = result.breakdown[0]
        assert entry.total_quantity == pytest.approx(8.0)
        assert entry.shortage == pytest.approx(3.0)
        assert entry.is_available is False
        assert result.shortages == [entry]

    def test_no_shortage_when_stock_covers(self):
        result = _resolve(_single_material_catalog(10), [{"product_id": "p", "quantity": 8}])
        entry = result.breakdown[0]
        assert entry.shortage == 0
        assert entry.is_available is True

    def test_shortage_recomputed_after_merge(self):
        """Each request alone fits in stock 5; together they need 8."""
        result = _resolve(_single_material_catalog(5), [
            {"product_id": "p", "quantity": 4},
            {"product_id": "p", "quantity": 4},
        ])
        entry = result.breakdown[0]
        assert entry.total_quantity == pytest.approx(8.0)
        assert entry.shortage == pytest.approx(3.0)
        assert entry.is_available is False

    def test_available_stock_preferred(self, workshop_catalog):
        result = _resolve(workshop_catalog, [{"product_id": "p-mat", "quantity": 1}])
        stock = {e.material_id: e.available_stock for e in result.breakdown}
        assert stock["rm-yarn"] == 50      # available_stock, not current_stock 80
        assert stock["rm-latex"] == 5      # current_stock fallback


# ===========================================================================
# Class 4: Cycles & shared sub-products
# ===========================================================================

class TestCycles:

    def test_two_product_cycle_terminates(self):
        catalog = InMemoryCatalog(
            products=[
                {"id": "A", "name": "Alpha", "length": 1, "width": 1},
                {"id": "B", "name": "Beta", "length": 1, "width": 1},
            ],
            materials=[
                {"id": "m-a", "name": "Alpha Fibre", "current_stock": 100},
                {"id": "m-b", "name": "Beta Fibre", "current_stock": 100},
            ],
            recipes=[
                {"product_id": "A", "materials": [_line("m-a", 1.0, name="Alpha Fibre"),
                                                  _line("B", 1.0, "product", "Beta")]},
                {"product_id": "B", "materials": [_line("m-b", 1.0, name="Beta Fibre"),
                                                  _line("A", 1.0, "product", "Alpha")]},
            ],
        )
        result = _resolve(catalog, [{"product_id": "A", "product_name": "Alpha", "quantity": 1}])
        totals = _totals(result)
        assert totals["m-a"] == pytest.approx(1.0)
        assert totals["m-b"] == pytest.approx(1.0)
        assert [(s.product_id, s.reason) for s in result.skipped] == [("A", SKIP_CYCLE)]
        assert len(result.steps) == 2
        assert result.is_partial

    def test_self_reference(self):
        catalog = InMemoryCatalog(
            products=[{"id": "loop", "name": "Loop", "length": 1, "width": 1}],
            recipes=[{"product_id": "loop", "materials": [_line("loop", 1.0, "product", "Loop")]}],
        )
        result = _resolve(catalog, [{"product_id": "loop", "quantity": 1}])
        assert result.skipped[0].reason == SKIP_CYCLE

    def test_siblings_sharing_a_sub_product(self):
        """
        D uses E and F; both E and F use G. G is expanded under both
        branches, so its fibre is counted twice (1 + 1).
        """
        square = {"length": 1, "width": 1}
        catalog = InMemoryCatalog(
            products=[{"id": pid, "name": pid, **square} for pid in ("D", "E", "F", "G")],
            materials=[{"id": "fibre", "name": "Fibre", "current_stock": 100}],
            recipes=[
                {"product_id": "D", "materials": [_line("E", 1.0, "product"), _line("F", 1.0, "product")]},
                {"product_id": "E", "materials": [_line("G", 1.0, "product")]},
                {"product_id": "F", "materials": [_line("G", 1.0, "product")]},
                {"product_id": "G", "materials": [_line("fibre", 1.0, name="Fibre")]},
            ],
        )
        result = _resolve(catalog, [{"product_id": "D", "quantity": 1}])
        assert _totals(result)["fibre"] == pytest.approx(2.0)
        assert result.skipped == []
        assert [s.product_id for s in result.steps].count("G") == 2


# ===========================================================================
# Class 5: Degraded catalog data
# ===========================================================================

class TestDegradedCatalog:

    def test_product_without_recipe(self, workshop_catalog):
        result = _resolve(workshop_catalog, [{"product_id": "p-unknown", "product_name": "Mystery", "quantity": 1}])
        assert result.breakdown == []
        assert result.steps == []
        assert result.skipped[0].reason == SKIP_NO_RECIPE
        assert result.is_partial

    def test_inactive_recipe_is_ignored(self):
        catalog = InMemoryCatalog(
            products=[{"id": "p", "name": "Panel", "length": 1, "width": 1}],
            materials=[{"id": "m", "name": "Resin"}],
            recipes=[{"product_id": "p", "is_active": False, "materials": [_line("m", 1.0)]}],
        )
        result = _resolve(catalog, [{"product_id": "p", "quantity": 1}])
        assert result.breakdown == []
        assert result.skipped[0].reason == SKIP_NO_RECIPE

    def test_unresolved_line_is_skipped(self):
        catalog = InMemoryCatalog(
            products=[{"id": "p", "name": "Panel", "length": 1, "width": 1}],
            materials=[{"id": "m", "name": "Resin", "current_stock": 10}],
            recipes=[{"product_id": "p", "materials": [_line("m", 1.0, name="Resin"),
                                                       _line("deleted-id", 1.0, name="Old Dye")]}],
        )
        result = _resolve(catalog, [{"product_id": "p", "product_name": "Panel", "quantity": 2}])
        assert _totals(result) == {"m": pytest.approx(2.0)}
        skipped = result.skipped[0]
        assert (skipped.product_id, skipped.reason) == ("deleted-id", SKIP_UNRESOLVED)

    def test_unconfigured_line_is_reported(self):
        catalog = InMemoryCatalog(
            products=[{"id": "p", "name": "Panel", "length": 1, "width": 1}],
            materials=[{"id": "m", "name": "Resin", "current_stock": 10}],
            recipes=[{"product_id": "p", "materials": [_line("m", 0, name="Resin")]}],
        )
        result = _resolve(catalog, [{"product_id": "p", "product_name": "Panel", "quantity": 2}])
        assert _totals(result) == {"m": 0.0}
        assert [(u.product_id, u.material_id) for u in result.unconfigured_lines] == [("p", "m")]
        # a zero rate is not a skipped branch
        assert not result.is_partial


# ===========================================================================
# Class 6: Per-request isolation
# ===========================================================================

class TestRequestIsolation:

    def test_failing_lookup_drops_only_that_request(self, catalog_rows):
        """
        The rug's own lines land before its base-fabric lookup raises; none
        of them may survive. The mat request still contributes in full.
        """
        catalog = _FailingCatalog({"p-base"}, **catalog_rows)
        result = _resolve(catalog, [
            {"product_id": "p-rug", "product_name": "Hand-Tufted Rug", "quantity": 2},
            {"product_id": "p-mat", "product_name": "Floor Mat", "quantity": 5},
        ])
        assert result.failed_requests == ["p-rug"]
        assert result.skipped[0].reason == SKIP_COLLABORATOR_FAILURE
        assert _totals(result) == {
            "rm-latex": pytest.approx(1.0),
            "rm-yarn": pytest.approx(5.0),
        }
        assert [s.product_id for s in result.steps] == ["p-mat"]
        assert result.is_partial

    def test_failure_is_counted(self, catalog_rows):
        catalog = _FailingCatalog({"p-mat"}, **catalog_rows)
        _resolve(catalog, [{"product_id": "p-mat", "quantity": 1}])
        metrics = tracker.get_metrics()
        assert metrics["error_count_by_product"] == {"p-mat": 1}
        assert metrics["calculations_processed"] == 1
        assert metrics["partial_calculations"] == 1


# ===========================================================================
# Class 7: Ordering & steps
# ===========================================================================

class TestOrdering:

    def test_breakdown_sorted_by_name(self, workshop_catalog):
        result = _resolve(workshop_catalog, [{"product_id": "p-rug", "quantity": 1}])
        assert [e.material_name for e in result.breakdown] == ["Jute Backing", "Latex Binder", "Wool Yarn"]

    def test_deterministic(self, workshop_catalog):
        requests = [{"product_id": "p-mat", "quantity": 3}, {"product_id": "p-rug", "quantity": 2}]
        first = _resolve(workshop_catalog, requests)
        second = _resolve(workshop_catalog, requests)
        assert [(e.material_id, e.total_quantity) for e in first.breakdown] == \
            [(e.material_id, e.total_quantity) for e in second.breakdown]

    def test_step_numbers_continue_across_requests(self, workshop_catalog):
        """Children are listed before their parent; numbers follow expansion order."""
        result = _resolve(workshop_catalog, [
            {"product_id": "p-rug", "quantity": 1},
            {"product_id": "p-mat", "quantity": 1},
        ])
        assert [(s.step, s.product_id) for s in result.steps] == [
            (2, "p-base"),
            (1, "p-rug"),
            (3, "p-mat"),
        ]

    def test_resolver_accepts_camel_case_dicts(self, workshop_catalog):
        resolver = RecipeResolver(workshop_catalog)
        result = asyncio.run(resolver.resolve([{"productId": "p-mat", "productName": "Floor Mat", "quantity": 2}]))
        assert result.steps[0].product_name == "Floor Mat"
        assert _totals(result)["rm-yarn"] == pytest.approx(2.0)

    def test_to_dict_shape(self, workshop_catalog):
        data = _resolve(workshop_catalog, [
            {"product_id": "p-mat", "product_name": "Floor Mat", "quantity": 1},
        ]).to_dict()
        assert data["message"] == "Calculated 2 raw materials needed using SQM-based recipes"
        assert data["is_partial"] is False
        assert data["breakdown"][0]["sources"][0]["product_name"] == "Floor Mat"
        assert data["calculation_id"]
