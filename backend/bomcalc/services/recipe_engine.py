"""
Recipe Requirement Resolver — expands product recipes into raw-material needs.

Recipes are normalised per 1 sqm of the parent product. For each requested
(product, quantity) the resolver computes the product's total area, scales
every recipe line by it, and either books the result against a raw material
or, for a product ingredient, converts the required area into units of that
product and expands its recipe in turn.

Output is a breakdown merged by material_id (with stock shortage flags) and
the ordered list of production steps that produced it.

Degrade-and-continue policy: cycles, missing recipes and unresolvable
material ids skip the affected branch and are recorded in ``skipped``.
A catalog lookup that raises drops only the top-level request it belongs
to. Stock figures are a snapshot taken while resolving; they are not
synchronised with concurrent stock movements.
"""
import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Union

from bomcalc.models.catalog_schema import RecipeLineRecord
from bomcalc.services.catalog_provider import CatalogProvider
from bomcalc.services.perf_monitor import timed_async, tracker
from bomcalc.services.unit_converter import parse_numeric

logger = logging.getLogger("bomcalc-recipes")

SKIP_CYCLE = "cycle"
SKIP_NO_RECIPE = "no_recipe"
SKIP_UNRESOLVED = "unresolved_reference"
SKIP_COLLABORATOR_FAILURE = "collaborator_failure"


@dataclass
class RequirementRequest:
    product_id: str
    product_name: str = ""
    quantity: float = 1.0
    unit: str = "piece"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RequirementRequest":
        return cls(
            product_id=str(data.get("product_id") or data.get("productId") or ""),
            product_name=data.get("product_name") or data.get("productName") or "",
            quantity=parse_numeric(data.get("quantity")) or 0.0,
            unit=data.get("unit") or "piece",
        )


@dataclass
class MaterialSource:
    product_name: str
    quantity_needed: float
    contribution: float


@dataclass
class MaterialBreakdownEntry:
    material_id: str
    material_name: str
    unit: str
    available_stock: float
    total_quantity: float = 0.0
    shortage: float = 0.0
    is_available: bool = True
    sources: List[MaterialSource] = field(default_factory=list)

    def add_contribution(self, product_name: str, quantity: float) -> None:
        self.total_quantity += quantity
        self.sources.append(MaterialSource(product_name, quantity, quantity))
        self._refresh_availability()

    def absorb(self, other: "MaterialBreakdownEntry") -> None:
        """Fold another run's entry for the same material into this one."""
        self.total_quantity += other.total_quantity
        self.sources.extend(other.sources)
        self._refresh_availability()

    def _refresh_availability(self) -> None:
        self.shortage = max(0.0, self.total_quantity - self.available_stock)
        self.is_available = self.available_stock >= self.total_quantity


@dataclass
class StepMaterial:
    material_id: str
    material_name: str
    quantity: float
    unit: str
    current_stock: float


@dataclass
class StepProduct:
    product_id: str
    product_name: str
    quantity: float
    unit: str
    current_stock: float


@dataclass
class ProductionStep:
    step: int
    product_id: str
    product_name: str
    quantity: float
    unit: str
    current_stock: float
    materials_needed: List[StepMaterial] = field(default_factory=list)
    products_needed: List[StepProduct] = field(default_factory=list)


@dataclass
class SkippedBranch:
    product_id: str
    product_name: str
    reason: str
    detail: str = ""


@dataclass
class UnconfiguredLine:
    product_id: str
    product_name: str
    material_id: str
    material_name: str


@dataclass
class RequirementResult:
    breakdown: List[MaterialBreakdownEntry] = field(default_factory=list)
    steps: List[ProductionStep] = field(default_factory=list)
    skipped: List[SkippedBranch] = field(default_factory=list)
    failed_requests: List[str] = field(default_factory=list)
    unconfigured_lines: List[UnconfiguredLine] = field(default_factory=list)
    calculation_id: str = ""

    @property
    def is_partial(self) -> bool:
        return bool(self.skipped or self.failed_requests)

    @property
    def shortages(self) -> List[MaterialBreakdownEntry]:
        return [entry for entry in self.breakdown if not entry.is_available]

    def summary_message(self) -> str:
        return (
            f"Calculated {len(self.breakdown)} raw materials needed "
            f"using SQM-based recipes"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "calculation_id": self.calculation_id,
            "breakdown": [asdict(entry) for entry in self.breakdown],
            "steps": [asdict(step) for step in self.steps],
            "skipped": [asdict(s) for s in self.skipped],
            "failed_requests": list(self.failed_requests),
            "unconfigured_lines": [asdict(u) for u in self.unconfigured_lines],
            "is_partial": self.is_partial,
            "message": self.summary_message(),
        }


class _ResolutionScratch:
    """
    Working state for one top-level request.

    Contributions land here first and are merged into the run only once the
    request finishes, so a request that fails half-way leaves nothing behind.
    """

    def __init__(self, first_step_number: int) -> None:
        self.breakdown: Dict[str, MaterialBreakdownEntry] = {}
        self.steps: List[ProductionStep] = []
        self.skipped: List[SkippedBranch] = []
        self.unconfigured: List[UnconfiguredLine] = []
        self.next_step_number = first_step_number

    def allocate_step_number(self) -> int:
        number = self.next_step_number
        self.next_step_number += 1
        return number


class RecipeResolver:

    def __init__(self, catalog: CatalogProvider) -> None:
        self.catalog = catalog

    @timed_async
    async def resolve(
        self,
        requests: Iterable[Union[RequirementRequest, Dict[str, Any]]],
    ) -> RequirementResult:
        """
        Resolve every request into one merged breakdown.

        Args:
            requests: RequirementRequest objects or dicts with product_id,
                      product_name, quantity, unit

        Returns:
            RequirementResult with breakdown sorted by material_name
        """
        calculation_id = str(uuid.uuid4())
        start = time.perf_counter()
        result = RequirementResult(calculation_id=calculation_id)
        breakdown: Dict[str, MaterialBreakdownEntry] = {}
        next_step_number = 1

        for raw in requests:
            request = raw if isinstance(raw, RequirementRequest) else RequirementRequest.from_dict(raw)
            if not request.product_id:
                continue

            scratch = _ResolutionScratch(next_step_number)
            try:
                await self._expand(
                    request.product_id,
                    request.product_name,
                    request.quantity,
                    request.unit,
                    frozenset(),
                    scratch,
                )
            except Exception as e:
                logger.error(
                    f"Requirement calculation failed for product {request.product_name or request.product_id}: {e}",
                    exc_info=True,
                    extra={"calculation_id": calculation_id, "product_id": request.product_id},
                )
                result.failed_requests.append(request.product_id)
                result.skipped.append(SkippedBranch(
                    product_id=request.product_id,
                    product_name=request.product_name,
                    reason=SKIP_COLLABORATOR_FAILURE,
                    detail=str(e),
                ))
                tracker.record_request_failure(request.product_id)
                continue

            for material_id, entry in scratch.breakdown.items():
                if material_id in breakdown:
                    breakdown[material_id].absorb(entry)
                else:
                    breakdown[material_id] = entry
            result.steps.extend(scratch.steps)
            result.skipped.extend(scratch.skipped)
            result.unconfigured_lines.extend(scratch.unconfigured)
            next_step_number = scratch.next_step_number

        result.breakdown = sorted(breakdown.values(), key=lambda e: e.material_name)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        tracker.record_calculation_complete(duration_ms, partial=result.is_partial)
        logger.info(
            f"Resolved {len(result.breakdown)} materials over {len(result.steps)} steps",
            extra={"calculation_id": calculation_id, "duration_ms": duration_ms},
        )
        return result

    async def _expand(
        self,
        product_id: str,
        product_name: str,
        quantity: float,
        unit: str,
        visited: FrozenSet[str],
        scratch: _ResolutionScratch,
    ) -> None:
        if product_id in visited:
            logger.warning(f"Circular dependency detected for product: {product_name} ({product_id})")
            scratch.skipped.append(SkippedBranch(product_id, product_name, SKIP_CYCLE))
            return
        # Each branch gets its own copy so sibling sub-products never block each other
        visited = visited | {product_id}

        recipe = await self.catalog.get_recipe_by_product_id(product_id)
        if recipe is None or not recipe.is_active:
            logger.info(f"No recipe found for product: {product_name} ({product_id})")
            scratch.skipped.append(SkippedBranch(product_id, product_name, SKIP_NO_RECIPE))
            return

        product = await self.catalog.get_product_by_id(product_id)
        area_per_unit = product.area_per_unit if product else 0.0
        total_area = quantity * area_per_unit
        logger.debug(
            f"Product {product_name}: {area_per_unit} sqm per unit, "
            f"{quantity} units -> {total_area} sqm"
        )

        step = ProductionStep(
            step=scratch.allocate_step_number(),
            product_id=product_id,
            product_name=product_name,
            quantity=quantity,
            unit=unit,
            current_stock=product.effective_stock if product else 0.0,
        )

        for line in recipe.materials:
            await self._apply_line(line, step, total_area, visited, scratch)

        scratch.steps.append(step)

    async def _apply_line(
        self,
        line: RecipeLineRecord,
        step: ProductionStep,
        total_area: float,
        visited: FrozenSet[str],
        scratch: _ResolutionScratch,
    ) -> None:
        if not line.is_configured:
            scratch.unconfigured.append(UnconfiguredLine(
                product_id=step.product_id,
                product_name=step.product_name,
                material_id=line.material_id,
                material_name=line.material_name,
            ))
        required_quantity = line.quantity_per_sqm * total_area

        material = await self.catalog.get_material_by_id(line.material_id)
        if material is not None:
            available = material.effective_stock
            step.materials_needed.append(StepMaterial(
                material_id=line.material_id,
                material_name=line.material_name,
                quantity=required_quantity,
                unit=line.unit,
                current_stock=available,
            ))
            entry = scratch.breakdown.get(line.material_id)
            if entry is None:
                entry = MaterialBreakdownEntry(
                    material_id=line.material_id,
                    material_name=line.material_name,
                    unit=line.unit,
                    available_stock=available,
                )
                scratch.breakdown[line.material_id] = entry
            entry.add_contribution(step.product_name, required_quantity)
            return

        nested = await self.catalog.get_product_by_id(line.material_id)
        if nested is None:
            logger.warning(
                f"Recipe line {line.material_name} ({line.material_id}) of {step.product_name} "
                "matches no raw material or product, skipped"
            )
            scratch.skipped.append(SkippedBranch(
                line.material_id, line.material_name, SKIP_UNRESOLVED,
                detail=f"referenced by {step.product_id}",
            ))
            return

        # required_quantity is sqm of the nested product; turn it into units
        nested_area = nested.area_per_unit
        nested_quantity = required_quantity / nested_area if nested_area > 0 else required_quantity
        nested_unit = nested.unit or line.unit
        logger.debug(
            f"Product ingredient {line.material_name}: {required_quantity} sqm at "
            f"{nested_area} sqm per unit -> {nested_quantity} units"
        )

        step.products_needed.append(StepProduct(
            product_id=line.material_id,
            product_name=line.material_name,
            quantity=nested_quantity,
            unit=nested_unit,
            current_stock=nested.effective_stock,
        ))
        await self._expand(
            line.material_id,
            line.material_name,
            nested_quantity,
            nested_unit,
            visited,
            scratch,
        )


async def resolve_requirements(
    requests: Iterable[Union[RequirementRequest, Dict[str, Any]]],
    catalog: CatalogProvider,
) -> RequirementResult:
    """Resolve requests against ``catalog`` with a fresh resolver."""
    return await RecipeResolver(catalog).resolve(requests)
