"""
Totals Engine - Deterministic point, hour and price arithmetic.

Pure functions only: no I/O and no module state. Sprint aggregates are
always recomputed from the full line set instead of being patched, so a
long edit session cannot accumulate drift.
"""

import math
from typing import Any, Dict, Iterable, List, Mapping

from sprint_engine.core.config import COMPLEXITY_LEVELS, PRICING, PricingConfig
from sprint_engine.core.errors import InvalidComplexityError, InvalidQuantityError
from sprint_engine.models import (
    BaseEconomics,
    CatalogDeliverable,
    CatalogPackage,
    LineTotals,
    PointScale,
    SprintDeliverableLine,
    SprintTotals,
)


def scale_from_points(points: float, config: PricingConfig = PRICING) -> PointScale:
    """
    Convert a point value into client-facing hours and price.

    This is the only points-to-money rule in the codebase.

    Args:
        points: Non-negative point value
        config: Pricing constants

    Returns:
        PointScale with hours and price
    """
    return PointScale(
        hours=points * config.hours_per_point,
        price=config.base_fee + points * config.price_per_point,
    )


def validate_complexity(value: Any) -> float:
    """
    Accept only the enumerated complexity multipliers.

    Numeric strings are parsed; anything else is rejected rather than
    clamped so a bad client write is visible.
    """
    if isinstance(value, bool):
        raise InvalidComplexityError(
            f"Complexity must be one of {sorted(COMPLEXITY_LEVELS)}",
            details={"value": value},
        )
    try:
        score = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        raise InvalidComplexityError(
            f"Complexity must be one of {sorted(COMPLEXITY_LEVELS)}",
            details={"value": value},
        )

    if score not in COMPLEXITY_LEVELS:
        raise InvalidComplexityError(
            f"Complexity must be one of {sorted(COMPLEXITY_LEVELS)}",
            details={"value": value},
        )
    return score


def validate_quantity(value: Any) -> int:
    """Quantities are integers of at least one."""
    if isinstance(value, bool):
        raise InvalidQuantityError("Quantity must be an integer >= 1", details={"value": value})
    if isinstance(value, float) and not value.is_integer():
        raise InvalidQuantityError("Quantity must be an integer >= 1", details={"value": value})
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise InvalidQuantityError("Quantity must be an integer >= 1", details={"value": value})
    if quantity < 1:
        raise InvalidQuantityError("Quantity must be an integer >= 1", details={"value": value})
    return quantity


def complexity_label(score: float) -> str:
    return COMPLEXITY_LEVELS.get(score, "Custom")


def base_economics(deliverable: CatalogDeliverable, config: PricingConfig = PRICING) -> BaseEconomics:
    """
    Per-unit economics of a catalog deliverable.

    Fixed hours and price win; a deliverable priced only in points is
    converted through ``scale_from_points``.
    """
    points = deliverable.point_estimate or 0.0
    scaled = scale_from_points(points, config)
    return BaseEconomics(
        points=points,
        hours=deliverable.fixed_hours if deliverable.fixed_hours is not None else scaled.hours,
        price=deliverable.fixed_price if deliverable.fixed_price is not None else scaled.price,
    )


def line_totals(base: BaseEconomics, quantity: int, complexity_score: float) -> LineTotals:
    """Elementwise ``base x quantity x complexity``."""
    quantity = validate_quantity(quantity)
    complexity_score = validate_complexity(complexity_score)
    return LineTotals(
        points=base.points * quantity * complexity_score,
        hours=base.hours * quantity * complexity_score,
        price=base.price * quantity * complexity_score,
    )


def aggregate(lines: Iterable[SprintDeliverableLine]) -> SprintTotals:
    """
    Sum line totals over the full line set.

    ``math.fsum`` is exactly rounded, so permuting the lines never
    changes the result.
    """
    points: List[float] = []
    hours: List[float] = []
    prices: List[float] = []
    count = 0

    for line in lines:
        totals = line_totals(line.base, line.quantity, line.complexity_score)
        points.append(totals.points)
        hours.append(totals.hours)
        prices.append(totals.price)
        count += line.quantity

    return SprintTotals(
        total_points=math.fsum(points),
        total_hours=math.fsum(hours),
        total_price=math.fsum(prices),
        count=count,
    )


def apply_line_totals(line: SprintDeliverableLine) -> SprintDeliverableLine:
    """Return a copy of ``line`` with its ``custom_*`` fields derived from its base."""
    totals = line_totals(line.base, line.quantity, line.complexity_score)
    return line.model_copy(update={
        "custom_points": totals.points,
        "custom_hours": totals.hours,
        "custom_price": totals.price,
    })


def line_from_deliverable(
    deliverable: CatalogDeliverable,
    quantity: int = 1,
    complexity_score: float = 1.0,
    config: PricingConfig = PRICING,
) -> SprintDeliverableLine:
    """Build a priced line with snapshot fields captured from the catalog row."""
    base = base_economics(deliverable, config)
    line = SprintDeliverableLine(
        deliverable_id=deliverable.id,
        deliverable_name=deliverable.name,
        deliverable_category=deliverable.category,
        deliverable_scope=deliverable.scope,
        custom_scope=deliverable.scope,
        base_points=base.points,
        base_hours=base.hours,
        base_price=base.price,
        quantity=validate_quantity(quantity),
        complexity_score=validate_complexity(complexity_score),
    )
    return apply_line_totals(line)


def package_lines(
    package: CatalogPackage,
    deliverables_by_id: Mapping[str, CatalogDeliverable],
    config: PricingConfig = PRICING,
) -> List[SprintDeliverableLine]:
    """
    Lines for a package at normal complexity.

    References to missing or inactive deliverables are skipped, never fatal.
    """
    lines = []
    for link in package.ordered_links():
        deliverable = deliverables_by_id.get(link.deliverable_id)
        if deliverable is None or not deliverable.active:
            continue
        lines.append(line_from_deliverable(deliverable, link.quantity, 1.0, config))
    return lines


def package_totals(
    package: CatalogPackage,
    deliverables_by_id: Mapping[str, CatalogDeliverable],
    config: PricingConfig = PRICING,
) -> SprintTotals:
    return aggregate(package_lines(package, deliverables_by_id, config))


def totals_to_columns(totals: SprintTotals) -> Dict[str, Any]:
    """Sprint draft column values for a totals object."""
    return {
        "total_estimate_points": totals.total_points,
        "total_fixed_hours": totals.total_hours,
        "total_fixed_price": totals.total_price,
        "deliverable_count": totals.count,
    }
