"""Catalog grounding block - constrains the model to real, active catalog entries."""

from typing import List, Mapping, Optional

from sprint_engine.models import CatalogDeliverable, CatalogPackage


def _num(value: float) -> str:
    """Render 3.0 as "3" and 2.5 as "2.5"."""
    return str(int(value)) if float(value).is_integer() else str(value)


def format_deliverable(index: int, deliverable: CatalogDeliverable) -> str:
    parts: List[Optional[str]] = [
        f"\n[{index}] {deliverable.name}",
        f"    id: {deliverable.id}",
        f"    category: {deliverable.category}" if deliverable.category else None,
        f"    when to use: {deliverable.description}" if deliverable.description else None,
        f"    points: {_num(deliverable.point_estimate)}" if deliverable.point_estimate is not None else None,
        f"    fixed_hours: {_num(deliverable.fixed_hours)}h" if deliverable.fixed_hours is not None else None,
        f"    fixed_price: ${_num(deliverable.fixed_price)}" if deliverable.fixed_price is not None else None,
        "    scope: " + deliverable.scope.replace("\n", "\n           ") if deliverable.scope else None,
    ]
    return "\n".join(p for p in parts if p)


def format_package(
    index: int,
    package: CatalogPackage,
    deliverables_by_id: Mapping[str, CatalogDeliverable],
) -> str:
    """One package entry. Links to inactive or unknown deliverables are left out."""
    included = []
    for link in package.ordered_links():
        deliverable = deliverables_by_id.get(link.deliverable_id)
        if deliverable is None or not deliverable.active:
            continue
        suffix = f" (×{link.quantity})" if link.quantity > 1 else ""
        included.append(f"{deliverable.name}{suffix}")

    parts: List[Optional[str]] = [
        f"\n[{index}] {package.name}",
        f"    id: {package.id}",
        f"    category: {package.category}" if package.category else None,
        f"    tagline: {package.tagline}" if package.tagline else None,
        f"    description: {package.description}" if package.description else None,
        f"    includes: {', '.join(included)}",
    ]
    return "\n".join(p for p in parts if p)


def build_catalog_block(
    deliverables: List[CatalogDeliverable],
    packages: List[CatalogPackage],
    deliverables_by_id: Optional[Mapping[str, CatalogDeliverable]] = None,
) -> str:
    """
    Enumerate active packages and deliverables with ids, economics and scope.

    Args:
        deliverables: Active deliverables, already ordered by name
        packages: Active packages, featured first then by sort order
        deliverables_by_id: Lookup used to name package contents; defaults
            to the ``deliverables`` list

    Returns:
        Grounding text appended to the user prompt
    """
    lookup = dict(deliverables_by_id) if deliverables_by_id is not None else {d.id: d for d in deliverables}

    if packages:
        packages_text = "\n".join(
            format_package(idx, package, lookup) for idx, package in enumerate(packages, start=1)
        )
    else:
        packages_text = "No sprint packages are currently available."

    if deliverables:
        deliverables_text = "\n".join(
            format_deliverable(idx, deliverable) for idx, deliverable in enumerate(deliverables, start=1)
        )
    else:
        deliverables_text = "No deliverables are currently defined in the catalog."

    return (
        "\n\n=== SPRINT PACKAGES & DELIVERABLES ===\n\n"
        "You have TWO OPTIONS for recommending work to the client:\n\n"
        "OPTION 1: Recommend a SPRINT PACKAGE (preferred when a good fit exists)\n"
        "Sprint packages are pre-bundled collections of deliverables with fixed pricing.\n"
        "They offer better value and are easier for clients to understand.\n"
        "If you recommend a package, include 'sprintPackageId' in your JSON response.\n"
        f"{packages_text}"
        "\n\n"
        "OPTION 2: Recommend INDIVIDUAL DELIVERABLES (when no package fits)\n"
        "Select 1-3 individual deliverables from the catalog below.\n"
        "Each deliverable has fixed hours and fixed price (NOT estimates).\n"
        "If you recommend individual deliverables, include them in 'deliverables' array.\n"
        f"{deliverables_text}"
        "\n\n"
        "INSTRUCTIONS:\n"
        "- First check if any sprint package is a good fit for the client's needs\n"
        "- If a package matches well, use 'sprintPackageId' in your response\n"
        "- If no package fits, select 1-3 individual deliverables\n"
        "- NEVER recommend both a package AND individual deliverables together\n"
        "- Use EXACT IDs from the catalogs above\n"
        "\n=== END CATALOG ===\n"
    )
