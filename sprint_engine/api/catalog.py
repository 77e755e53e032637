"""Catalog API Routes - Package previews priced by the totals engine."""

import logging
from typing import List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from sprint_engine.core.config import get_settings
from sprint_engine.core.database import db_service
from sprint_engine.core.errors import DeliverableNotFoundError
from sprint_engine.models import CatalogPackage, SprintDeliverableLine, SprintTotals
from sprint_engine.services import pricing

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/packages", tags=["catalog"])


class PackagePreview(BaseModel):
    """An active package with the lines and totals it would produce."""
    package: CatalogPackage
    lines: List[SprintDeliverableLine]
    totals: SprintTotals


class PackageListResponse(BaseModel):
    packages: List[PackagePreview]


async def _preview(packages: List[CatalogPackage]) -> List[PackagePreview]:
    linked_ids = {link.deliverable_id for package in packages for link in package.deliverables}
    lookup = await db_service.get_active_deliverables(linked_ids) if linked_ids else {}
    return [
        PackagePreview(
            package=package,
            lines=pricing.package_lines(package, lookup),
            totals=pricing.package_totals(package, lookup),
        )
        for package in packages
    ]


@router.get("", response_model=PackageListResponse, summary="List Package Previews")
async def list_packages() -> PackageListResponse:
    """Active packages, featured first, each priced from its active deliverables."""
    try:
        packages = await db_service.list_active_packages(get_settings().CATALOG_PACKAGE_LIMIT)
        return PackageListResponse(packages=await _preview(packages))
    except Exception as e:
        logger.error(f"Failed to list packages: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to list packages: {str(e)}")


@router.get("/{package_id}", response_model=PackagePreview, summary="Preview Package")
async def get_package(package_id: str) -> PackagePreview:
    package = await db_service.get_active_package(package_id)
    if package is None:
        raise DeliverableNotFoundError(
            "Package not found or inactive",
            details={"package_id": package_id},
        )
    previews = await _preview([package])
    logger.info(f"Package {package_id} preview: ${previews[0].totals.total_price:,.2f}")
    return previews[0]
