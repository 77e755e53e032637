"""Catalog models - Deliverables and packages read from the catalog store."""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class CatalogDeliverable(BaseModel):
    """A unit of billable work with fixed economics."""
    id: str = Field(..., description="Stable catalog identifier")
    name: str = Field(..., description="Deliverable name")
    category: Optional[str] = Field(None, description="Catalog category")
    description: Optional[str] = Field(None, description="When to use this deliverable")
    scope: Optional[str] = Field(None, description="Default scope text")
    fixed_hours: Optional[float] = Field(None, ge=0, description="Fixed hours")
    fixed_price: Optional[float] = Field(None, ge=0, description="Fixed price in USD")
    point_estimate: Optional[float] = Field(None, ge=0, description="Point estimate")
    active: bool = Field(True, description="Only active rows may be recommended or added")


class PackageDeliverableLink(BaseModel):
    """One deliverable reference inside a package."""
    deliverable_id: str = Field(..., description="Referenced deliverable")
    quantity: int = Field(1, description="Units of the deliverable")
    sort_order: int = Field(0, description="Display order inside the package")

    @field_validator("quantity", mode="before")
    @classmethod
    def default_quantity(cls, v):
        """Missing or non-positive quantities count as one unit."""
        try:
            value = int(v)
        except (TypeError, ValueError):
            return 1
        return value if value >= 1 else 1


class CatalogPackage(BaseModel):
    """A named bundle of deliverables."""
    id: str = Field(..., description="Package identifier")
    name: str = Field(..., description="Package name")
    slug: str = Field(..., description="Unique slug")
    tagline: Optional[str] = Field(None, description="Short pitch")
    description: Optional[str] = Field(None, description="Long description")
    category: Optional[str] = Field(None, description="Package category")
    featured: bool = Field(False, description="Featured packages are listed first")
    sort_order: int = Field(0, description="Explicit ordering")
    active: bool = Field(True, description="Inactive packages are never recommended")
    deliverables: List[PackageDeliverableLink] = Field(
        default_factory=list,
        description="Ordered deliverable references"
    )

    def ordered_links(self) -> List[PackageDeliverableLink]:
        return sorted(self.deliverables, key=lambda link: link.sort_order)
