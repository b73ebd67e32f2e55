from dataclasses import dataclass, field
from typing import Any
import enum
import math


class ProductCategory(enum.Enum):
    RAW_MATERIAL = "RAW_MATERIAL"
    FUEL = "FUEL"
    INTERMEDIATE_PRODUCT = "INTERMEDIATE_PRODUCT"  # Clinker
    FINISHED_PRODUCT = "FINISHED_PRODUCT"  # Shipped to customers


class ProductFamily(enum.Enum):
    """Simulation family a product is tracked under."""

    CLINKER = "CLINKER"
    CEMENT = "CEMENT"
    FUEL = "FUEL"
    RAW = "RAW"
    OTHER = "OTHER"


# Catalog family codes -> simulation family
FAMILY_CODES: dict[str, ProductFamily] = {
    "CLNK": ProductFamily.CLINKER,
    "CEM": ProductFamily.CEMENT,
    "WHT": ProductFamily.CEMENT,
    "ASH": ProductFamily.CEMENT,
    "SLAG": ProductFamily.CEMENT,
    "FUEL": ProductFamily.FUEL,
    "RAW": ProductFamily.RAW,
}

CATEGORY_FAMILIES: dict[ProductCategory, ProductFamily] = {
    ProductCategory.INTERMEDIATE_PRODUCT: ProductFamily.CLINKER,
    ProductCategory.FINISHED_PRODUCT: ProductFamily.CEMENT,
    ProductCategory.FUEL: ProductFamily.FUEL,
    ProductCategory.RAW_MATERIAL: ProductFamily.RAW,
}


@dataclass
class Product:
    """
    A catalog material: clinker, a cement grade, a fuel or a raw material.
    """

    id: str
    name: str
    category: ProductCategory

    family_code: str | None = None  # e.g. "CLNK", "CEM"
    region_id: str | None = None
    unit: str = "STn"

    @property
    def family(self) -> ProductFamily:
        """Family code wins over category when it is a known code."""
        if self.family_code:
            fam = FAMILY_CODES.get(self.family_code.upper())
            if fam is not None:
                return fam
        return CATEGORY_FAMILIES.get(self.category, ProductFamily.OTHER)

    @property
    def is_finished(self) -> bool:
        return self.category == ProductCategory.FINISHED_PRODUCT

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Product ID cannot be empty")


@dataclass
class RecipeComponent:
    material_id: str
    pct: Any

    @property
    def pct_value(self) -> float:
        """Percentage as a float; missing or malformed values count as zero."""
        try:
            pct = float(self.pct)
        except (TypeError, ValueError):
            return 0.0
        return pct if math.isfinite(pct) else 0.0


@dataclass
class Recipe:
    """
    Bill of Materials for a finished product at one facility.

    Percentages are used as-is; they are not normalised to 100.
    """

    product_id: str
    components: list[RecipeComponent] = field(default_factory=list)
    version: int = 1
    facility_id: str | None = None

    @property
    def total_pct(self) -> float:
        return sum(c.pct_value for c in self.components)

    @property
    def pct_discrepancy(self) -> float:
        """Signed distance of the component total from 100%."""
        return self.total_pct - 100.0
