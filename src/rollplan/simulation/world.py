from dataclasses import dataclass, field
from typing import Dict, List, Optional

from rollplan.network.core import (
    CampaignBlock,
    Capability,
    Country,
    DemandForecast,
    Equipment,
    Facility,
    InventoryCount,
    ProductionActual,
    Region,
    ShipmentActual,
    Storage,
    SubRegion,
    Transfer,
)
from rollplan.product.core import Product, Recipe


class UnknownFacilityError(ValueError):
    """A facility (or scope) id does not resolve to anything in the world."""


class EmptyHorizonError(ValueError):
    """A simulation was requested over zero days."""


class StorageResolutionError(ValueError):
    """Storage-to-product mapping is ambiguous and strict resolution is on."""


class World:
    """
    The container for the static structure of the network: org hierarchy,
    catalog, equipment, storages and recipes.
    """

    def __init__(self):
        self.countries: Dict[str, Country] = {}
        self.regions: Dict[str, Region] = {}
        self.sub_regions: Dict[str, SubRegion] = {}
        self.facilities: Dict[str, Facility] = {}
        self.products: Dict[str, Product] = {}
        self.equipment: Dict[str, Equipment] = {}
        self.storages: Dict[str, Storage] = {}
        self.capabilities: List[Capability] = []
        self.recipes: List[Recipe] = []
        # facility_id -> activated product ids, in activation order
        self.facility_products: Dict[str, List[str]] = {}

    def add_country(self, country: Country):
        if country.id in self.countries:
            raise ValueError(f"Country {country.id} already exists")
        self.countries[country.id] = country

    def add_region(self, region: Region):
        if region.id in self.regions:
            raise ValueError(f"Region {region.id} already exists")
        self.regions[region.id] = region

    def add_sub_region(self, sub_region: SubRegion):
        if sub_region.id in self.sub_regions:
            raise ValueError(f"SubRegion {sub_region.id} already exists")
        self.sub_regions[sub_region.id] = sub_region

    def add_facility(self, facility: Facility):
        if facility.id in self.facilities:
            raise ValueError(f"Facility {facility.id} already exists")
        self.facilities[facility.id] = facility

    def add_product(self, product: Product):
        if product.id in self.products:
            raise ValueError(f"Product {product.id} already exists")
        self.products[product.id] = product

    def add_equipment(self, equipment: Equipment):
        if equipment.id in self.equipment:
            raise ValueError(f"Equipment {equipment.id} already exists")
        self.equipment[equipment.id] = equipment

    def add_storage(self, storage: Storage):
        if storage.id in self.storages:
            raise ValueError(f"Storage {storage.id} already exists")
        self.storages[storage.id] = storage

    def add_capability(self, capability: Capability):
        self.capabilities.append(capability)

    def add_recipe(self, recipe: Recipe):
        for existing in self.recipes:
            if (
                existing.product_id == recipe.product_id
                and existing.facility_id == recipe.facility_id
                and existing.version == recipe.version
            ):
                raise ValueError(
                    f"Recipe for {recipe.product_id} v{recipe.version} already exists"
                )
        self.recipes.append(recipe)

    def activate_product(self, facility_id: str, product_id: str):
        active = self.facility_products.setdefault(facility_id, [])
        if product_id not in active:
            active.append(product_id)

    def get_facility(self, facility_id: str) -> Optional[Facility]:
        return self.facilities.get(facility_id)

    def get_product(self, product_id: str) -> Optional[Product]:
        return self.products.get(product_id)

    def get_storage(self, storage_id: str) -> Optional[Storage]:
        return self.storages.get(storage_id)

    def get_latest_recipe(
        self, product_id: str, facility_id: str | None = None
    ) -> Optional[Recipe]:
        """Highest version wins; facility-specific recipes shadow global ones."""
        candidates = [r for r in self.recipes if r.product_id == product_id]
        scoped = [r for r in candidates if r.facility_id == facility_id]
        pool = scoped or [r for r in candidates if r.facility_id is None]
        if not pool:
            return None
        return max(pool, key=lambda r: r.version or 1)


@dataclass
class OperationalData:
    """
    Plans and actuals: everything the planners record day by day.
    """

    campaigns: list[CampaignBlock] = field(default_factory=list)
    production_actuals: list[ProductionActual] = field(default_factory=list)
    inventory_counts: list[InventoryCount] = field(default_factory=list)
    shipment_actuals: list[ShipmentActual] = field(default_factory=list)
    demand_forecast: list[DemandForecast] = field(default_factory=list)
    transfers: list[Transfer] = field(default_factory=list)


@dataclass
class Snapshot:
    """Immutable input to one planning run."""

    world: World
    data: OperationalData = field(default_factory=OperationalData)
    selected_ids: list[str] = field(default_factory=list)
