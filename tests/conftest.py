"""
Shared fixtures: a single cement plant sized like the worked example.

Clinker silo: max 10,000, BOD 1,000. Kiln: 2,000/day.
Cement silo: max 5,000, BOD 4,800. Finish mill: 3,000/day of a 95% clinker
cement, with 1,500/day expected shipments.
"""

import pytest

from rollplan.network.core import (
    CampaignBlock,
    CampaignStatus,
    Capability,
    DemandForecast,
    Equipment,
    EquipmentType,
    Facility,
    FacilityType,
    InventoryCount,
    Storage,
)
from rollplan.product.core import Product, ProductCategory, Recipe, RecipeComponent
from rollplan.simulation.accessor import ReferenceDataAccessor
from rollplan.simulation.world import OperationalData, Snapshot, World

START = "2026-03-01"
DATES = ["2026-03-01", "2026-03-02", "2026-03-03"]


def add_catalog(world: World) -> None:
    world.add_product(
        Product("CLK", "Clinker", ProductCategory.INTERMEDIATE_PRODUCT, family_code="CLNK")
    )
    world.add_product(
        Product("CEM", "Type IL", ProductCategory.FINISHED_PRODUCT, family_code="CEM")
    )
    world.add_product(Product("GYP", "Gypsum", ProductCategory.RAW_MATERIAL))


def produce(day: str, facility_id: str, equipment_id: str, product_id: str, rate: float):
    return CampaignBlock(
        date=day,
        facility_id=facility_id,
        equipment_id=equipment_id,
        status=CampaignStatus.PRODUCE,
        product_id=product_id,
        rate_stn=rate,
    )


@pytest.fixture
def plant_world() -> World:
    world = World()
    add_catalog(world)

    world.add_facility(Facility("PLT", "Test Plant", FacilityType.CEMENT_PLANT))
    world.add_storage(
        Storage("CLK-SILO", "PLT", "Clinker Silo", ["CLK"], max_capacity_stn=10000)
    )
    world.add_storage(
        Storage("CEM-SILO", "PLT", "Cement Silo", ["CEM"], max_capacity_stn=5000)
    )

    world.add_equipment(Equipment("K1", "PLT", EquipmentType.KILN, "Kiln 1"))
    world.add_equipment(Equipment("FM1", "PLT", EquipmentType.FINISH_MILL, "Mill 1"))
    world.add_capability(Capability("K1", "CLK", 2000))
    world.add_capability(Capability("FM1", "CEM", 3000))

    world.add_recipe(
        Recipe(
            product_id="CEM",
            components=[RecipeComponent("CLK", 95), RecipeComponent("GYP", 5)],
        )
    )
    return world


@pytest.fixture
def plant_data() -> OperationalData:
    data = OperationalData()
    data.inventory_counts += [
        InventoryCount(START, "PLT", "CLK-SILO", 1000),
        InventoryCount(START, "PLT", "CEM-SILO", 4800),
    ]
    data.campaigns += [
        produce(START, "PLT", "K1", "CLK", 2000),
        produce(START, "PLT", "FM1", "CEM", 3000),
    ]
    data.demand_forecast.append(DemandForecast(START, "PLT", "CEM", 1500))
    return data


@pytest.fixture
def plant_snapshot(plant_world: World, plant_data: OperationalData) -> Snapshot:
    return Snapshot(world=plant_world, data=plant_data)


@pytest.fixture
def plant_accessor(plant_snapshot: Snapshot) -> ReferenceDataAccessor:
    return ReferenceDataAccessor(plant_snapshot)
