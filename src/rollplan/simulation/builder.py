import math
from typing import Any

from rollplan.config.loader import load_snapshot_definition
from rollplan.network.core import (
    CampaignBlock,
    CampaignStatus,
    Capability,
    Country,
    DemandForecast,
    Equipment,
    EquipmentType,
    Facility,
    FacilityType,
    InventoryCount,
    ProductionActual,
    Region,
    ShipmentActual,
    Storage,
    SubRegion,
    Transfer,
)
from rollplan.product.core import Product, ProductCategory, Recipe, RecipeComponent
from rollplan.simulation.world import OperationalData, Snapshot, World


def _category(value: str) -> ProductCategory:
    # Accept both "FINISHED_PRODUCT" and "ProductCategory.FINISHED_PRODUCT"
    return ProductCategory[value.split(".")[-1].upper()]


def _version(value: Any) -> int:
    """Positive whole version number; missing or malformed versions are 1."""
    try:
        version = float(value)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(version) or version < 1:
        return 1
    return int(version)


def _status(value: Any) -> CampaignStatus | None:
    # Unknown statuses fall back to the rate-derived default
    if not value:
        return None
    try:
        return CampaignStatus(str(value).strip().lower())
    except ValueError:
        return None


class SnapshotBuilder:
    """Builds a Snapshot from a JSON-style definition dict."""

    def __init__(self, definition: dict[str, Any] | None = None) -> None:
        self.definition = (
            definition if definition is not None else load_snapshot_definition()
        )
        self.world = World()
        self.data = OperationalData()

    def build(self) -> Snapshot:
        self._build_org()
        self._build_catalog()
        self._build_assets()
        self._build_recipes()
        self._build_operational_data()
        return Snapshot(
            world=self.world,
            data=self.data,
            selected_ids=list(self.definition.get("selected_facility_ids", [])),
        )

    def _build_org(self) -> None:
        org = self.definition.get("org", {})
        for c in org.get("countries", []):
            self.world.add_country(Country(id=c["id"], name=c.get("name", "")))
        for r in org.get("regions", []):
            self.world.add_region(
                Region(id=r["id"], country_id=r.get("country_id"), name=r.get("name", ""))
            )
        for sr in org.get("sub_regions", []):
            self.world.add_sub_region(
                SubRegion(
                    id=sr["id"], region_id=sr.get("region_id"), name=sr.get("name", "")
                )
            )
        for f in org.get("facilities", []):
            self.world.add_facility(
                Facility(
                    id=f["id"],
                    name=f.get("name", f["id"]),
                    type=FacilityType(f.get("type", FacilityType.CEMENT_PLANT.value)),
                    code=f.get("code", ""),
                    sub_region_id=f.get("sub_region_id"),
                )
            )

    def _build_catalog(self) -> None:
        for p in self.definition.get("catalog", []):
            self.world.add_product(
                Product(
                    id=p["id"],
                    name=p.get("name", p["id"]),
                    category=_category(p["category"]),
                    family_code=p.get("family_code"),
                    region_id=p.get("region_id"),
                    unit=p.get("unit", "STn"),
                )
            )
        for fp in self.definition.get("facility_products", []):
            self.world.activate_product(fp["facility_id"], fp["product_id"])

    def _build_assets(self) -> None:
        for e in self.definition.get("equipment", []):
            self.world.add_equipment(
                Equipment(
                    id=e["id"],
                    facility_id=e["facility_id"],
                    type=EquipmentType(e["type"]),
                    name=e.get("name", ""),
                )
            )
        for c in self.definition.get("capabilities", []):
            self.world.add_capability(
                Capability(
                    equipment_id=c["equipment_id"],
                    product_id=c["product_id"],
                    max_rate_stn=c.get("max_rate_stn", 0.0),
                )
            )
        for s in self.definition.get("storages", []):
            self.world.add_storage(
                Storage(
                    id=s["id"],
                    facility_id=s["facility_id"],
                    name=s.get("name", ""),
                    allowed_product_ids=list(s.get("allowed_product_ids", [])),
                    max_capacity_stn=s.get("max_capacity_stn"),
                )
            )

    def _build_recipes(self) -> None:
        for r in self.definition.get("recipes", []):
            self.world.add_recipe(
                Recipe(
                    product_id=r["product_id"],
                    facility_id=r.get("facility_id"),
                    version=_version(r.get("version", 1)),
                    components=[
                        RecipeComponent(material_id=c["material_id"], pct=c.get("pct", 0))
                        for c in r.get("components", [])
                    ],
                )
            )

    def _build_operational_data(self) -> None:
        for c in self.definition.get("campaigns", []):
            self.data.campaigns.append(
                CampaignBlock(
                    date=c["date"],
                    facility_id=c["facility_id"],
                    equipment_id=c["equipment_id"],
                    status=_status(c.get("status")),
                    product_id=c.get("product_id"),
                    rate_stn=c.get("rate_stn", 0.0),
                )
            )

        actuals = self.definition.get("actuals", {})
        for r in actuals.get("production", []):
            self.data.production_actuals.append(
                ProductionActual(
                    date=r["date"],
                    facility_id=r["facility_id"],
                    equipment_id=r["equipment_id"],
                    product_id=r["product_id"],
                    qty_stn=r.get("qty_stn", 0.0),
                )
            )
        for r in actuals.get("inventory_bod", []):
            self.data.inventory_counts.append(
                InventoryCount(
                    date=r["date"],
                    facility_id=r["facility_id"],
                    storage_id=r["storage_id"],
                    qty_stn=r.get("qty_stn", 0.0),
                )
            )
        for r in actuals.get("shipments", []):
            self.data.shipment_actuals.append(
                ShipmentActual(
                    date=r["date"],
                    facility_id=r["facility_id"],
                    product_id=r["product_id"],
                    qty_stn=r.get("qty_stn", 0.0),
                )
            )
        for r in actuals.get("transfers", []):
            self.data.transfers.append(
                Transfer(
                    date=r["date"],
                    from_facility_id=r.get("from_facility_id"),
                    to_facility_id=r.get("to_facility_id"),
                    product_id=r.get("product_id", ""),
                    qty_stn=r.get("qty_stn", 0.0),
                )
            )
        for r in self.definition.get("demand_forecast", []):
            self.data.demand_forecast.append(
                DemandForecast(
                    date=r["date"],
                    facility_id=r["facility_id"],
                    product_id=r["product_id"],
                    qty_stn=r.get("qty_stn", 0.0),
                )
            )
