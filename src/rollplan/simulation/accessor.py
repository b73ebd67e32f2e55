"""
Reference Data Accessor.

Read-only queries over a planning snapshot. The simulator never touches the
snapshot directly; everything it needs for one facility comes through here.
"""

from rollplan.network.core import (
    CampaignBlock,
    Capability,
    DemandForecast,
    Equipment,
    Facility,
    InventoryCount,
    ProductionActual,
    ShipmentActual,
    Storage,
    Transfer,
)
from rollplan.product.core import Product, ProductFamily, Recipe
from rollplan.simulation.world import Snapshot, UnknownFacilityError


class ReferenceDataAccessor:
    def __init__(self, snapshot: Snapshot) -> None:
        self.snapshot = snapshot
        self.world = snapshot.world
        self.data = snapshot.data

    # ── Scope ──

    def resolve_scope(self, selected_ids: list[str] | None = None) -> list[str]:
        """
        Expand a selection of facility / sub-region / region / country ids
        into facility ids, preserving first-seen order. An empty selection
        means every facility.
        """
        if selected_ids is None:
            selected_ids = self.snapshot.selected_ids
        if not selected_ids:
            return list(self.world.facilities)

        resolved: list[str] = []

        def add(fac_ids: list[str]) -> None:
            for fid in fac_ids:
                if fid not in resolved:
                    resolved.append(fid)

        for sel in selected_ids:
            if sel in self.world.facilities:
                add([sel])
            elif sel in self.world.sub_regions:
                add(self._facilities_in_sub_regions({sel}))
            elif sel in self.world.regions:
                sr_ids = {
                    sr.id for sr in self.world.sub_regions.values() if sr.region_id == sel
                }
                add(self._facilities_in_sub_regions(sr_ids))
            elif sel in self.world.countries:
                r_ids = {
                    r.id for r in self.world.regions.values() if r.country_id == sel
                }
                sr_ids = {
                    sr.id
                    for sr in self.world.sub_regions.values()
                    if sr.region_id in r_ids
                }
                add(self._facilities_in_sub_regions(sr_ids))
            else:
                raise UnknownFacilityError(f"Unknown facility or scope id: {sel}")

        return resolved

    def _facilities_in_sub_regions(self, sub_region_ids: set[str]) -> list[str]:
        return [
            f.id for f in self.world.facilities.values() if f.sub_region_id in sub_region_ids
        ]

    # ── Static reference data ──

    def facility(self, facility_id: str) -> Facility:
        fac = self.world.get_facility(facility_id)
        if fac is None:
            raise UnknownFacilityError(f"Unknown facility id: {facility_id}")
        return fac

    def facility_region_id(self, facility_id: str) -> str | None:
        fac = self.facility(facility_id)
        sub_region = self.world.sub_regions.get(fac.sub_region_id or "")
        return sub_region.region_id if sub_region else None

    def product(self, product_id: str | None) -> Product | None:
        if product_id is None:
            return None
        return self.world.get_product(product_id)

    def family_of(self, product_id: str | None) -> ProductFamily:
        product = self.product(product_id)
        return product.family if product else ProductFamily.OTHER

    def equipment_for(self, facility_id: str) -> list[Equipment]:
        return [e for e in self.world.equipment.values() if e.facility_id == facility_id]

    def storages_for(self, facility_id: str) -> list[Storage]:
        return [s for s in self.world.storages.values() if s.facility_id == facility_id]

    def capabilities_for(self, equipment_id: str) -> list[Capability]:
        return [c for c in self.world.capabilities if c.equipment_id == equipment_id]

    def latest_recipe(self, product_id: str, facility_id: str) -> Recipe | None:
        return self.world.get_latest_recipe(product_id, facility_id)

    def activated_product_ids(self, facility_id: str) -> list[str]:
        return list(self.world.facility_products.get(facility_id, []))

    def active_products(self, facility_id: str) -> list[Product]:
        """Activated products, or the facility region's catalog if none are."""
        activated = set(self.activated_product_ids(facility_id))
        if activated:
            return [p for p in self.world.products.values() if p.id in activated]
        region_id = self.facility_region_id(facility_id)
        return [
            p
            for p in self.world.products.values()
            if region_id is None or p.region_id is None or p.region_id == region_id
        ]

    def active_finished_products(self, facility_id: str) -> list[Product]:
        return [p for p in self.active_products(facility_id) if p.is_finished]

    # ── Operational records ──

    def campaigns_for(self, facility_id: str) -> list[CampaignBlock]:
        return [c for c in self.data.campaigns if c.facility_id == facility_id]

    def production_actuals_for(self, facility_id: str) -> list[ProductionActual]:
        return [r for r in self.data.production_actuals if r.facility_id == facility_id]

    def inventory_counts_for(self, facility_id: str) -> list[InventoryCount]:
        return [r for r in self.data.inventory_counts if r.facility_id == facility_id]

    def shipment_actuals_for(self, facility_id: str) -> list[ShipmentActual]:
        return [r for r in self.data.shipment_actuals if r.facility_id == facility_id]

    def demand_forecast_for(self, facility_id: str) -> list[DemandForecast]:
        return [r for r in self.data.demand_forecast if r.facility_id == facility_id]

    def transfers_touching(self, facility_id: str) -> list[Transfer]:
        return [
            t
            for t in self.data.transfers
            if facility_id in (t.from_facility_id, t.to_facility_id)
        ]
