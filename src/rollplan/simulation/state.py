import logging
import math
from datetime import date, timedelta
from typing import Any

from rollplan.network.core import (
    CampaignBlock,
    CampaignStatus,
    Capability,
    Equipment,
    EquipmentType,
    ProductionActual,
    Storage,
)
from rollplan.network.recipe_matrix import RecipeMatrixBuilder
from rollplan.product.core import Product, ProductFamily, Recipe
from rollplan.simulation.accessor import ReferenceDataAccessor
from rollplan.simulation.world import EmptyHorizonError, StorageResolutionError

logger = logging.getLogger(__name__)


def coerce_qty(value: Any) -> float:
    """Missing, malformed or non-finite quantities count as zero."""
    try:
        qty = float(value)
    except (TypeError, ValueError):
        return 0.0
    return qty if math.isfinite(qty) else 0.0


def storage_capacity(storage: Storage | None) -> float | None:
    """Finite positive capacity, or None for an unbounded storage."""
    if storage is None:
        return None
    cap = coerce_qty(storage.max_capacity_stn)
    return cap if cap > 0 else None


def date_range(start: str | date, days: int) -> list[str]:
    if days <= 0:
        raise EmptyHorizonError(f"Date range must cover at least one day, got {days}")
    first = date.fromisoformat(start) if isinstance(start, str) else start
    return [(first + timedelta(days=i)).isoformat() for i in range(days)]


def shift_date(day: str, n: int) -> str:
    return (date.fromisoformat(day) + timedelta(days=n)).isoformat()


class FacilityIndex:
    """
    Read-only lookup structures for one facility over one horizon.

    Built once before the day loop so that no record filtering happens
    inside it. Maps object IDs to integer indices for the ledger arrays.
    """

    def __init__(
        self,
        accessor: ReferenceDataAccessor,
        facility_id: str,
        dates: list[str],
        config: dict[str, Any] | None = None,
    ) -> None:
        if not dates:
            raise EmptyHorizonError("Date range must cover at least one day")

        planning = (config or {}).get("simulation_parameters", {}).get("planning", {})
        self.strict = bool(planning.get("strict_storage_resolution", False))

        self.accessor = accessor
        self.facility = accessor.facility(facility_id)
        self.facility_id = facility_id
        self.dates = list(dates)

        # 1. Storages
        self.storages: list[Storage] = accessor.storages_for(facility_id)
        self.storage_id_to_idx: dict[str, int] = {
            st.id: i for i, st in enumerate(self.storages)
        }
        self.max_capacity: dict[str, float | None] = {
            st.id: storage_capacity(st) for st in self.storages
        }
        self.configuration_issues: list[str] = []
        self.storage_by_product: dict[str, Storage] = {}
        self._index_storages()
        self.clinker_storage_ids: list[str] = [
            st.id
            for st in self.storages
            if accessor.family_of(st.product_id) == ProductFamily.CLINKER
        ]

        # 2. Equipment, gated by the stages this facility type runs
        self.equipment: list[Equipment] = accessor.equipment_for(facility_id)
        self.kilns = self._stage(EquipmentType.KILN)
        self.finish_mills = self._stage(EquipmentType.FINISH_MILL)
        self.capabilities: dict[str, list[Capability]] = {
            eq.id: accessor.capabilities_for(eq.id) for eq in self.equipment
        }

        # 3. Recipes (latest version) and clinker fractions for milled products
        self.recipes: dict[str, Recipe | None] = {}
        for eq in self.finish_mills:
            for cap in self.capabilities[eq.id]:
                if cap.product_id not in self.recipes:
                    self.recipes[cap.product_id] = accessor.latest_recipe(
                        cap.product_id, facility_id
                    )
        self.clinker_fraction = self._build_clinker_fractions()

        # 4. Products that ship from here
        self.finished_products: list[Product] = accessor.active_finished_products(
            facility_id
        )

        # 5. Operational records keyed by (date, id)
        self.inventory_counts: dict[tuple[str, str], float] = {}
        for count in accessor.inventory_counts_for(facility_id):
            self.inventory_counts[(count.date, count.storage_id)] = coerce_qty(
                count.qty_stn
            )

        self.actual_production: dict[tuple[str, str, str], float] = {}
        self.actuals_by_equipment_day: dict[tuple[str, str], list[ProductionActual]] = {}
        for row in accessor.production_actuals_for(facility_id):
            key = (row.date, row.equipment_id, row.product_id)
            self.actual_production[key] = self.actual_production.get(
                key, 0.0
            ) + coerce_qty(row.qty_stn)
            self.actuals_by_equipment_day.setdefault(
                (row.date, row.equipment_id), []
            ).append(row)

        self.campaigns: dict[tuple[str, str], CampaignBlock] = {}
        for block in accessor.campaigns_for(facility_id):
            self.campaigns[(block.date, block.equipment_id)] = block

        self.shipments = self._sum_by_date_product(
            accessor.shipment_actuals_for(facility_id)
        )
        self.forecast = self._sum_by_date_product(
            accessor.demand_forecast_for(facility_id)
        )

        self.transfer_delta: dict[tuple[str, str], float] = {}
        self.transfers_out: dict[tuple[str, str], float] = {}
        self.transfers_in: dict[tuple[str, str], float] = {}
        self._index_transfers()

    def _stage(self, equipment_type: EquipmentType) -> list[Equipment]:
        if not self.facility.runs_stage(equipment_type):
            return []
        return [eq for eq in self.equipment if eq.type == equipment_type]

    def _index_storages(self) -> None:
        """First storage listing a product owns it; ambiguity is reported."""
        holders: dict[str, list[str]] = {}
        for st in self.storages:
            if len(st.allowed_product_ids) > 1:
                self.configuration_issues.append(
                    f"Storage {st.id} allows {len(st.allowed_product_ids)} products; "
                    f"resolving as {st.allowed_product_ids[0]}"
                )
            for pid in st.allowed_product_ids:
                holders.setdefault(pid, []).append(st.id)
                if pid not in self.storage_by_product:
                    self.storage_by_product[pid] = st

        for pid, storage_ids in holders.items():
            if len(storage_ids) > 1:
                self.configuration_issues.append(
                    f"Product {pid} is held by storages {', '.join(storage_ids)}; "
                    f"resolving to {storage_ids[0]}"
                )

        for issue in self.configuration_issues:
            logger.warning("Facility %s: %s", self.facility_id, issue)

        if self.strict and self.configuration_issues:
            raise StorageResolutionError(
                f"Facility {self.facility_id}: " + "; ".join(self.configuration_issues)
            )

    def _build_clinker_fractions(self) -> dict[str, float]:
        recipes = [r for r in self.recipes.values() if r is not None]
        for recipe in recipes:
            if abs(recipe.pct_discrepancy) > 1e-9:
                logger.debug(
                    "Recipe %s v%s sums to %.2f%%, consuming components as-is",
                    recipe.product_id,
                    recipe.version,
                    recipe.total_pct,
                )
        products = list(self.accessor.world.products.values())
        builder = RecipeMatrixBuilder(products, recipes)
        return builder.clinker_fractions()

    @staticmethod
    def _sum_by_date_product(rows: list[Any]) -> dict[tuple[str, str], float]:
        totals: dict[tuple[str, str], float] = {}
        for row in rows:
            key = (row.date, row.product_id)
            totals[key] = totals.get(key, 0.0) + coerce_qty(row.qty_stn)
        return totals

    def _index_transfers(self) -> None:
        for transfer in self.accessor.transfers_touching(self.facility_id):
            if not transfer.product_id:
                continue
            qty = coerce_qty(transfer.qty_stn)
            product_key = (transfer.date, transfer.product_id)
            delta = 0.0
            if transfer.from_facility_id == self.facility_id:
                delta -= qty
                self.transfers_out[product_key] = self.transfers_out.get(product_key, 0.0) + qty
            if transfer.to_facility_id == self.facility_id:
                delta += qty
                self.transfers_in[product_key] = self.transfers_in.get(product_key, 0.0) + qty

            st = self.storage_for(transfer.product_id)
            if st is None:
                continue
            key = (transfer.date, st.id)
            self.transfer_delta[key] = self.transfer_delta.get(key, 0.0) + delta

    # ── Lookups used by the day loop ──

    def storage_for(self, product_id: str | None) -> Storage | None:
        if product_id is None:
            return None
        return self.storage_by_product.get(product_id)

    def family_of(self, product_id: str | None) -> ProductFamily:
        return self.accessor.family_of(product_id)

    def expected_shipment(self, day: str, product_id: str) -> float:
        """Confirmed shipment if any positive actual, else forecast, else zero."""
        actual = self.shipments.get((day, product_id), 0.0)
        if actual > 0:
            return actual
        return self.forecast.get((day, product_id), 0.0)

    def requested_qty(self, day: str, equipment_id: str, product_id: str) -> float:
        """
        Actuals for the equipment-day replace the campaign outright; otherwise
        the campaign rate applies when it is producing this product.
        """
        if (day, equipment_id) in self.actuals_by_equipment_day:
            return self.actual_production.get((day, equipment_id, product_id), 0.0)
        block = self.campaigns.get((day, equipment_id))
        if block is None or block.product_id != product_id:
            return 0.0
        if block.resolved_status != CampaignStatus.PRODUCE:
            return 0.0
        return coerce_qty(block.rate_stn)
