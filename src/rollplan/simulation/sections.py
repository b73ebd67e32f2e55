"""Per-facility row sections built from a finished facility run."""

from dataclasses import dataclass, field
from typing import Callable

from rollplan.network.core import EquipmentType, Storage
from rollplan.product.core import ProductFamily
from rollplan.simulation.accessor import ReferenceDataAccessor
from rollplan.simulation.simulator import FacilityResult

SECTION_BOD = "bod"
SECTION_PRODUCTION = "prod"
SECTION_OUTFLOWS = "out"
SECTION_EOD = "eod"
SECTIONS = [SECTION_BOD, SECTION_PRODUCTION, SECTION_OUTFLOWS, SECTION_EOD]

INVENTORY_FAMILIES = [ProductFamily.CLINKER, ProductFamily.CEMENT]

KIND_SUBTOTAL = "subtotal"
KIND_ROW = "row"
KIND_GROUP = "group"
KIND_PLACEHOLDER = "placeholder"


@dataclass
class SectionRow:
    kind: str
    label: str
    values: dict[str, float] = field(default_factory=dict)
    storage_id: str | None = None
    equipment_id: str | None = None
    product_id: str | None = None
    product_label: str = ""


@dataclass
class FacilitySections:
    facility_id: str
    bod: list[SectionRow] = field(default_factory=list)
    production: list[SectionRow] = field(default_factory=list)
    outflows: list[SectionRow] = field(default_factory=list)
    eod: list[SectionRow] = field(default_factory=list)

    def rows_for(self, section: str) -> list[SectionRow]:
        return {
            SECTION_BOD: self.bod,
            SECTION_PRODUCTION: self.production,
            SECTION_OUTFLOWS: self.outflows,
            SECTION_EOD: self.eod,
        }[section]


class SectionBuilder:
    """Reshapes one FacilityResult into labelled rows; computes no new flows."""

    def __init__(self, accessor: ReferenceDataAccessor) -> None:
        self.accessor = accessor

    def build(self, result: FacilityResult) -> FacilitySections:
        fid = result.facility_id
        facility = self.accessor.facility(fid)
        storages = self._visible_storages(fid)

        sections = FacilitySections(facility_id=fid)
        sections.bod = self._inventory_rows(result, storages, result.bod, "INV-BOD")
        sections.eod = self._inventory_rows(result, storages, result.eod, "INV-EOD")

        if facility.runs_stage(EquipmentType.KILN):
            sections.production += self._equipment_rows(
                result, "CLINKER PRODUCTION", result.kiln_ids, result.kiln_total
            )
        if facility.runs_stage(EquipmentType.FINISH_MILL):
            sections.production += self._equipment_rows(
                result, "FINISH MILL PRODUCTION", result.mill_ids, result.mill_total
            )

        sections.outflows = self._outflow_rows(result)
        if facility.runs_stage(EquipmentType.FINISH_MILL):
            sections.outflows.append(
                SectionRow(
                    kind=KIND_SUBTOTAL,
                    label="CLK CONSUMED BY MILLS",
                    values=self._series(result, lambda d_idx: result.clinker_consumed[d_idx]),
                )
            )
        return sections

    @staticmethod
    def _series(result: FacilityResult, getter: Callable[[int], float]) -> dict[str, float]:
        return {day: float(getter(d_idx)) for d_idx, day in enumerate(result.dates)}

    def _visible_storages(self, facility_id: str) -> list[Storage]:
        """Clinker/cement storages holding at least one activated product."""
        activated = set(self.accessor.activated_product_ids(facility_id))
        visible = []
        for st in self.accessor.storages_for(facility_id):
            if self.accessor.family_of(st.product_id) not in INVENTORY_FAMILIES:
                continue
            if activated and not activated.intersection(st.allowed_product_ids):
                continue
            visible.append(st)
        return visible

    def _product_label(self, storage: Storage) -> str:
        names = []
        for pid in storage.allowed_product_ids:
            product = self.accessor.product(pid)
            if product is not None and product.name:
                names.append(product.name)
        return " / ".join(names)

    def _inventory_rows(
        self, result: FacilityResult, storages: list[Storage], ledger, suffix: str
    ) -> list[SectionRow]:
        rows: list[SectionRow] = []
        s_idx = {sid: i for i, sid in enumerate(result.storage_ids)}
        for family in INVENTORY_FAMILIES:
            group = [
                st for st in storages if self.accessor.family_of(st.product_id) == family
            ]
            if not group:
                continue
            cols = [s_idx[st.id] for st in group]
            rows.append(
                SectionRow(
                    kind=KIND_SUBTOTAL,
                    label=f"{family.value} {suffix}",
                    values=self._series(result, lambda d_idx: ledger[d_idx, cols].sum()),
                )
            )
            for st in group:
                col = s_idx[st.id]
                rows.append(
                    SectionRow(
                        kind=KIND_ROW,
                        label=st.name,
                        storage_id=st.id,
                        product_id=st.product_id,
                        product_label=self._product_label(st),
                        values=self._series(result, lambda d_idx: ledger[d_idx, col]),
                    )
                )
        return rows

    def _equipment_rows(
        self, result: FacilityResult, label: str, equipment_ids: list[str], totals
    ) -> list[SectionRow]:
        rows = [
            SectionRow(
                kind=KIND_SUBTOTAL,
                label=label,
                values=self._series(result, lambda d_idx: totals[d_idx]),
            )
        ]
        for eid in equipment_ids:
            col = result.equipment_ids.index(eid)
            equipment = self.accessor.world.equipment[eid]
            rows.append(
                SectionRow(
                    kind=KIND_ROW,
                    label=equipment.name,
                    equipment_id=eid,
                    values=self._series(result, lambda d_idx: result.produced[d_idx, col]),
                )
            )
        return rows

    def _outflow_rows(self, result: FacilityResult) -> list[SectionRow]:
        fid = result.facility_id
        rows = [SectionRow(kind=KIND_GROUP, label="CUSTOMER SHIPMENTS")]
        for product in self.accessor.active_finished_products(fid):
            rows.append(
                SectionRow(
                    kind=KIND_ROW,
                    label=product.name,
                    product_id=product.id,
                    product_label=product.name,
                    values={
                        day: result.shipped.get((day, product.id), 0.0)
                        for day in result.dates
                    },
                )
            )

        rows += self._transfer_rows(result, "TRANSFERS OUT", "→", result.transfers_out)
        rows += self._transfer_rows(result, "TRANSFERS IN", "←", result.transfers_in)
        return rows

    def _transfer_rows(
        self,
        result: FacilityResult,
        label: str,
        arrow: str,
        flows: dict[tuple[str, str], float],
    ) -> list[SectionRow]:
        rows = [SectionRow(kind=KIND_GROUP, label=label)]
        product_ids: list[str] = []
        for _, pid in flows:
            if pid not in product_ids:
                product_ids.append(pid)
        if not product_ids:
            rows.append(SectionRow(kind=KIND_PLACEHOLDER, label="No transfers recorded"))
            return rows
        for pid in product_ids:
            product = self.accessor.product(pid)
            rows.append(
                SectionRow(
                    kind=KIND_ROW,
                    label=f"{arrow} {product.name if product else pid}",
                    product_id=pid,
                    values={day: flows.get((day, pid), 0.0) for day in result.dates},
                )
            )
        return rows
