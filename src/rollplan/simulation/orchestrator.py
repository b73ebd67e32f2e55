"""
Plan Assembler.

Runs the facility simulator once per facility in scope and merges the
per-facility results into one presentation-neutral plan view: ordered rows,
a `date|entityId` cell metadata index and a date-keyed alert summary.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from rollplan.simulation.accessor import ReferenceDataAccessor
from rollplan.simulation.monitor import InventoryAlert
from rollplan.simulation.sections import (
    KIND_GROUP,
    KIND_PLACEHOLDER,
    KIND_SUBTOTAL,
    SECTIONS,
    FacilitySections,
    SectionBuilder,
)
from rollplan.simulation.simulator import (
    EquipmentDayMeta,
    FacilityResult,
    FacilitySimulator,
)
from rollplan.simulation.state import date_range
from rollplan.simulation.world import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 35

SECTION_LABELS = {
    "bod": "INV-BOD [STn]",
    "prod": "PROD [STn/day]",
    "out": "SHIPMENTS [STn]",
    "eod": "INV-EOD [STn]",
}

ROW_SECTION_HEADER = "section-header"
ROW_SUBTOTAL_HEADER = "subtotal-header"
ROW_FACILITY_HEADER = "facility-header"
ROW_GROUP_LABEL = "group-label"
ROW_PLACEHOLDER = "placeholder"
ROW_CHILD = "child"


def cell_key(day: str, entity_id: str) -> str:
    return f"{day}|{entity_id}"


@dataclass
class PlanRow:
    row_type: str
    section: str
    label: str
    values: dict[str, float] = field(default_factory=dict)
    facility_id: str | None = None
    subtotal_id: str | None = None
    is_grand: bool = False
    facility_code: str = ""
    storage_id: str | None = None
    equipment_id: str | None = None
    product_id: str | None = None
    product_label: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "row_type": self.row_type,
            "section": self.section,
            "label": self.label,
            "facility_id": self.facility_id or "",
            "subtotal_id": self.subtotal_id or "",
            "is_grand": self.is_grand,
            "storage_id": self.storage_id or "",
            "equipment_id": self.equipment_id or "",
            "product_id": self.product_id or "",
            "product_label": self.product_label,
            **self.values,
        }


@dataclass
class PlanView:
    dates: list[str]
    rows: list[PlanRow]
    facility_ids: list[str]
    equipment_cell_meta: dict[str, EquipmentDayMeta] = field(default_factory=dict)
    inventory_cell_meta: dict[str, InventoryAlert] = field(default_factory=dict)
    alert_summary: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    facility_results: list[FacilityResult] = field(default_factory=list)
    configuration_issues: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_multi_facility(self) -> bool:
        return len(self.facility_ids) > 1

    def alert_count(self) -> int:
        return sum(len(alerts) for alerts in self.alert_summary.values())


class PlanAssembler:
    """
    Resolves scope, simulates each facility and stitches the results.

    Facility runs are independent; they are executed sequentially in scope
    order so that output ordering is deterministic.
    """

    def __init__(self, snapshot: Snapshot, config: dict[str, Any] | None = None) -> None:
        self.snapshot = snapshot
        self.config = config or {}
        self.accessor = ReferenceDataAccessor(snapshot)
        self.simulator = FacilitySimulator(self.accessor, self.config)
        self.section_builder = SectionBuilder(self.accessor)

        planning = self.config.get("simulation_parameters", {}).get("planning", {})
        self.horizon_days = int(planning.get("horizon_days", DEFAULT_HORIZON_DAYS))

    def run(
        self,
        start: str | date,
        days: int | None = None,
        selected_ids: list[str] | None = None,
    ) -> PlanView:
        dates = date_range(start, self.horizon_days if days is None else days)
        facility_ids = self.accessor.resolve_scope(selected_ids)

        logger.info(
            "Planning %d facilities from %s over %d days",
            len(facility_ids),
            dates[0],
            len(dates),
        )

        results = [self.simulator.simulate(fid, dates) for fid in facility_ids]
        sections = [self.section_builder.build(r) for r in results]

        view = PlanView(
            dates=dates,
            rows=self._unify_rows(dates, sections),
            facility_ids=facility_ids,
            facility_results=results,
        )
        self._merge_metadata(view, results)
        return view

    def _merge_metadata(self, view: PlanView, results: list[FacilityResult]) -> None:
        for result in results:
            for (day, eid), meta in result.equipment_meta.items():
                view.equipment_cell_meta[cell_key(day, eid)] = meta
            for (day, sid), alert in result.alerts.items():
                view.inventory_cell_meta[cell_key(day, sid)] = alert
            for day, alerts in result.alerts_by_date.items():
                view.alert_summary.setdefault(day, []).extend(
                    a.summary() for a in alerts
                )
            if result.configuration_issues:
                view.configuration_issues[result.facility_id] = list(
                    result.configuration_issues
                )

    def _grand_totals(
        self, dates: list[str], sections: list[FacilitySections], section: str
    ) -> list[PlanRow]:
        """Same-label subtotals summed across facilities."""
        combined: dict[str, PlanRow] = {}
        for fs in sections:
            for row in fs.rows_for(section):
                if row.kind != KIND_SUBTOTAL:
                    continue
                grand = combined.get(row.label)
                if grand is None:
                    grand = PlanRow(
                        row_type=ROW_SUBTOTAL_HEADER,
                        section=section,
                        label=f"∑ {row.label}",
                        values={day: 0.0 for day in dates},
                        subtotal_id=f"grand_{section}_{row.label}",
                        is_grand=True,
                    )
                    combined[row.label] = grand
                for day in dates:
                    grand.values[day] += row.values.get(day, 0.0)
        return list(combined.values())

    def _unify_rows(
        self, dates: list[str], sections: list[FacilitySections]
    ) -> list[PlanRow]:
        multi = len(sections) > 1
        rows: list[PlanRow] = []

        for section in SECTIONS:
            rows.append(
                PlanRow(
                    row_type=ROW_SECTION_HEADER,
                    section=section,
                    label=SECTION_LABELS[section],
                )
            )
            if multi:
                rows.extend(self._grand_totals(dates, sections, section))

            for fs in sections:
                section_rows = fs.rows_for(section)
                if not section_rows:
                    continue

                facility = self.accessor.facility(fs.facility_id)
                if multi:
                    rows.append(
                        PlanRow(
                            row_type=ROW_FACILITY_HEADER,
                            section=section,
                            label=facility.name or facility.id,
                            facility_id=facility.id,
                            facility_code=facility.code or facility.id,
                        )
                    )

                current_subtotal = None
                for row in section_rows:
                    if row.kind == KIND_GROUP:
                        rows.append(
                            PlanRow(
                                row_type=ROW_GROUP_LABEL,
                                section=section,
                                label=row.label,
                                facility_id=facility.id,
                            )
                        )
                        current_subtotal = None
                        continue
                    if row.kind == KIND_PLACEHOLDER:
                        rows.append(
                            PlanRow(
                                row_type=ROW_PLACEHOLDER,
                                section=section,
                                label=row.label,
                                facility_id=facility.id,
                            )
                        )
                        continue

                    row_type = ROW_CHILD
                    if row.kind == KIND_SUBTOTAL:
                        current_subtotal = f"sub_{facility.id}_{section}_{row.label}"
                        row_type = ROW_SUBTOTAL_HEADER
                    rows.append(
                        PlanRow(
                            row_type=row_type,
                            section=section,
                            label=row.label,
                            values=dict(row.values),
                            facility_id=facility.id,
                            subtotal_id=current_subtotal,
                            storage_id=row.storage_id,
                            equipment_id=row.equipment_id,
                            product_id=row.product_id,
                            product_label=row.product_label,
                        )
                    )
        return rows


def build_production_plan_view(
    snapshot: Snapshot,
    start: str | date,
    days: int = DEFAULT_HORIZON_DAYS,
    config: dict[str, Any] | None = None,
) -> PlanView:
    """Plan every facility in the snapshot's selection (or all of them)."""
    return PlanAssembler(snapshot, config).run(start, days)
