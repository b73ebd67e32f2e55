"""
Per-Facility Simulator: day-by-day inventory and production projection.

One forward pass per facility. Each day:
- BOD: physical count if recorded, else the previous day's EOD
- Shipments: actual if positive, else forecast, drawn before production
- Finish mills: greedy allocation by days of cover against a shared
  clinker pool and the cement storage headroom
- Kilns: listed order, capped by clinker storage headroom
- Transfers: signed net delta per storage
- EOD: BOD + net delta, then threshold classification
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from rollplan.network.core import Equipment, Storage
from rollplan.product.core import ProductFamily, Recipe
from rollplan.simulation.accessor import ReferenceDataAccessor
from rollplan.simulation.monitor import (
    DEFAULT_WARN_FRACTION,
    InventoryAlert,
    classify_inventory,
)
from rollplan.simulation.state import FacilityIndex, coerce_qty, shift_date

logger = logging.getLogger(__name__)

SOURCE_ACTUAL = "actual"
SOURCE_PLAN = "plan"
SOURCE_NONE = "none"

REASON_CEMENT_CAPACITY = "cement silo capacity"
REASON_CLINKER_CAPACITY = "clinker storage max capacity"


@dataclass
class Constraint:
    """Why an equipment unit produced less than it was asked to."""

    reason: str
    requested: float
    used: float
    type: str = "capped"


@dataclass
class EquipmentDayMeta:
    source: str  # actual / plan / none
    status: str  # produce / maintenance / idle
    product_id: str = ""
    total_qty: float = 0.0
    multi_product: bool = False
    constraint: Constraint | None = None


@dataclass
class RequirementLine:
    equipment_id: str
    product_id: str
    requested: float
    output_storage: Storage | None
    recipe: Recipe | None = None
    clinker_fraction: float = 0.0
    headroom: float = math.inf
    expected_shipment: float = 0.0
    days_of_cover: float = 0.0


@dataclass
class FacilityResult:
    """
    Everything one facility run produces. Ledgers are numpy arrays of shape
    (n_days, n_storages) or (n_days, n_equipment); map views key them by
    (date, id).
    """

    facility_id: str
    dates: list[str]
    storage_ids: list[str]
    equipment_ids: list[str]

    bod: np.ndarray
    eod: np.ndarray
    counted: np.ndarray  # True where a physical count set the BOD

    # Signed flows per (day, storage); all stored as positive magnitudes
    # except transfers, which are net
    flow_production: np.ndarray
    flow_consumption: np.ndarray
    flow_shipment: np.ndarray
    flow_transfer: np.ndarray

    produced: np.ndarray
    kiln_total: np.ndarray
    mill_total: np.ndarray
    clinker_consumed: np.ndarray

    kiln_ids: list[str] = field(default_factory=list)
    mill_ids: list[str] = field(default_factory=list)

    shipped: dict[tuple[str, str], float] = field(default_factory=dict)
    transfers_out: dict[tuple[str, str], float] = field(default_factory=dict)
    transfers_in: dict[tuple[str, str], float] = field(default_factory=dict)
    equipment_meta: dict[tuple[str, str], EquipmentDayMeta] = field(
        default_factory=dict
    )
    alerts: dict[tuple[str, str], InventoryAlert] = field(default_factory=dict)
    alerts_by_date: dict[str, list[InventoryAlert]] = field(default_factory=dict)
    configuration_issues: list[str] = field(default_factory=list)

    @classmethod
    def allocate(cls, index: FacilityIndex) -> "FacilityResult":
        n_days = len(index.dates)
        n_storages = len(index.storages)
        n_equipment = len(index.equipment)

        def ledger() -> np.ndarray:
            return np.zeros((n_days, n_storages), dtype=np.float64)

        return cls(
            facility_id=index.facility_id,
            dates=list(index.dates),
            storage_ids=[st.id for st in index.storages],
            equipment_ids=[eq.id for eq in index.equipment],
            bod=ledger(),
            eod=ledger(),
            counted=np.zeros((n_days, n_storages), dtype=bool),
            flow_production=ledger(),
            flow_consumption=ledger(),
            flow_shipment=ledger(),
            flow_transfer=ledger(),
            produced=np.zeros((n_days, n_equipment), dtype=np.float64),
            kiln_total=np.zeros(n_days, dtype=np.float64),
            mill_total=np.zeros(n_days, dtype=np.float64),
            clinker_consumed=np.zeros(n_days, dtype=np.float64),
            kiln_ids=[eq.id for eq in index.kilns],
            mill_ids=[eq.id for eq in index.finish_mills],
            transfers_out=dict(index.transfers_out),
            transfers_in=dict(index.transfers_in),
            configuration_issues=list(index.configuration_issues),
        )

    def net_delta(self, d_idx: int) -> np.ndarray:
        return (
            self.flow_production[d_idx]
            - self.flow_consumption[d_idx]
            - self.flow_shipment[d_idx]
            + self.flow_transfer[d_idx]
        )

    def _storage_map(self, ledger: np.ndarray) -> dict[tuple[str, str], float]:
        return {
            (day, sid): float(ledger[d_idx, s_idx])
            for d_idx, day in enumerate(self.dates)
            for s_idx, sid in enumerate(self.storage_ids)
        }

    def bod_map(self) -> dict[tuple[str, str], float]:
        return self._storage_map(self.bod)

    def eod_map(self) -> dict[tuple[str, str], float]:
        return self._storage_map(self.eod)

    def produced_map(self) -> dict[tuple[str, str], float]:
        return {
            (day, eid): float(self.produced[d_idx, e_idx])
            for d_idx, day in enumerate(self.dates)
            for e_idx, eid in enumerate(self.equipment_ids)
        }

    def bod_at(self, day: str, storage_id: str) -> float:
        return float(
            self.bod[self.dates.index(day), self.storage_ids.index(storage_id)]
        )

    def eod_at(self, day: str, storage_id: str) -> float:
        return float(
            self.eod[self.dates.index(day), self.storage_ids.index(storage_id)]
        )

    def produced_at(self, day: str, equipment_id: str) -> float:
        return float(
            self.produced[self.dates.index(day), self.equipment_ids.index(equipment_id)]
        )


class FacilitySimulator:
    """
    Runs the allocation day loop for one facility at a time.

    Stateless between calls: every `simulate` builds its own index and
    ledgers, so separate facilities never share working state.
    """

    def __init__(
        self, accessor: ReferenceDataAccessor, config: dict[str, Any] | None = None
    ) -> None:
        self.accessor = accessor
        self.config = config or {}

        sim_params = self.config.get("simulation_parameters", {})
        planning = sim_params.get("planning", {})
        self.warn_fraction = float(
            planning.get("warn_fraction", DEFAULT_WARN_FRACTION)
        )
        self.cover_sentinel = float(planning.get("days_of_cover_sentinel", 99999.0))
        self.epsilon = float(
            sim_params.get("global_constants", {}).get("epsilon", 1e-6)
        )

    def simulate(self, facility_id: str, dates: list[str]) -> FacilityResult:
        index = FacilityIndex(self.accessor, facility_id, dates, self.config)
        result = FacilityResult.allocate(index)

        self._seed_opening_balance(index, result)
        for d_idx, day in enumerate(index.dates):
            self._step(index, result, d_idx, day)

        logger.debug(
            "Facility %s simulated over %d days: %d alerts",
            facility_id,
            len(index.dates),
            len(result.alerts),
        )
        return result

    def _seed_opening_balance(
        self, index: FacilityIndex, result: FacilityResult
    ) -> None:
        """Count on the start date, else the count from the day before, else 0."""
        start = index.dates[0]
        day_before = shift_date(start, -1)
        for s_idx, st in enumerate(index.storages):
            today = index.inventory_counts.get((start, st.id))
            if today is not None:
                result.bod[0, s_idx] = today
                result.counted[0, s_idx] = True
                continue
            result.bod[0, s_idx] = index.inventory_counts.get((day_before, st.id), 0.0)

    def _step(
        self, index: FacilityIndex, result: FacilityResult, d_idx: int, day: str
    ) -> None:
        if d_idx > 0:
            self._carry_forward(index, result, d_idx, day)

        constraints: dict[str, Constraint] = {}

        shipped = self._apply_shipments(index, result, d_idx, day)

        kiln_lines = self._requirement_lines(index, index.kilns, day)
        mill_lines = self._requirement_lines(index, index.finish_mills, day)
        self._rank_mill_lines(index, result, d_idx, mill_lines, shipped)

        # Pool is sized on requested kiln output, before kilns are capped
        clinker_bod = sum(
            result.bod[d_idx, index.storage_id_to_idx[sid]]
            for sid in index.clinker_storage_ids
        )
        remaining_clinker = clinker_bod + sum(line.requested for line in kiln_lines)

        self._allocate_mills(index, result, d_idx, mill_lines, remaining_clinker, constraints)
        self._allocate_kilns(index, result, d_idx, kiln_lines, constraints)
        self._apply_transfers(index, result, d_idx, day)
        self._tag_equipment(index, result, day, constraints)
        self._close_day(index, result, d_idx, day)

        logger.debug(
            "%s %s: kilns=%.1f mills=%.1f clinker_used=%.1f",
            index.facility_id,
            day,
            result.kiln_total[d_idx],
            result.mill_total[d_idx],
            result.clinker_consumed[d_idx],
        )

    def _carry_forward(
        self, index: FacilityIndex, result: FacilityResult, d_idx: int, day: str
    ) -> None:
        for s_idx, st in enumerate(index.storages):
            count = index.inventory_counts.get((day, st.id))
            if count is not None:
                result.bod[d_idx, s_idx] = count
                result.counted[d_idx, s_idx] = True
            else:
                result.bod[d_idx, s_idx] = result.eod[d_idx - 1, s_idx]

    def _apply_shipments(
        self, index: FacilityIndex, result: FacilityResult, d_idx: int, day: str
    ) -> dict[str, float]:
        shipped: dict[str, float] = {}
        for product in index.finished_products:
            qty = index.expected_shipment(day, product.id)
            result.shipped[(day, product.id)] = qty
            shipped[product.id] = qty
            if qty:
                st = index.storage_for(product.id)
                if st is not None:
                    result.flow_shipment[d_idx, index.storage_id_to_idx[st.id]] += qty
        return shipped

    def _requirement_lines(
        self, index: FacilityIndex, equipment: list[Equipment], day: str
    ) -> list[RequirementLine]:
        lines = []
        for eq in equipment:
            for cap in index.capabilities[eq.id]:
                requested = index.requested_qty(day, eq.id, cap.product_id)
                if not requested:
                    continue
                lines.append(
                    RequirementLine(
                        equipment_id=eq.id,
                        product_id=cap.product_id,
                        requested=requested,
                        output_storage=index.storage_for(cap.product_id),
                        recipe=index.recipes.get(cap.product_id),
                        clinker_fraction=index.clinker_fraction.get(cap.product_id, 0.0),
                    )
                )
        return lines

    def _rank_mill_lines(
        self,
        index: FacilityIndex,
        result: FacilityResult,
        d_idx: int,
        lines: list[RequirementLine],
        shipped: dict[str, float],
    ) -> None:
        """Least days of cover first, then biggest shipment, then equipment id."""
        day = index.dates[d_idx]
        for line in lines:
            st = line.output_storage
            bod_out = 0.0
            max_cap = None
            if st is not None:
                bod_out = float(result.bod[d_idx, index.storage_id_to_idx[st.id]])
                max_cap = index.max_capacity[st.id]
            ship_out = shipped.get(line.product_id, 0.0)
            if max_cap is not None:
                line.headroom = max(0.0, max_cap - (bod_out - ship_out))
            line.expected_shipment = index.expected_shipment(day, line.product_id)
            if line.expected_shipment > 0:
                line.days_of_cover = max(0.0, bod_out) / line.expected_shipment
            else:
                line.days_of_cover = self.cover_sentinel

        lines.sort(
            key=lambda ln: (ln.days_of_cover, -ln.expected_shipment, ln.equipment_id)
        )

    def _allocate_mills(
        self,
        index: FacilityIndex,
        result: FacilityResult,
        d_idx: int,
        lines: list[RequirementLine],
        remaining_clinker: float,
        constraints: dict[str, Constraint],
    ) -> None:
        eq_idx = {eid: i for i, eid in enumerate(result.equipment_ids)}

        for line in lines:
            if line.clinker_fraction > 0:
                max_by_clinker = max(0.0, remaining_clinker / line.clinker_fraction)
            else:
                max_by_clinker = math.inf
            used = max(0.0, min(line.requested, line.headroom, max_by_clinker))

            if used < line.requested - self.epsilon:
                reasons = []
                if line.headroom < line.requested - self.epsilon:
                    reasons.append(REASON_CEMENT_CAPACITY)
                if max_by_clinker < line.requested - self.epsilon:
                    reasons.append(
                        f"clinker scarcity ({line.days_of_cover:.1f}d cover)"
                    )
                self._record_constraint(
                    constraints,
                    line.equipment_id,
                    " + ".join(reasons) or "constraint",
                    line.requested,
                    used,
                )
            if used <= 0:
                continue

            result.produced[d_idx, eq_idx[line.equipment_id]] += used
            result.mill_total[d_idx] += used
            if line.output_storage is not None:
                s_idx = index.storage_id_to_idx[line.output_storage.id]
                result.flow_production[d_idx, s_idx] += used

            if line.recipe is None:
                continue
            for comp in line.recipe.components:
                comp_qty = used * comp.pct_value / 100.0
                comp_st = index.storage_for(comp.material_id)
                if comp_st is not None:
                    s_idx = index.storage_id_to_idx[comp_st.id]
                    result.flow_consumption[d_idx, s_idx] += comp_qty
                if index.family_of(comp.material_id) == ProductFamily.CLINKER:
                    result.clinker_consumed[d_idx] += comp_qty
                    remaining_clinker = max(0.0, remaining_clinker - comp_qty)

    def _allocate_kilns(
        self,
        index: FacilityIndex,
        result: FacilityResult,
        d_idx: int,
        lines: list[RequirementLine],
        constraints: dict[str, Constraint],
    ) -> None:
        eq_idx = {eid: i for i, eid in enumerate(result.equipment_ids)}

        for line in lines:
            used = line.requested
            st = line.output_storage
            max_cap = index.max_capacity[st.id] if st is not None else None
            if st is not None and max_cap is not None:
                s_idx = index.storage_id_to_idx[st.id]
                committed = result.bod[d_idx, s_idx] + result.net_delta(d_idx)[s_idx]
                headroom = max(0.0, max_cap - committed)
                used = min(line.requested, headroom)
                if used < line.requested - self.epsilon:
                    self._record_constraint(
                        constraints,
                        line.equipment_id,
                        REASON_CLINKER_CAPACITY,
                        line.requested,
                        used,
                    )
            if used <= 0:
                continue

            result.produced[d_idx, eq_idx[line.equipment_id]] += used
            result.kiln_total[d_idx] += used
            if st is not None:
                result.flow_production[d_idx, index.storage_id_to_idx[st.id]] += used

    @staticmethod
    def _record_constraint(
        constraints: dict[str, Constraint],
        equipment_id: str,
        reason: str,
        requested: float,
        used: float,
    ) -> None:
        previous = constraints.get(equipment_id)
        if previous is not None:
            reason = f"{previous.reason} + {reason}"
        constraints[equipment_id] = Constraint(
            reason=reason, requested=requested, used=used
        )

    def _apply_transfers(
        self, index: FacilityIndex, result: FacilityResult, d_idx: int, day: str
    ) -> None:
        for s_idx, st in enumerate(index.storages):
            delta = index.transfer_delta.get((day, st.id))
            if delta:
                result.flow_transfer[d_idx, s_idx] += delta

    def _tag_equipment(
        self,
        index: FacilityIndex,
        result: FacilityResult,
        day: str,
        constraints: dict[str, Constraint],
    ) -> None:
        for eq in index.equipment:
            constraint = constraints.get(eq.id)
            rows = [
                r
                for r in index.actuals_by_equipment_day.get((day, eq.id), [])
                if coerce_qty(r.qty_stn) != 0
            ]
            if rows:
                dominant = max(rows, key=lambda r: coerce_qty(r.qty_stn))
                meta = EquipmentDayMeta(
                    source=SOURCE_ACTUAL,
                    status="produce",
                    product_id=dominant.product_id or "",
                    total_qty=sum(coerce_qty(r.qty_stn) for r in rows),
                    multi_product=len(rows) > 1,
                    constraint=constraint,
                )
            elif (day, eq.id) in index.campaigns:
                block = index.campaigns[(day, eq.id)]
                meta = EquipmentDayMeta(
                    source=SOURCE_PLAN,
                    status=block.resolved_status.value,
                    product_id=block.product_id or "",
                    total_qty=coerce_qty(block.rate_stn),
                    constraint=constraint,
                )
            else:
                meta = EquipmentDayMeta(
                    source=SOURCE_NONE, status="idle", constraint=constraint
                )
            result.equipment_meta[(day, eq.id)] = meta

    def _close_day(
        self, index: FacilityIndex, result: FacilityResult, d_idx: int, day: str
    ) -> None:
        result.eod[d_idx] = result.bod[d_idx] + result.net_delta(d_idx)

        for s_idx, st in enumerate(index.storages):
            eod = float(result.eod[d_idx, s_idx])
            max_cap = index.max_capacity[st.id]
            severity, warn, reason = classify_inventory(
                eod, max_cap, self.warn_fraction
            )
            if not (severity or warn):
                continue
            alert = InventoryAlert(
                date=day,
                facility_id=index.facility_id,
                storage_id=st.id,
                storage_name=st.name,
                severity=severity,
                warn=warn,
                eod=eod,
                bod=float(result.bod[d_idx, s_idx]),
                max_capacity=max_cap,
                reason=reason,
            )
            result.alerts[(day, st.id)] = alert
            result.alerts_by_date.setdefault(day, []).append(alert)
