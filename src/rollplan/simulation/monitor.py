from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from rollplan.simulation.simulator import FacilityResult

DEFAULT_WARN_FRACTION = 0.75

SEVERITY_FULL = "full"
SEVERITY_STOCKOUT = "stockout"
WARN_HIGH = "high75"


@dataclass
class InventoryAlert:
    """Threshold tag for one (date, storage) cell."""

    date: str
    facility_id: str
    storage_id: str
    storage_name: str
    severity: str  # "", "full" or "stockout"
    warn: str  # "" or "high75"
    eod: float
    bod: float
    max_capacity: float | None
    reason: str = ""

    def summary(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "storage_id": self.storage_id,
            "storage_name": self.storage_name,
            "reason": self.reason,
            "facility_id": self.facility_id,
        }


def classify_inventory(
    eod: float,
    max_capacity: float | None,
    warn_fraction: float = DEFAULT_WARN_FRACTION,
) -> tuple[str, str, str]:
    """
    Returns (severity, warn, reason) for an end-of-day quantity.

    Overflow and stockout are exclusive; the high-water warning is
    independent of both.
    """
    severity = ""
    warn = ""
    reason = ""

    bounded = max_capacity is not None and max_capacity > 0
    if bounded and eod >= warn_fraction * max_capacity:
        warn = WARN_HIGH
    if bounded and eod > max_capacity:
        severity = SEVERITY_FULL
        reason = f"EOD {eod:.1f} > max {max_capacity:.1f}"
    elif eod < 0:
        severity = SEVERITY_STOCKOUT
        reason = f"EOD {eod:.1f} < 0"

    return severity, warn, reason


class ConservationAuditor:
    """Checks the ledger identities of a finished facility run."""

    def __init__(self, config: dict[str, Any] | None = None):
        sim_params = (config or {}).get("simulation_parameters", {})
        self.tolerance = sim_params.get("validation", {}).get(
            "mass_balance_tolerance", 1e-6
        )

    def check_carry_forward(self, result: FacilityResult) -> list[str]:
        """BOD(d) == EOD(d-1) wherever no physical count overrides."""
        violations: list[str] = []
        if len(result.dates) < 2:
            return violations
        carried = np.isclose(
            result.bod[1:], result.eod[:-1], atol=self.tolerance, rtol=0.0
        )
        for d_idx, s_idx in zip(*np.nonzero(~carried)):
            day = result.dates[d_idx + 1]
            storage_id = result.storage_ids[s_idx]
            if not result.counted[d_idx + 1, s_idx]:
                violations.append(
                    f"{day}|{storage_id}: BOD {result.bod[d_idx + 1, s_idx]:.3f} "
                    f"!= prior EOD {result.eod[d_idx, s_idx]:.3f}"
                )
        return violations

    def check_mass_balance(self, result: FacilityResult) -> list[str]:
        """EOD - BOD equals the sum of the day's recorded flows."""
        violations: list[str] = []
        flows = (
            result.flow_production
            - result.flow_consumption
            - result.flow_shipment
            + result.flow_transfer
        )
        drift = np.abs(result.eod - result.bod - flows)
        for d_idx, s_idx in zip(*np.nonzero(drift > self.tolerance)):
            violations.append(
                f"{result.dates[d_idx]}|{result.storage_ids[s_idx]}: "
                f"drift {drift[d_idx, s_idx]:.6f}"
            )
        return violations

    def audit(self, result: FacilityResult) -> list[str]:
        return self.check_carry_forward(result) + self.check_mass_balance(result)
