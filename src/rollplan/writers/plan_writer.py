"""
Plan export.

Writes a PlanView to disk:
- plan_rows.csv: the unified display rows, one column per date
- inventory_ledger.{csv,parquet}: BOD / flows / EOD per (date, storage)
- production_ledger.{csv,parquet}: produced quantity and metadata per (date, equipment)
- alerts.json: date-keyed alert summary plus configuration issues
"""

import csv
import json
from pathlib import Path
from typing import Any

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from rollplan.simulation.orchestrator import PlanView, cell_key
from rollplan.writers.base import BaseWriter

ROW_FIELDS = [
    "row_type",
    "section",
    "label",
    "facility_id",
    "subtotal_id",
    "is_grand",
    "storage_id",
    "equipment_id",
    "product_id",
    "product_label",
]


def inventory_frame(view: PlanView) -> pd.DataFrame:
    """One row per (date, facility, storage) with the day's ledger identity."""
    records: list[dict[str, Any]] = []
    for result in view.facility_results:
        for d_idx, day in enumerate(result.dates):
            for s_idx, sid in enumerate(result.storage_ids):
                records.append(
                    {
                        "date": day,
                        "facility_id": result.facility_id,
                        "storage_id": sid,
                        "bod": result.bod[d_idx, s_idx],
                        "production_in": result.flow_production[d_idx, s_idx],
                        "consumption_out": result.flow_consumption[d_idx, s_idx],
                        "shipment_out": result.flow_shipment[d_idx, s_idx],
                        "transfer_net": result.flow_transfer[d_idx, s_idx],
                        "eod": result.eod[d_idx, s_idx],
                        "physical_count": bool(result.counted[d_idx, s_idx]),
                    }
                )
    return pd.DataFrame.from_records(
        records,
        columns=[
            "date",
            "facility_id",
            "storage_id",
            "bod",
            "production_in",
            "consumption_out",
            "shipment_out",
            "transfer_net",
            "eod",
            "physical_count",
        ],
    )


def production_frame(view: PlanView) -> pd.DataFrame:
    """One row per (date, facility, equipment) with source and constraint."""
    records: list[dict[str, Any]] = []
    for result in view.facility_results:
        for d_idx, day in enumerate(result.dates):
            for e_idx, eid in enumerate(result.equipment_ids):
                meta = view.equipment_cell_meta.get(cell_key(day, eid))
                constraint = meta.constraint if meta else None
                records.append(
                    {
                        "date": day,
                        "facility_id": result.facility_id,
                        "equipment_id": eid,
                        "produced": result.produced[d_idx, e_idx],
                        "source": meta.source if meta else "",
                        "status": meta.status if meta else "",
                        "product_id": meta.product_id if meta else "",
                        "constraint": constraint.reason if constraint else "",
                    }
                )
    return pd.DataFrame.from_records(
        records,
        columns=[
            "date",
            "facility_id",
            "equipment_id",
            "produced",
            "source",
            "status",
            "product_id",
            "constraint",
        ],
    )


class PlanWriter(BaseWriter):
    """Writes plan views as CSV / Parquet / JSON artifacts."""

    def __init__(self, output_dir: str = "data/output", output_format: str = "csv") -> None:
        if output_format not in ("csv", "parquet"):
            raise ValueError(f"Unsupported output format: {output_format}")
        super().__init__(output_dir)
        self.output_format = output_format

    def write(self, data: Any, destination: str) -> None:
        """Write a PlanView into `destination` (a directory)."""
        if not isinstance(data, PlanView):
            raise TypeError(f"Expected PlanView, got {type(data)}")
        self.output_dir = Path(destination)
        self.write_all(data)

    def write_all(self, view: PlanView) -> list[Path]:
        return [
            self.write_rows(view),
            self._write_frame(inventory_frame(view), "inventory_ledger"),
            self._write_frame(production_frame(view), "production_ledger"),
            self.write_alerts(view),
        ]

    def write_rows(self, view: PlanView) -> Path:
        filepath = self.target("plan_rows.csv")
        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=ROW_FIELDS + view.dates)
            writer.writeheader()
            for row in view.rows:
                writer.writerow(row.as_dict())
        return filepath

    def write_alerts(self, view: PlanView) -> Path:
        filepath = self.target("alerts.json")
        payload = {
            "dates": view.dates,
            "facility_ids": view.facility_ids,
            "alerts": view.alert_summary,
            "configuration_issues": view.configuration_issues,
        }
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        return filepath

    def _write_frame(self, frame: pd.DataFrame, stem: str) -> Path:
        if self.output_format == "parquet":
            filepath = self.target(f"{stem}.parquet")
            pq.write_table(pa.Table.from_pandas(frame, preserve_index=False), filepath)
        else:
            filepath = self.target(f"{stem}.csv")
            frame.to_csv(filepath, index=False)
        return filepath
