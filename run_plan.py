"""
Rolling Production Plan Runner.

Usage:
    python run_plan.py --start 2026-01-01                      # Default 35-day plan
    python run_plan.py --start 2026-01-01 --days 14            # Two weeks
    python run_plan.py --snapshot data/snapshot.json           # Custom snapshot
    python run_plan.py --facility PLT-MIA --facility GRD-TPA   # Explicit scope
"""

import argparse
import logging
import time

from rollplan.config.loader import load_simulation_config, load_snapshot_definition
from rollplan.simulation.builder import SnapshotBuilder
from rollplan.simulation.monitor import ConservationAuditor
from rollplan.simulation.orchestrator import PlanAssembler
from rollplan.writers import PlanWriter


def main() -> None:
    """Run the rolling production plan."""
    parser = argparse.ArgumentParser(
        description="Rolling Production Plan Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_plan.py --start 2026-01-01 --days 7 --no-export   # Quick look
  python run_plan.py --start 2026-01-01 --format parquet       # Parquet ledgers
        """,
    )

    parser.add_argument(
        "--start",
        type=str,
        default="2026-01-01",
        help="First plan date, ISO yyyy-mm-dd (default: 2026-01-01)",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Horizon in days (default: planning.horizon_days from config)",
    )
    parser.add_argument(
        "--snapshot",
        type=str,
        default=None,
        help="Snapshot JSON (default: bundled sample_snapshot.json)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Engine config JSON (default: bundled simulation_config.json)",
    )
    parser.add_argument(
        "--facility",
        action="append",
        default=None,
        help="Facility / sub-region / region / country id in scope (repeatable)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="data/output",
        help="Directory for output artifacts",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["csv", "parquet"],
        default="csv",
        help="Ledger output format: csv (default) or parquet",
    )
    parser.add_argument(
        "--no-export",
        action="store_true",
        help="Skip writing artifacts",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(asctime)s - %(levelname)s - %(message)s"
        )

    config = load_simulation_config(args.config)
    snapshot = SnapshotBuilder(load_snapshot_definition(args.snapshot)).build()

    print(f"Planning from {args.start} ({len(snapshot.world.facilities)} facilities loaded)...")
    start_time = time.time()

    assembler = PlanAssembler(snapshot, config)
    view = assembler.run(args.start, args.days, args.facility)

    duration = time.time() - start_time
    print(f"Plan built in {duration:.2f} seconds.")

    auditor = ConservationAuditor(config)
    for result in view.facility_results:
        for violation in auditor.audit(result):
            print(f"  AUDIT {result.facility_id}: {violation}")

    print(f"\nAlerts across {len(view.dates)} days: {view.alert_count()}")
    for day in view.dates:
        for alert in view.alert_summary.get(day, []):
            if alert["severity"]:
                print(f"  {day} {alert['facility_id']:>10} {alert['storage_name']}: {alert['reason']}")

    for facility_id, issues in view.configuration_issues.items():
        for issue in issues:
            print(f"  CONFIG {facility_id}: {issue}")

    if not args.no_export:
        writer = PlanWriter(output_dir=args.output_dir, output_format=args.format)
        paths = writer.write_all(view)
        print(f"\nArtifacts written to {writer.output_dir} ({len(paths)} files)")


if __name__ == "__main__":
    main()
