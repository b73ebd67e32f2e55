"""Writers module for exporting plan data."""

from rollplan.writers.base import BaseWriter
from rollplan.writers.plan_writer import PlanWriter

__all__ = ["BaseWriter", "PlanWriter"]
