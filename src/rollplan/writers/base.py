"""Base classes for plan exporters."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any


class BaseWriter(ABC):
    """Owns the output directory; subclasses decide what goes in it."""

    def __init__(self, output_dir: str | Path = "data/output") -> None:
        self.output_dir = Path(output_dir)

    def target(self, filename: str) -> Path:
        """Path for `filename` inside the output directory, created on demand."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir / filename

    @abstractmethod
    def write(self, data: Any, destination: str) -> None:
        """Export `data` into the `destination` directory."""
