import json
from pathlib import Path
from typing import Any


def _load_json_object(final_path: Path) -> dict[str, Any]:
    with open(final_path, encoding="utf-8") as f:
        data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError(f"Expected dict from {final_path}, got {type(data)}")
        return data


def load_simulation_config(config_path: str | None = None) -> dict[str, Any]:
    """
    Loads the planning engine configuration.
    If no path is provided, looks for simulation_config.json in the config directory.
    """
    if config_path is None:
        # Default to the file next to this script
        final_path = Path(__file__).parent / "simulation_config.json"
    else:
        final_path = Path(config_path)
    return _load_json_object(final_path)


def load_snapshot_definition(snapshot_path: str | None = None) -> dict[str, Any]:
    """
    Loads a planning snapshot (org, catalog, equipment, storages, recipes,
    campaigns and actuals).
    If no path is provided, looks for sample_snapshot.json in the config directory.
    """
    if snapshot_path is None:
        final_path = Path(__file__).parent / "sample_snapshot.json"
    else:
        final_path = Path(snapshot_path)
    return _load_json_object(final_path)
