from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

_YAML_CACHE: Dict[str, Any] = {}


def load_yaml(filename: str) -> Any:
    """
    Loads a YAML file shipped next to this module, with simple in-process caching.
    """
    if filename in _YAML_CACHE:
        return _YAML_CACHE[filename]

    path = Path(__file__).resolve().parent / filename
    if not path.exists():
        raise FileNotFoundError(f"Seed YAML not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    _YAML_CACHE[filename] = data
    return data


def default_settings() -> Dict[str, Any]:
    return dict(load_yaml("defaults.yaml")["settings"])
