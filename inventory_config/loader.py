"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads YAML files, overlays environment overrides, and parses the merged
mapping into the frozen ``InventoryConfig``.  Internal tooling: runtime
callers use ``inventory_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown keys raise ``ValueError``; a typo never silently falls back to a
  default.
* ``compute_checksum`` is deterministic for equal configurations.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad boolean / integer in an environment override  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import InventoryConfig
from inventory_modules.adjustments.config import AdjustmentPolicy
from inventory_modules.restock.config import RestockPolicy

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

_TOP_LEVEL_KEYS = frozenset({"database_url", "log_level", "restock", "adjustments"})
_RESTOCK_KEYS = frozenset(
    {"allow_over_receipt", "apply_landed_cost", "order_number_prefix", "order_number_width"}
)
_ADJUSTMENT_KEYS = frozenset({"require_reason"})

# environment variable -> (section or None, key, parser name)
ENV_OVERRIDES: dict[str, tuple[str | None, str, str]] = {
    "INVENTORY_DATABASE_URL": (None, "database_url", "str"),
    "INVENTORY_LOG_LEVEL": (None, "log_level", "str"),
    "INVENTORY_ALLOW_OVER_RECEIPT": ("restock", "allow_over_receipt", "bool"),
    "INVENTORY_APPLY_LANDED_COST": ("restock", "apply_landed_cost", "bool"),
    "INVENTORY_ORDER_NUMBER_PREFIX": ("restock", "order_number_prefix", "str"),
}

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Cannot parse boolean from {value!r}")


def merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; overlay wins, nested mappings merge key by key."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """The subset of ENV_OVERRIDES present in ``environ``, as a nested dict."""
    overlay: dict[str, Any] = {}
    for var, (section, key, kind) in ENV_OVERRIDES.items():
        if var not in environ:
            continue
        raw = environ[var]
        value = parse_bool(raw) if kind == "bool" else raw
        target = overlay.setdefault(section, {}) if section else overlay
        target[key] = value
    return overlay


def _check_keys(data: Mapping[str, Any], allowed: frozenset[str], where: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"Unknown configuration keys in {where}: {', '.join(unknown)}")


def parse_config(data: Mapping[str, Any], sources: tuple[str, ...] = ()) -> InventoryConfig:
    """
    Build an ``InventoryConfig`` from a merged mapping.

    Raises:
        ValueError: unknown keys, missing database_url, or bad values.
    """
    _check_keys(data, _TOP_LEVEL_KEYS, "configuration")
    restock = dict(data.get("restock") or {})
    adjustments = dict(data.get("adjustments") or {})
    _check_keys(restock, _RESTOCK_KEYS, "restock")
    _check_keys(adjustments, _ADJUSTMENT_KEYS, "adjustments")

    if not data.get("database_url"):
        raise ValueError("database_url is required")

    for key in ("allow_over_receipt", "apply_landed_cost"):
        if key in restock:
            restock[key] = parse_bool(restock[key])
    if "order_number_width" in restock:
        restock["order_number_width"] = int(restock["order_number_width"])
    if "require_reason" in adjustments:
        adjustments["require_reason"] = parse_bool(adjustments["require_reason"])

    return InventoryConfig(
        database_url=str(data["database_url"]),
        log_level=str(data.get("log_level", "INFO")).upper(),
        restock=RestockPolicy.from_dict(restock),
        adjustments=AdjustmentPolicy.from_dict(adjustments),
        checksum=compute_checksum(data),
        sources=sources,
    )


def compute_checksum(data: Mapping[str, Any]) -> str:
    """Deterministic SHA-256 of a configuration mapping."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
