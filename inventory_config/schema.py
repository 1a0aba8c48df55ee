"""
Configuration Schema (``inventory_config.schema``).

Frozen dataclasses for the runtime configuration.  Module policies are
defined by their modules and composed here.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from inventory_modules.adjustments.config import AdjustmentPolicy
from inventory_modules.restock.config import RestockPolicy


@dataclass(frozen=True)
class InventoryConfig:
    """The single runtime configuration artifact."""

    database_url: str
    log_level: str = "INFO"
    restock: RestockPolicy = field(default_factory=RestockPolicy)
    adjustments: AdjustmentPolicy = field(default_factory=AdjustmentPolicy)
    checksum: str = ""
    sources: tuple[str, ...] = ()
