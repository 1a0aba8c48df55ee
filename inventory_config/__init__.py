"""
inventory_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Scripts and the service facade read settings
    from the returned ``InventoryConfig``; module services receive their
    policy objects by constructor injection.

Architecture position:
    Configuration -- sits above ``inventory_kernel`` and beside
    ``inventory_modules``.  The kernel MUST NEVER import from
    ``inventory_config``.

Resolution order (later wins):
    1. ``inventory_config/defaults.yaml``
    2. the ``path`` argument, or the file named by INVENTORY_CONFIG_FILE
    3. INVENTORY_* environment overrides (see ``loader.ENV_OVERRIDES``)

Audit relevance:
    Every call emits an ``INVENTORY_CONFIG_TRACE`` log entry with the
    checksum of the merged configuration and the files it came from.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from inventory_config.loader import (
    DEFAULTS_FILE,
    env_overrides,
    load_yaml_file,
    merge,
    parse_config,
)
from inventory_config.schema import InventoryConfig

_logger = logging.getLogger("inventory_kernel.config")

CONFIG_FILE_ENV = "INVENTORY_CONFIG_FILE"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> InventoryConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Optional YAML file overlaid on the defaults.  When omitted,
            INVENTORY_CONFIG_FILE is consulted.
        environ: Environment mapping (defaults to ``os.environ``).

    Raises:
        FileNotFoundError: The named file does not exist.
        ValueError: Unknown keys or unparsable values.
    """
    env = os.environ if environ is None else environ
    sources = [str(DEFAULTS_FILE)]
    data = load_yaml_file(DEFAULTS_FILE)

    override_file = path or env.get(CONFIG_FILE_ENV)
    if override_file:
        data = merge(data, load_yaml_file(Path(override_file)))
        sources.append(str(override_file))

    data = merge(data, env_overrides(env))
    config = parse_config(data, sources=tuple(sources))

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "checksum": config.checksum,
            "sources": list(config.sources),
            "allow_over_receipt": config.restock.allow_over_receipt,
            "apply_landed_cost": config.restock.apply_landed_cost,
        },
    )
    return config


__all__ = ["InventoryConfig", "get_active_config"]
