"""
sales_config -- single public entrypoint for engine settings.

Responsibility:
    Provides the ONLY way to obtain engine settings at runtime through
    ``get_active_settings()``.  Services receive the returned
    ``EngineSettings`` by injection and never read configuration files
    themselves.

Architecture position:
    Configuration -- YAML-driven.  Sits above ``sales_kernel`` and below
    ``sales_services``.  Engines never import from ``sales_config``; they
    take the individual constants as parameters.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every ``get_active_settings()`` call emits a ``SALES_CONFIG_TRACE``
    log entry with the source file and the settings checksum, tying each
    computed schedule to the exact constants it used.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sales_config.loader import compute_checksum, load_settings
from sales_config.schema import EngineSettings

_logger = logging.getLogger("sales_kernel.config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_settings(config_path: Path | None = None) -> EngineSettings:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override settings file.  Defaults to the packaged
            ``defaults.yaml``.

    Returns:
        Frozen, validated EngineSettings.
    """
    path = config_path or DEFAULT_SETTINGS_PATH
    settings = load_settings(path)

    _logger.info(
        "SALES_CONFIG_TRACE",
        extra={
            "trace_type": "SALES_CONFIG_TRACE",
            "source": str(path),
            "checksum": compute_checksum(settings),
            "monthly_discount_rate": str(settings.monthly_discount_rate),
            "money_tolerance": str(settings.money_tolerance),
            "commission_tolerance": str(settings.commission_tolerance),
        },
    )
    return settings


__all__ = [
    "EngineSettings",
    "get_active_settings",
    "load_settings",
    "compute_checksum",
    "DEFAULT_SETTINGS_PATH",
]
