"""
portfolio_config -- single public entrypoint for engine settings.

Responsibility:
    ``get_active_config()`` is the only way services obtain settings.  It
    loads the packaged ``defaults.yaml`` (or a given file), parses it into
    frozen dataclasses and emits a PORTFOLIO_CONFIG_TRACE log record.

Architecture position:
    Configuration -- sits above ``portfolio_kernel`` and below
    ``portfolio_services``.  The kernel and engines never import it.

Failure modes:
    - ``FileNotFoundError`` -- the given settings file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

from pathlib import Path

from portfolio_config.loader import load_settings
from portfolio_config.schema import (
    AllocationSettings,
    EngineSettings,
    ImportSettings,
    ReconciliationSettings,
    ResolverSettings,
)
from portfolio_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | None = None) -> EngineSettings:
    """Load and validate engine settings.

    Args:
        config_path: Settings file. Defaults to the packaged defaults.yaml.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    settings = load_settings(path)
    _logger.info(
        "PORTFOLIO_CONFIG_TRACE",
        extra={
            "trace_type": "PORTFOLIO_CONFIG_TRACE",
            "config_path": str(path),
            "checksum": settings.checksum,
            "owner_override_count": len(settings.owner_overrides),
        },
    )
    return settings


__all__ = [
    "AllocationSettings",
    "DEFAULT_CONFIG_PATH",
    "EngineSettings",
    "ImportSettings",
    "ReconciliationSettings",
    "ResolverSettings",
    "get_active_config",
]
