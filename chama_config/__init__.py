"""
chama_config -- single public entrypoint for chama configuration.

Responsibility:
    Provides the one way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a ``ChamaConfiguration`` parsed from
    a YAML set under ``chama_config/sets/``.

Architecture position:
    Configuration.  This package sits beside ``chama_kernel``; the kernel
    never imports from ``chama_config``.  The CLI reads a configuration set
    and hands its parameters to ``ConfigService.seed_defaults()``.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration set does not exist.
    - ``ValueError`` / ``KeyError`` -- the YAML is structurally invalid.

Audit relevance:
    Every successful ``get_active_config()`` call logs a
    ``chama_config_loaded`` entry with the set name and checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from chama_config.loader import compute_checksum, load_configuration
from chama_config.schema import ChamaConfiguration, ParameterDef

_logger = logging.getLogger("chama_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_SET = "default"


def get_active_config(
    set_name: str = DEFAULT_SET,
    config_path: Path | None = None,
) -> ChamaConfiguration:
    """Load and return a configuration set.

    Args:
        set_name: Name of a YAML file (without suffix) under
            ``chama_config/sets/``.  Ignored when ``config_path`` is given.
        config_path: Explicit path to a configuration YAML file.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If the configuration is invalid.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_DIR / f"{set_name}.yaml"
    config = load_configuration(path)

    _logger.info(
        "chama_config_loaded",
        extra={
            "config_name": config.name,
            "config_path": str(path),
            "checksum": config.checksum,
            "parameter_count": len(config.parameters),
        },
    )
    return config


__all__ = [
    "ChamaConfiguration",
    "ParameterDef",
    "compute_checksum",
    "get_active_config",
]
