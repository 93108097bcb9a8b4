"""
payment_config -- single public entrypoint for reconciliation configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.

Architecture position:
    Configuration -- sits above ``payment_kernel`` and ``payment_engines``
    and below ``payment_services``.  The kernel and engines MUST NEVER
    import from ``payment_config``; ``bridges`` translates the parsed
    configuration into engine inputs.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ConfigurationError`` -- schema validation failed.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PAYMENT_CONFIG_TRACE`` log entry with the config_id, version and
    checksum, tying each processed notification to the configuration that
    governed its extraction and matching.
"""

from __future__ import annotations

from pathlib import Path

from payment_config.loader import load_config
from payment_config.schema import ReconciliationConfig
from payment_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration set
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> ReconciliationConfig:
    """
    The ONLY public configuration entrypoint.

    Args:
        path: Override path to a configuration YAML file.  Defaults to
            payment_config/sets/default.yaml.

    Returns:
        A validated, frozen ReconciliationConfig.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_config(config_path)

    _logger.info(
        "PAYMENT_CONFIG_TRACE",
        extra={
            "trace_type": "PAYMENT_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "currency": config.currency.code,
            "path": str(config_path),
        },
    )
    return config


__all__ = ["get_active_config", "ReconciliationConfig", "DEFAULT_CONFIG_PATH"]
