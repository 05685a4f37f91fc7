"""
quote_config -- single public entrypoint for approval configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads the YAML file or
    ``QUOTE_*`` environment variables directly.

Architecture position:
    Configuration -- sits above ``quote_kernel`` and below
    ``quote_services``.  The kernel MUST NEVER import from
    ``quote_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - The seed role-limit ladder has passed ``validate_role_limits`` before
      a config object is returned.

Failure modes:
    - ``FileNotFoundError`` -- the configured YAML path does not exist.
    - ``ValueError`` -- the seed ladder failed validation.

Audit relevance:
    Every successful call emits a ``QUOTE_CONFIG_TRACE`` log entry with the
    source path and checksum of the configuration in force.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from quote_config.loader import apply_env_overrides, load_yaml_file, parse_config
from quote_config.schema import (
    ApprovalSettings,
    DatabaseSettings,
    ExportSettings,
    QuoteApprovalConfig,
    RoleLimitDef,
)
from quote_config.validator import ConfigValidationResult, validate_role_limits
from quote_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "QUOTE_APPROVAL_CONFIG"

__all__ = [
    "get_active_config",
    "QuoteApprovalConfig",
    "ApprovalSettings",
    "ExportSettings",
    "DatabaseSettings",
    "RoleLimitDef",
    "ConfigValidationResult",
    "validate_role_limits",
]


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> QuoteApprovalConfig:
    """The ONLY public configuration entrypoint.

    Resolution order for the YAML file: ``config_path``, then
    ``$QUOTE_APPROVAL_CONFIG``, then the bundled ``defaults.yaml``.
    ``QUOTE_APPROVAL_DATABASE_URL`` and ``QUOTE_EXPORT_*`` variables
    override the file.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ValueError: If the seed role-limit ladder fails validation.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)

    data = apply_env_overrides(load_yaml_file(path), env)
    config = parse_config(data, source_path=str(path))

    validation = validate_role_limits(config.approval.role_limits)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("role_limit_config_warning", extra={"detail": warning})

    _logger.info(
        "QUOTE_CONFIG_TRACE",
        extra={
            "trace_type": "QUOTE_CONFIG_TRACE",
            "source_path": config.source_path,
            "checksum": config.checksum,
            "role_limit_count": len(config.approval.role_limits),
            "dual_control_threshold": config.approval.dual_control_threshold,
            "export_enabled": config.export.enabled,
        },
    )
    return config
