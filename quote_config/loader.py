"""
Configuration Loader (``quote_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``quote_config.schema`` dataclasses.  Runtime code should call
``quote_config.get_active_config()`` rather than this module.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in a role limit  -> ``KeyError`` propagates.
* Non-numeric amounts  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml

from quote_config.schema import (
    ApprovalSettings,
    DatabaseSettings,
    ExportSettings,
    QuoteApprovalConfig,
    RoleLimitDef,
)

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents (empty dict for an empty file)."""
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def _to_decimal(value: Any, field_name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field_name} must be numeric, got {value!r}") from None


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_STRINGS


def parse_role_limit(data: Mapping[str, Any]) -> RoleLimitDef:
    """Parse one ``role_limits`` entry."""
    max_raw = data.get("max_amount")
    return RoleLimitDef(
        role=str(data["role"]),
        min_amount=_to_decimal(data["min_amount"], "min_amount"),
        max_amount=None if max_raw is None else _to_decimal(max_raw, "max_amount"),
    )


def parse_approval_settings(data: Mapping[str, Any]) -> ApprovalSettings:
    defaults = ApprovalSettings()
    dual = data.get("dual_control", {}) or {}
    return ApprovalSettings(
        role_limits=tuple(parse_role_limit(d) for d in data.get("role_limits", ()) or ()),
        dual_control_threshold=_to_decimal(
            dual.get("threshold", defaults.dual_control_threshold),
            "dual_control.threshold",
        ),
        dual_control_level=str(dual.get("level", defaults.dual_control_level)),
        dual_control_approvers=int(dual.get("approvers", defaults.dual_control_approvers)),
        pending_recent_actions=int(
            data.get("pending_recent_actions", defaults.pending_recent_actions)
        ),
    )


def parse_export_settings(data: Mapping[str, Any]) -> ExportSettings:
    defaults = ExportSettings()
    return ExportSettings(
        enabled=_to_bool(data.get("enabled", defaults.enabled)),
        url=str(data.get("url", defaults.url) or ""),
        username=str(data.get("username", defaults.username) or ""),
        password=str(data.get("password", defaults.password) or ""),
        timeout_seconds=float(data.get("timeout_seconds", defaults.timeout_seconds)),
        max_attempts=int(data.get("max_attempts", defaults.max_attempts)),
        retry_delay_seconds=float(
            data.get("retry_delay_seconds", defaults.retry_delay_seconds)
        ),
    )


def parse_database_settings(data: Mapping[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=str(data.get("url", defaults.url)),
        echo=_to_bool(data.get("echo", defaults.echo)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
    )


def parse_config(data: Mapping[str, Any], source_path: str | None = None) -> QuoteApprovalConfig:
    """Parse the root YAML mapping."""
    return QuoteApprovalConfig(
        approval=parse_approval_settings(data.get("approval", {}) or {}),
        export=parse_export_settings(data.get("export", {}) or {}),
        database=parse_database_settings(data.get("database", {}) or {}),
        log_level=str(data.get("log_level", "INFO")).upper(),
        source_path=source_path,
        checksum=compute_checksum(data),
    )


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """Overlay ``QUOTE_APPROVAL_*`` / ``QUOTE_EXPORT_*`` variables onto raw YAML data."""
    merged = {k: (dict(v) if isinstance(v, dict) else v) for k, v in data.items()}

    if "QUOTE_APPROVAL_DATABASE_URL" in environ:
        merged.setdefault("database", {})["url"] = environ["QUOTE_APPROVAL_DATABASE_URL"]

    export_keys = {
        "QUOTE_EXPORT_ENABLED": "enabled",
        "QUOTE_EXPORT_URL": "url",
        "QUOTE_EXPORT_USERNAME": "username",
        "QUOTE_EXPORT_PASSWORD": "password",
    }
    for env_key, cfg_key in export_keys.items():
        if env_key in environ:
            merged.setdefault("export", {})[cfg_key] = environ[env_key]

    return merged


def compute_checksum(data: Mapping[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed configuration (secrets excluded)."""
    redacted = dict(data)
    if isinstance(redacted.get("export"), dict):
        redacted["export"] = {
            k: v for k, v in redacted["export"].items() if k != "password"
        }
    canonical = json.dumps(redacted, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
