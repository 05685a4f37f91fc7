#!/usr/bin/env python3
"""
Create the approval tables and seed the role approval limits.

Usage:
    python scripts/seed_role_limits.py [config.yaml]

If no file is given, the path in $QUOTE_APPROVAL_CONFIG or the bundled
quote_config/defaults.yaml is used.  The database URL comes from the
configuration (override with $QUOTE_APPROVAL_DATABASE_URL).

Seeding is idempotent: an existing ladder is left untouched and printed.
"""

import sys
from pathlib import Path
from uuid import UUID

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from quote_config import get_active_config
from quote_kernel.db.engine import create_tables
from quote_kernel.logging_config import configure_logging
from quote_services.approval_orchestrator import build_approval_orchestrator

SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


def seed(config_path: Path | None) -> bool:
    """Create tables and seed limits.  Returns True if rows were written."""
    config = get_active_config(config_path)
    print(f"Configuration: {config.source_path}")
    print(f"  checksum: {config.checksum[:16]}...")
    print(f"  database: {config.database.url}")

    orchestrator = build_approval_orchestrator(config)
    create_tables()

    seeded = orchestrator.seed_role_limits(SYSTEM_ACTOR_ID)
    print("Seeded role limits." if seeded else "Role limits already present; left unchanged.")

    table = orchestrator.load_role_limits()
    for limit in table.limits:
        upper = "no limit" if limit.max_amount is None else f"{limit.max_amount:,}"
        print(f"  {limit.role.value:<10} {limit.min_amount:>14,} - {upper}")
    print(
        f"  dual control: {table.dual_control_approvers} x "
        f"{table.dual_control_level.value} above {table.dual_control_threshold:,}"
    )
    return seeded


def main():
    configure_logging()
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else None

    if target is not None and not target.is_file():
        print(f"Error: config file not found: {target}", file=sys.stderr)
        sys.exit(1)

    try:
        seed(target)
    except ValueError as exc:
        print(f"VALIDATION FAILED:\n{exc}", file=sys.stderr)
        sys.exit(1)
    print("Done.")


if __name__ == "__main__":
    main()
