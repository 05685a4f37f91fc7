"""
quote_engines -- pure calculation engines.  Zero I/O, no database.
"""

from quote_engines.approval import (
    can_auto_approve,
    describe_requirement,
    eligible_levels,
    qualifying_roles,
    resolve_requirement,
    role_can_act,
    validate_quote_value,
)

__all__ = [
    "resolve_requirement",
    "can_auto_approve",
    "describe_requirement",
    "qualifying_roles",
    "role_can_act",
    "eligible_levels",
    "validate_quote_value",
]
