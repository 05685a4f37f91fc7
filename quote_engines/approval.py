"""
quote_engines.approval -- Pure authority resolution for quote approvals.

Responsibility:
    Given the active role-limit table, decide which tier a quote value
    requires, how many sign-offs it needs, whether a set of roles may
    approve it outright, and whether a single exercised role may act on a
    queued request.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import quote_kernel/domain/ types and exceptions.

Invariants enforced:
    - Determinism: every function is a pure function of
      (RoleLimitTable, inputs).  Same inputs always give the same result.
    - Ascending scan: limits are evaluated ascending by ``min_amount``;
      first containing range wins.
    - Admin bypass: ``Admin`` is never a ladder tier and always may
      approve.  A misconfigured Admin grant bypasses every monetary
      control.

Failure modes:
    - An empty table resolves to ``(CSR, 1)``, failing open to the lowest
      tier.
    - A value no configured range contains resolves to the President tier.
    - InvalidQuoteValueError for negative, non-finite or non-numeric values.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Iterable

from quote_kernel.domain.approval import (
    ApprovalRequirement,
    RoleLimit,
    RoleLimitTable,
    RoleName,
)
from quote_kernel.exceptions import InvalidQuoteValueError


def validate_quote_value(value: object) -> Decimal:
    """Coerce a quote value to Decimal, rejecting bad input.

    Floats are converted through ``str`` so 0.1 stays 0.1.
    """
    if isinstance(value, bool):
        raise InvalidQuoteValueError(value, "not a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidQuoteValueError(value, "not a number") from None

    if not amount.is_finite():
        raise InvalidQuoteValueError(value, "must be finite")
    if amount < 0:
        raise InvalidQuoteValueError(value, "must not be negative")
    return amount


def ladder_limits(table: RoleLimitTable) -> tuple[RoleLimit, ...]:
    """Monetary ladder rows, ascending by min_amount, Admin excluded."""
    return tuple(lim for lim in table.limits if lim.role.on_ladder)


def resolve_requirement(table: RoleLimitTable, quote_value: object) -> ApprovalRequirement:
    """Determine the approval tier and sign-off count for a quote value.

    Args:
        table: Active role limits.
        quote_value: Non-negative monetary value.

    Returns:
        ApprovalRequirement with ``level`` and ``required_approvers``.
    """
    value = validate_quote_value(quote_value)

    if table.is_empty:
        return ApprovalRequirement(level=RoleName.CSR, required_approvers=1)

    for limit in ladder_limits(table):
        if limit.contains(value):
            return ApprovalRequirement(
                level=limit.role,
                required_approvers=_required_approvers(table, limit.role, value),
            )

    return ApprovalRequirement(
        level=RoleName.PRESIDENT,
        required_approvers=_required_approvers(table, RoleName.PRESIDENT, value),
    )


def _required_approvers(table: RoleLimitTable, level: RoleName, value: Decimal) -> int:
    if level == table.dual_control_level and value > table.dual_control_threshold:
        return table.dual_control_approvers
    return 1


def qualifying_roles(
    table: RoleLimitTable,
    roles: Iterable[RoleName],
    quote_value: object,
) -> tuple[RoleName, ...]:
    """Held roles whose configured range contains the value, ladder order."""
    value = validate_quote_value(quote_value)
    held = set(roles)
    return tuple(
        lim.role for lim in table.limits
        if lim.role in held and lim.contains(value)
    )


def can_auto_approve(
    table: RoleLimitTable,
    roles: Iterable[RoleName],
    quote_value: object,
) -> bool:
    """Whether a holder of ``roles`` may approve ``quote_value`` unilaterally.

    Admin membership is an unconditional yes, independent of value and
    configuration.  Otherwise at least one held role must have a
    configured range containing the value.
    """
    roles = frozenset(roles)
    if RoleName.ADMIN in roles:
        return True
    return bool(qualifying_roles(table, roles, quote_value))


def role_can_act(
    table: RoleLimitTable,
    role: RoleName,
    request_level: RoleName,
    quote_value: object,
) -> bool:
    """Whether ``role`` is sufficient to approve/reject a queued request.

    True when the role is Admin, sits at or above the request's tier on
    the ladder, or has a configured range containing the quote value.
    """
    if role is RoleName.ADMIN:
        return True
    if role.rank >= request_level.rank:
        return True
    limit = table.limit_for(role)
    return limit is not None and limit.contains(validate_quote_value(quote_value))


def eligible_levels(roles: Iterable[RoleName]) -> tuple[RoleName, ...]:
    """Ladder tiers a holder of ``roles`` may act on by rank alone."""
    roles = frozenset(roles)
    if RoleName.ADMIN in roles:
        return tuple(RoleName)
    ranks = [r.rank for r in roles if r.on_ladder]
    if not ranks:
        return ()
    top = max(ranks)
    return tuple(r for r in RoleName if r.on_ladder and r.rank <= top)


def describe_requirement(table: RoleLimitTable, quote_value: object) -> str:
    """Human-readable explanation of who may approve ``quote_value``.

    Lists every ladder role whose range contains the value, so
    overlapping ranges name more than one role.
    """
    value = validate_quote_value(quote_value)

    if table.is_empty:
        return (
            "No approval limits are configured; "
            "this quote requires approval from a CSR."
        )

    eligible = [lim.role.value for lim in ladder_limits(table) if lim.contains(value)]

    if not eligible:
        requirement = resolve_requirement(table, value)
        message = "This quote value exceeds all configured approval limits"
        if requirement.required_approvers > 1:
            return (
                f"{message}; it requires {requirement.required_approvers} "
                f"{requirement.level.value} approvals."
            )
        return f"{message}; it requires approval from a {requirement.level.value}."

    if len(eligible) == 1:
        requirement = resolve_requirement(table, value)
        if requirement.required_approvers > 1:
            return (
                f"This quote requires {requirement.required_approvers} "
                f"approvals from a {eligible[0]}."
            )
        return f"This quote requires approval from a {eligible[0]}."

    return (
        f"This quote can be approved by {', '.join(eligible[:-1])}, "
        f"or {eligible[-1]}."
    )
