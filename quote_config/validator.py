"""
Configuration Validator (``quote_config.validator``).

Responsibility
--------------
Validates a role-limit ladder before it is seeded or saved.  The approval
engine consumes limits as-is at read time; this is the only place the
ladder's shape is checked.

Invariants enforced
-------------------
* Ranges are well formed -- ``min_amount >= 0`` and ``max_amount >= min_amount``.
* Roles are known ladder tiers, each listed at most once.  ``Admin`` is
  not a ladder tier and must not carry a range.
* Ranges do not overlap, and only the highest range may be unbounded.
* Ranges are contiguous -- a gap larger than one cent between consecutive
  ranges is reported as a warning (values in the gap resolve to the
  President tier).

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``) -> the ladder
  MUST NOT be saved.
* Validation warnings -> the ladder may be saved but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Protocol

from quote_kernel.domain.approval import RoleName

CENT = Decimal("0.01")


class _LimitLike(Protocol):
    role: object
    min_amount: Decimal
    max_amount: Decimal | None


@dataclass
class ConfigValidationResult:
    """
    Result of role-limit validation.

    ``is_valid`` is True only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)


def validate_role_limits(limits: Iterable[_LimitLike]) -> ConfigValidationResult:
    """Validate a ladder of role limits."""
    result = ConfigValidationResult()
    parsed: list[tuple[RoleName, Decimal, Decimal | None]] = []
    seen: set[RoleName] = set()

    for limit in limits:
        try:
            role = RoleName.parse(limit.role)
        except ValueError:
            result.add_error(f"Unknown role {limit.role!r}")
            continue

        if role is RoleName.ADMIN:
            result.add_error(
                "Admin is not part of the monetary ladder and cannot have a limit"
            )
            continue
        if role in seen:
            result.add_error(f"Duplicate limit for role {role.value}")
            continue
        seen.add(role)

        if limit.min_amount < 0:
            result.add_error(f"Minimum amount for {role.value} cannot be negative")
        if limit.max_amount is not None and limit.max_amount < limit.min_amount:
            result.add_error(
                f"Maximum amount for {role.value} must be greater than or "
                f"equal to minimum amount"
            )
        parsed.append((role, limit.min_amount, limit.max_amount))

    _validate_ordering(parsed, result)
    return result


def _validate_ordering(
    parsed: list[tuple[RoleName, Decimal, Decimal | None]],
    result: ConfigValidationResult,
) -> None:
    ordered = sorted(parsed, key=lambda p: p[1])

    for (role, _low, high), (next_role, next_low, _next_high) in zip(ordered, ordered[1:]):
        if high is None:
            result.add_error(
                f"{role.value} has no maximum but {next_role.value} starts above it"
            )
            continue
        if next_low <= high:
            result.add_error(
                f"{role.value} and {next_role.value} ranges overlap at {next_low}"
            )
        elif next_low - high > CENT:
            result.add_warning(
                f"Gap between {role.value} (max {high}) and "
                f"{next_role.value} (min {next_low})"
            )

    for (role, *_), (next_role, *_) in zip(ordered, ordered[1:]):
        if next_role.rank < role.rank:
            result.add_warning(
                f"{next_role.value} is configured above {role.value} "
                f"but ranks below it on the role ladder"
            )
