"""
Approval domain types (``quote_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the quote approval engine.  Defines the role
ladder, the quote and approval-request status enums, the approval
lifecycle state machine, role-limit configuration snapshots, and the
request/action/result records exchanged between layers.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Lifecycle state machine -- ``APPROVAL_TRANSITIONS`` defines the only
  valid request status transitions.  Terminal states have no outgoing
  edges.
* Role ladder -- ``CSR < Manager < Director < VP < President``.  ``Admin``
  is NOT on the ladder: it is an unconditional override
  that bypasses every monetary limit.  A misconfigured Admin grant
  bypasses all monetary controls, so Admin assignments are
  security-sensitive.
* ``required_approvers`` is fixed when a request is created and is never
  mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID


# =========================================================================
# Roles
# =========================================================================


class RoleName(str, Enum):
    """Organizational capability tiers."""

    CSR = "CSR"
    MANAGER = "Manager"
    DIRECTOR = "Director"
    VP = "VP"
    PRESIDENT = "President"
    ADMIN = "Admin"

    @property
    def on_ladder(self) -> bool:
        return self is not RoleName.ADMIN

    @property
    def rank(self) -> int:
        """Position on the monetary ladder; Admin ranks above everything."""
        if self is RoleName.ADMIN:
            return len(ROLE_LADDER)
        return ROLE_LADDER.index(self)

    @classmethod
    def parse(cls, value: str | RoleName) -> RoleName:
        """Parse a role string, accepting any letter case."""
        if isinstance(value, RoleName):
            return value
        for role in cls:
            if role.value.lower() == str(value).strip().lower():
                return role
        raise ValueError(f"Unknown role: {value!r}")


ROLE_LADDER: tuple[RoleName, ...] = (
    RoleName.CSR,
    RoleName.MANAGER,
    RoleName.DIRECTOR,
    RoleName.VP,
    RoleName.PRESIDENT,
)


# =========================================================================
# Status enums and lifecycle
# =========================================================================


class QuoteStatus(str, Enum):
    """The slice of quote lifecycle owned by the approval engine."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"


class ApprovalStatus(str, Enum):
    """Approval request lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.WITHDRAWN,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
    ApprovalStatus.WITHDRAWN: frozenset(),
}

TERMINAL_APPROVAL_STATUSES: frozenset[ApprovalStatus] = frozenset({
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
    ApprovalStatus.WITHDRAWN,
})


def is_valid_transition(current: ApprovalStatus, new: ApprovalStatus) -> bool:
    return new in APPROVAL_TRANSITIONS.get(current, frozenset())


class ApprovalDecision(str, Enum):
    """Decision types recorded in the approval ledger."""

    APPROVED = "approved"
    REJECTED = "rejected"


# =========================================================================
# Role-limit configuration
# =========================================================================


@dataclass(frozen=True)
class RoleLimit:
    """Monetary range a role may approve.

    Both bounds are inclusive.  ``max_amount=None`` means unbounded.
    """

    role: RoleName
    min_amount: Decimal
    max_amount: Decimal | None = None

    def contains(self, value: Decimal) -> bool:
        if value < self.min_amount:
            return False
        return self.max_amount is None or value <= self.max_amount


DEFAULT_DUAL_CONTROL_THRESHOLD = Decimal("500000")


@dataclass(frozen=True)
class RoleLimitTable:
    """Read-only snapshot of the active role limits.

    Loaded once per request cycle and never mutated in place.
    ``limits`` are kept sorted ascending by ``min_amount``.
    """

    limits: tuple[RoleLimit, ...] = ()
    dual_control_threshold: Decimal = DEFAULT_DUAL_CONTROL_THRESHOLD
    dual_control_level: RoleName = RoleName.PRESIDENT
    dual_control_approvers: int = 2

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.limits, key=lambda lim: lim.min_amount))
        object.__setattr__(self, "limits", ordered)

    @property
    def is_empty(self) -> bool:
        return not self.limits

    def limit_for(self, role: RoleName) -> RoleLimit | None:
        for limit in self.limits:
            if limit.role == role:
                return limit
        return None


@dataclass(frozen=True)
class ApprovalRequirement:
    """Tier and sign-off count a quote value requires."""

    level: RoleName
    required_approvers: int


# =========================================================================
# Identity
# =========================================================================


@dataclass(frozen=True)
class AuthenticatedUser:
    """Opaque authenticated principal supplied by the identity provider."""

    user_id: UUID
    roles: frozenset[RoleName] = field(default_factory=frozenset)
    display_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return RoleName.ADMIN in self.roles


class IdentityProvider(Protocol):
    """Pluggable source of the calling principal's roles."""

    def get_user(self, user_id: UUID) -> AuthenticatedUser | None:
        """Return the principal with its active roles, or None."""
        ...


# =========================================================================
# Request and ledger records
# =========================================================================


@dataclass(frozen=True)
class ApprovalActionRecord:
    """One approve/reject decision. Immutable ledger row."""

    id: UUID
    approval_request_id: UUID
    quote_id: UUID
    approver_id: UUID
    approver_role: RoleName
    action: ApprovalDecision
    comments: str | None = None
    decided_at: datetime | None = None


@dataclass(frozen=True)
class ApprovalRequest:
    """Immutable snapshot of an approval request."""

    id: UUID
    quote_id: UUID
    approval_level: RoleName
    required_approvers: int
    current_approvers: int = 0
    status: ApprovalStatus = ApprovalStatus.PENDING
    requested_by: UUID | None = None
    comments: str | None = None
    created_at: datetime | None = None
    resolved_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_APPROVAL_STATUSES


# =========================================================================
# Operation results
# =========================================================================


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of submitting a quote for approval."""

    auto_approved: bool
    quote_status: QuoteStatus
    request: ApprovalRequest | None = None
    requirement: ApprovalRequirement | None = None


@dataclass(frozen=True)
class ApprovalResult:
    """Outcome of a single approve call."""

    action: ApprovalActionRecord
    became_final: bool
    request: ApprovalRequest


@dataclass(frozen=True)
class RejectionResult:
    """Outcome of a reject call."""

    action: ApprovalActionRecord
    request: ApprovalRequest


@dataclass(frozen=True)
class ApprovalStatusView:
    """Request plus its full decision history, for status display."""

    request: ApprovalRequest
    actions: tuple[ApprovalActionRecord, ...] = ()


@dataclass(frozen=True)
class PendingApprovalSummary:
    """One row of a user's approval inbox."""

    request_id: UUID
    quote_id: UUID
    quote_number: str
    customer_name: str | None
    requester_name: str | None
    total_value: Decimal
    approval_level: RoleName
    required_approvers: int
    current_approvers: int
    created_at: datetime | None
    already_approved_by_user: bool = False
    recent_actions: tuple[ApprovalActionRecord, ...] = ()
