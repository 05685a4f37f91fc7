"""
Module: quote_kernel.models.approval
Responsibility: ORM persistence for approval requests and the approval
    action ledger.

Architecture position: Kernel > Models.  May import from db/base.py only
    (plus domain enums for DTO conversion).

Invariants enforced:
    - Lifecycle: DB check constraint limits status values; the service
      layer enforces transition rules before every status write.
    - Counter bounds: 0 <= current_approvers <= required_approvers and
      required_approvers >= 1 are CHECK constraints.
    - Single active request: partial UNIQUE(quote_id) WHERE status='pending'
      so two racing submissions cannot both create a pending request.
    - Distinct approvers: partial UNIQUE(approval_request_id, approver_id)
      WHERE action='approved' so one person cannot be counted twice.
    - Ledger is append-only: ORM listeners reject UPDATE and DELETE of
      ApprovalActionModel rows.

Failure modes:
    - IntegrityError on a duplicate pending request or duplicate approval.
    - ImmutabilityViolationError on ledger UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    event,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quote_kernel.db.base import Base, UUIDString
from quote_kernel.domain.approval import (
    ApprovalActionRecord,
    ApprovalDecision,
    ApprovalRequest,
    ApprovalStatus,
    RoleName,
)
from quote_kernel.exceptions import ImmutabilityViolationError


class ApprovalRequestModel(Base):
    """Persistent approval request, one live row per in-flight quote.

    ``required_approvers`` is written once at creation.  ``current_approvers``
    only ever moves through a server-side ``+ 1`` in ApprovalService.
    """

    __tablename__ = "approval_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'withdrawn')",
            name="ck_approval_requests_valid_status",
        ),
        CheckConstraint(
            "required_approvers >= 1",
            name="ck_approval_requests_required_positive",
        ),
        CheckConstraint(
            "current_approvers >= 0 AND current_approvers <= required_approvers",
            name="ck_approval_requests_current_bounds",
        ),
        Index(
            "ix_approval_requests_pending_quote",
            "quote_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index(
            "ix_approval_requests_status_created",
            "status", "created_at",
        ),
    )

    quote_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("quotes.id"), nullable=False,
    )
    approval_level: Mapped[str] = mapped_column(String(20), nullable=False)
    required_approvers: Mapped[int] = mapped_column(nullable=False)
    current_approvers: Mapped[int] = mapped_column(nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.PENDING.value,
    )
    requested_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    actions: Mapped[list["ApprovalActionModel"]] = relationship(
        "ApprovalActionModel",
        order_by="ApprovalActionModel.decided_at",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalRequest {self.id} quote={self.quote_id} "
            f"level={self.approval_level} "
            f"{self.current_approvers}/{self.required_approvers} "
            f"status={self.status}>"
        )

    def to_dto(self) -> ApprovalRequest:
        """Convert ORM model to frozen domain DTO."""
        return ApprovalRequest(
            id=self.id,
            quote_id=self.quote_id,
            approval_level=RoleName(self.approval_level),
            required_approvers=self.required_approvers,
            current_approvers=self.current_approvers,
            status=ApprovalStatus(self.status),
            requested_by=self.requested_by,
            comments=self.comments,
            created_at=self.created_at,
            resolved_at=self.resolved_at,
        )


class ApprovalActionModel(Base):
    """Approval ledger row. Append-only: never updated, never deleted."""

    __tablename__ = "approval_actions"

    __table_args__ = (
        CheckConstraint(
            "action IN ('approved', 'rejected')",
            name="ck_approval_actions_valid_action",
        ),
        Index("ix_approval_actions_request_decided", "approval_request_id", "decided_at"),
        Index(
            "ix_approval_actions_distinct_approver",
            "approval_request_id", "approver_id",
            unique=True,
            postgresql_where=text("action = 'approved'"),
            sqlite_where=text("action = 'approved'"),
        ),
    )

    approval_request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("approval_requests.id"), nullable=False,
    )
    quote_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    approver_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    approver_role: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ApprovalAction {self.id} request={self.approval_request_id} "
            f"{self.approver_role} {self.action}>"
        )

    def to_dto(self) -> ApprovalActionRecord:
        """Convert ORM model to frozen domain DTO."""
        return ApprovalActionRecord(
            id=self.id,
            approval_request_id=self.approval_request_id,
            quote_id=self.quote_id,
            approver_id=self.approver_id,
            approver_role=RoleName(self.approver_role),
            action=ApprovalDecision(self.action),
            comments=self.comments,
            decided_at=self.decided_at,
        )


# =============================================================================
# ORM-level immutability for the ledger (append-only)
# =============================================================================


@event.listens_for(ApprovalActionModel, "before_update")
def prevent_action_update(mapper, connection, target):
    """Prevent updates to approval ledger rows."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalAction",
        entity_id=str(target.id),
        reason="Approval actions are immutable -- cannot modify",
    )


@event.listens_for(ApprovalActionModel, "before_delete")
def prevent_action_delete(mapper, connection, target):
    """Prevent deletion of approval ledger rows."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalAction",
        entity_id=str(target.id),
        reason="Approval actions are immutable -- cannot delete",
    )
