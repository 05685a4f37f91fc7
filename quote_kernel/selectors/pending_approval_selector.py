"""
Module: quote_kernel.selectors.pending_approval_selector
Responsibility: The approval inbox.  Lists every pending approval request
    the calling user may act on, joined with quote number, customer,
    requester and value, plus a slice of recent ledger decisions.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Bounded round trips: one joined SELECT for the requests, then one
      bulk ``IN (...)`` query for recent actions and one for the caller's
      own approvals.  Never one query per request.
    - Deduplication: a request appears once even if the user holds several
      qualifying roles.
    - Ordering: oldest request first.

Eligibility:
    Admin sees every pending request.  Other users see a request when its
    tier is at or below their highest ladder role, or when one of their
    configured ranges contains the quote value.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import and_, false, or_, select

from quote_engines.approval import eligible_levels
from quote_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalStatus,
    AuthenticatedUser,
    PendingApprovalSummary,
    RoleLimitTable,
    RoleName,
)
from quote_kernel.exceptions import AuthenticationError
from quote_kernel.models.approval import ApprovalActionModel, ApprovalRequestModel
from quote_kernel.models.quote import CustomerModel, QuoteModel
from quote_kernel.models.user import ProfileModel
from quote_kernel.selectors.base import BaseSelector
from quote_kernel.services.approval_ledger import ApprovalLedger

DEFAULT_RECENT_ACTIONS = 5


class PendingApprovalSelector(BaseSelector):
    """Aggregated read of pending approvals for one user."""

    def get_pending_for_user(
        self,
        user: AuthenticatedUser | None,
        role_limits: RoleLimitTable,
        recent_limit: int = DEFAULT_RECENT_ACTIONS,
    ) -> list[PendingApprovalSummary]:
        """
        Pending requests the user may act on, oldest first.

        Raises:
            AuthenticationError: If no user is supplied.
        """
        if user is None:
            raise AuthenticationError("get_pending_approvals")
        if not user.roles:
            return []

        eligibility = self._eligibility_clause(user, role_limits)

        stmt = (
            select(
                ApprovalRequestModel.id,
                ApprovalRequestModel.quote_id,
                QuoteModel.quote_number,
                CustomerModel.name,
                ProfileModel.full_name,
                QuoteModel.total_value,
                ApprovalRequestModel.approval_level,
                ApprovalRequestModel.required_approvers,
                ApprovalRequestModel.current_approvers,
                ApprovalRequestModel.created_at,
            )
            .join(QuoteModel, QuoteModel.id == ApprovalRequestModel.quote_id)
            .outerjoin(CustomerModel, CustomerModel.id == QuoteModel.customer_id)
            .outerjoin(ProfileModel, ProfileModel.id == ApprovalRequestModel.requested_by)
            .where(ApprovalRequestModel.status == ApprovalStatus.PENDING.value)
            .order_by(ApprovalRequestModel.created_at, ApprovalRequestModel.id)
        )
        if eligibility is not None:
            stmt = stmt.where(eligibility)

        rows: dict[UUID, Any] = {}
        for row in self.session.execute(stmt):
            rows.setdefault(row[0], row)

        if not rows:
            return []

        request_ids = list(rows)
        recent = ApprovalLedger(self.session).recent_for_requests(request_ids, recent_limit)
        approved_by_user = self._approved_by(request_ids, user.user_id)

        return [
            PendingApprovalSummary(
                request_id=request_id,
                quote_id=quote_id,
                quote_number=quote_number,
                customer_name=customer_name,
                requester_name=requester_name,
                total_value=total_value,
                approval_level=RoleName(level),
                required_approvers=required,
                current_approvers=current,
                created_at=created_at,
                already_approved_by_user=request_id in approved_by_user,
                recent_actions=recent.get(request_id, ()),
            )
            for (
                request_id, quote_id, quote_number, customer_name, requester_name,
                total_value, level, required, current, created_at,
            ) in rows.values()
        ]

    @staticmethod
    def _eligibility_clause(user: AuthenticatedUser, role_limits: RoleLimitTable):
        """WHERE clause for the user's roles, or None for no restriction."""
        if user.is_admin:
            return None

        clauses = []
        levels = [lvl.value for lvl in eligible_levels(user.roles)]
        if levels:
            clauses.append(ApprovalRequestModel.approval_level.in_(levels))

        for role in user.roles:
            limit = role_limits.limit_for(role)
            if limit is None:
                continue
            in_range = QuoteModel.total_value >= limit.min_amount
            if limit.max_amount is not None:
                in_range = and_(in_range, QuoteModel.total_value <= limit.max_amount)
            clauses.append(in_range)

        return or_(*clauses) if clauses else false()

    def _approved_by(self, request_ids: list[UUID], user_id: UUID) -> set[UUID]:
        return set(self.session.execute(
            select(ApprovalActionModel.approval_request_id).where(
                ApprovalActionModel.approval_request_id.in_(request_ids),
                ApprovalActionModel.approver_id == user_id,
                ApprovalActionModel.action == ApprovalDecision.APPROVED.value,
            )
        ).scalars())
