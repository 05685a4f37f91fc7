"""
quote_kernel.services.approval_ledger -- Append-only approval action ledger.

Responsibility:
    Records every approve/reject decision as a new ApprovalActionModel row
    and answers the three questions asked of the ledger: the full history
    of a request, the count of Approved decisions, and the recent
    decisions shown in the approval inbox.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Append-only: ``record`` only ever inserts.  UPDATE/DELETE of a ledger
      row is rejected by ORM listeners in models/approval.py.
    - Ledger/count consistency: ``verify_consistency`` checks that the
      number of Approved rows equals the request's ``current_approvers``.
    - Distinct approvers: a second Approved row from the same approver on
      the same request violates a partial unique index and surfaces as
      DuplicateApprovalError.

Failure modes:
    - DuplicateApprovalError when the distinct-approver index rejects a row.
    - ApprovalRequestNotFoundError from verify_consistency for unknown ids.
    - LedgerInconsistencyError when counts diverge.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quote_kernel.domain.approval import (
    ApprovalActionRecord,
    ApprovalDecision,
    RoleName,
)
from quote_kernel.domain.clock import Clock, SystemClock
from quote_kernel.exceptions import (
    ApprovalRequestNotFoundError,
    DuplicateApprovalError,
    LedgerInconsistencyError,
)
from quote_kernel.logging_config import get_logger
from quote_kernel.models.approval import ApprovalActionModel, ApprovalRequestModel

logger = get_logger("services.approval_ledger")

DEFAULT_RECENT_ACTIONS = 5


class ApprovalLedger:
    """Append-only store of approval decisions."""

    def __init__(self, session: Session, clock: Clock | None = None) -> None:
        self._session = session
        self._clock = clock or SystemClock()

    def record(
        self,
        request_id: UUID,
        quote_id: UUID,
        approver_id: UUID,
        role: RoleName,
        action: ApprovalDecision,
        comments: str | None = None,
    ) -> ApprovalActionRecord:
        """Insert one decision row and return it.

        The caller's transaction owns the row; nothing is committed here.
        """
        model = ApprovalActionModel(
            approval_request_id=request_id,
            quote_id=quote_id,
            approver_id=approver_id,
            approver_role=role.value,
            action=action.value,
            comments=comments,
            decided_at=self._clock.now(),
        )
        self._session.add(model)
        try:
            self._session.flush()
        except IntegrityError as exc:
            if action is ApprovalDecision.APPROVED:
                raise DuplicateApprovalError(str(request_id), str(approver_id)) from exc
            raise

        logger.debug(
            "ledger_action_recorded",
            extra={
                "action_id": str(model.id),
                "request_id": str(request_id),
                "approver_id": str(approver_id),
                "approver_role": role.value,
                "decision": action.value,
            },
        )
        return model.to_dto()

    def history(self, request_id: UUID) -> tuple[ApprovalActionRecord, ...]:
        """All decisions on a request, oldest first."""
        rows = self._session.execute(
            select(ApprovalActionModel)
            .where(ApprovalActionModel.approval_request_id == request_id)
            .order_by(ApprovalActionModel.decided_at, ApprovalActionModel.id)
        ).scalars().all()
        return tuple(r.to_dto() for r in rows)

    def recent_for_requests(
        self,
        request_ids: Iterable[UUID],
        limit: int = DEFAULT_RECENT_ACTIONS,
    ) -> dict[UUID, tuple[ApprovalActionRecord, ...]]:
        """Most recent decisions per request, newest first, in one query."""
        ids = list(dict.fromkeys(request_ids))
        if not ids or limit <= 0:
            return {}

        rows = self._session.execute(
            select(ApprovalActionModel)
            .where(ApprovalActionModel.approval_request_id.in_(ids))
            .order_by(
                ApprovalActionModel.approval_request_id,
                ApprovalActionModel.decided_at.desc(),
            )
        ).scalars().all()

        grouped: dict[UUID, list[ApprovalActionRecord]] = defaultdict(list)
        for row in rows:
            bucket = grouped[row.approval_request_id]
            if len(bucket) < limit:
                bucket.append(row.to_dto())
        return {rid: tuple(actions) for rid, actions in grouped.items()}

    def count_approvals(self, request_id: UUID) -> int:
        return self._session.execute(
            select(func.count())
            .select_from(ApprovalActionModel)
            .where(
                ApprovalActionModel.approval_request_id == request_id,
                ApprovalActionModel.action == ApprovalDecision.APPROVED.value,
            )
        ).scalar_one()

    def has_approved(self, request_id: UUID, approver_id: UUID) -> bool:
        found = self._session.execute(
            select(ApprovalActionModel.id).where(
                ApprovalActionModel.approval_request_id == request_id,
                ApprovalActionModel.approver_id == approver_id,
                ApprovalActionModel.action == ApprovalDecision.APPROVED.value,
            ).limit(1)
        ).scalar_one_or_none()
        return found is not None

    def verify_consistency(self, request_id: UUID) -> None:
        """Raise LedgerInconsistencyError unless Approved rows == current_approvers."""
        request = self._session.get(ApprovalRequestModel, request_id)
        if request is None:
            raise ApprovalRequestNotFoundError(str(request_id))

        ledger_count = self.count_approvals(request_id)
        if ledger_count != request.current_approvers:
            logger.error(
                "ledger_inconsistency_detected",
                extra={
                    "request_id": str(request_id),
                    "ledger_count": ledger_count,
                    "current_approvers": request.current_approvers,
                },
            )
            raise LedgerInconsistencyError(
                str(request_id), ledger_count, request.current_approvers,
            )
