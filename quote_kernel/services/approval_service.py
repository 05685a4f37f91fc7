"""
quote_kernel.services.approval_service -- Quote approval lifecycle.

Responsibility:
    Owns the lifecycle of one approval request per quote: submission
    (auto-approve or queue), approve, reject, withdraw, and the status
    view.  Delegates authority resolution to the pure engine in
    quote_engines.approval and ledger writes to ApprovalLedger.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/ and the
    pure quote_engines layer.  Runs inside a caller-owned session:
    flushes, never commits.

Invariants enforced:
    - Lifecycle state machine enforced before every status write.
    - One pending request per quote: check-before-insert backed by a
      partial unique index on ``quote_id WHERE status='pending'``.
    - Monotonic count: ``current_approvers`` only moves through a
      server-side ``current_approvers + 1`` guarded by
      ``current_approvers < required_approvers``.
    - Exactly-once finalization: the Pending -> Approved flip is a
      conditional UPDATE; only the caller whose UPDATE matched a row
      reports ``became_final``.
    - Ledger/count consistency: the ledger insert and the increment share
      the caller's transaction.
    - Rejection is absolute: one reject moves the request to Rejected
      regardless of prior approvals.
    - Distinct approvers: one approver is counted at most once per request.
    - Server-side authority check: the exercised role must be held and
      must qualify for the request's tier or cover the quote value.

Failure modes:
    - AuthenticationError if no user is supplied.
    - QuoteNotFoundError if the quote does not exist.
    - ApprovalRequestNotFoundError if the quote was never queued.
    - ApprovalAlreadyResolvedError if the request is no longer pending.
    - UnauthorizedApproverError if the exercised role does not qualify.
    - DuplicateApprovalError if the approver already approved.
    - RejectionCommentRequiredError if a rejection has no reason.
    - InvalidQuoteValueError if the stored value is negative.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from quote_engines.approval import (
    can_auto_approve,
    resolve_requirement,
    role_can_act,
    validate_quote_value,
)
from quote_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalRequest,
    ApprovalResult,
    ApprovalStatus,
    ApprovalStatusView,
    AuthenticatedUser,
    QuoteStatus,
    RejectionResult,
    RoleLimitTable,
    RoleName,
    SubmissionResult,
    is_valid_transition,
)
from quote_kernel.domain.clock import Clock, SystemClock
from quote_kernel.exceptions import (
    ApprovalAlreadyResolvedError,
    ApprovalRequestNotFoundError,
    AuthenticationError,
    DuplicateApprovalError,
    InvalidApprovalTransitionError,
    RejectionCommentRequiredError,
    UnauthorizedApproverError,
)
from quote_kernel.logging_config import get_logger
from quote_kernel.models.approval import ApprovalRequestModel
from quote_kernel.services.approval_ledger import ApprovalLedger
from quote_kernel.services.quote_store import QuoteStore

logger = get_logger("services.approval")

_PENDING = ApprovalStatus.PENDING.value


class ApprovalService:
    """Submission, decision and withdrawal of quote approval requests."""

    def __init__(
        self,
        session: Session,
        ledger: ApprovalLedger,
        quote_store: QuoteStore,
        role_limits: RoleLimitTable,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._ledger = ledger
        self._quotes = quote_store
        self._role_limits = role_limits
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_for_approval(
        self,
        quote_id: UUID,
        user: AuthenticatedUser | None,
        comments: str | None = None,
    ) -> SubmissionResult:
        """Auto-approve the quote or queue it at the resolved tier.

        Re-submitting a quote that already has a pending request returns
        that request unchanged, unless the submitter can auto-approve, in
        which case the pending request is withdrawn.
        """
        user = self._require_user(user, "submit_for_approval")
        value = validate_quote_value(self._quotes.get_total_value(quote_id))

        if can_auto_approve(self._role_limits, user.roles, value):
            superseded = self._find_pending(quote_id)
            if superseded is not None:
                self._close_request(superseded, ApprovalStatus.WITHDRAWN)
            self._quotes.set_status(quote_id, QuoteStatus.APPROVED)
            logger.info(
                "quote_auto_approved",
                extra={
                    "quote_id": str(quote_id),
                    "user_id": str(user.user_id),
                    "roles": user.roles,
                    "total_value": value,
                    "withdrawn_request_id": str(superseded.id) if superseded is not None else None,
                },
            )
            return SubmissionResult(
                auto_approved=True,
                quote_status=QuoteStatus.APPROVED,
            )

        existing = self._find_pending(quote_id)
        if existing is not None:
            self._quotes.set_status(quote_id, QuoteStatus.PENDING_APPROVAL)
            logger.info(
                "approval_request_exists",
                extra={"quote_id": str(quote_id), "request_id": str(existing.id)},
            )
            return SubmissionResult(
                auto_approved=False,
                quote_status=QuoteStatus.PENDING_APPROVAL,
                request=existing.to_dto(),
            )

        requirement = resolve_requirement(self._role_limits, value)
        model = ApprovalRequestModel(
            quote_id=quote_id,
            approval_level=requirement.level.value,
            required_approvers=requirement.required_approvers,
            current_approvers=0,
            status=_PENDING,
            requested_by=user.user_id,
            comments=comments,
            created_at=self._clock.now(),
        )
        self._session.add(model)
        self._session.flush()
        self._quotes.set_status(quote_id, QuoteStatus.PENDING_APPROVAL)

        logger.info(
            "approval_request_created",
            extra={
                "quote_id": str(quote_id),
                "request_id": str(model.id),
                "approval_level": requirement.level.value,
                "required_approvers": requirement.required_approvers,
                "total_value": value,
            },
        )
        return SubmissionResult(
            auto_approved=False,
            quote_status=QuoteStatus.PENDING_APPROVAL,
            request=model.to_dto(),
            requirement=requirement,
        )

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def approve(
        self,
        quote_id: UUID,
        user: AuthenticatedUser | None,
        exercised_role: RoleName | str,
        comments: str | None = None,
    ) -> ApprovalResult:
        """Record one approval; finalize the request once enough are counted.

        The caller says which of the user's roles is being exercised; the
        engine does not pick one.
        """
        user = self._require_user(user, "approve")
        model = self._load_request(quote_id, for_update=True)
        self._require_pending(model, ApprovalStatus.APPROVED)
        role = self._authorize(user, exercised_role, model)

        if self._ledger.has_approved(model.id, user.user_id):
            raise DuplicateApprovalError(str(model.id), str(user.user_id))

        action = self._ledger.record(
            request_id=model.id,
            quote_id=quote_id,
            approver_id=user.user_id,
            role=role,
            action=ApprovalDecision.APPROVED,
            comments=comments,
        )

        incremented = self._session.execute(
            update(ApprovalRequestModel)
            .where(
                ApprovalRequestModel.id == model.id,
                ApprovalRequestModel.status == _PENDING,
                ApprovalRequestModel.current_approvers
                < ApprovalRequestModel.required_approvers,
            )
            .values(current_approvers=ApprovalRequestModel.current_approvers + 1)
            .execution_options(synchronize_session=False)
        )
        if incremented.rowcount == 0:
            self._session.refresh(model)
            raise ApprovalAlreadyResolvedError(str(quote_id), str(model.id), model.status)

        finalized = self._session.execute(
            update(ApprovalRequestModel)
            .where(
                ApprovalRequestModel.id == model.id,
                ApprovalRequestModel.status == _PENDING,
                ApprovalRequestModel.current_approvers
                >= ApprovalRequestModel.required_approvers,
            )
            .values(status=ApprovalStatus.APPROVED.value, resolved_at=self._clock.now())
            .execution_options(synchronize_session=False)
        )
        became_final = finalized.rowcount == 1
        self._session.refresh(model)

        logger.info(
            "approval_recorded",
            extra={
                "quote_id": str(quote_id),
                "request_id": str(model.id),
                "approver_id": str(user.user_id),
                "approver_role": role.value,
                "current_approvers": model.current_approvers,
                "required_approvers": model.required_approvers,
            },
        )

        if became_final:
            self._quotes.set_status(quote_id, QuoteStatus.APPROVED)
            logger.info(
                "approval_finalized",
                extra={
                    "quote_id": str(quote_id),
                    "request_id": str(model.id),
                    "approval_level": model.approval_level,
                },
            )

        return ApprovalResult(action=action, became_final=became_final, request=model.to_dto())

    def reject(
        self,
        quote_id: UUID,
        user: AuthenticatedUser | None,
        exercised_role: RoleName | str,
        comments: str | None,
    ) -> RejectionResult:
        """Reject the request outright and send the quote back to Draft."""
        user = self._require_user(user, "reject")
        if comments is None or not comments.strip():
            raise RejectionCommentRequiredError(str(quote_id))

        model = self._load_request(quote_id, for_update=True)
        self._require_pending(model, ApprovalStatus.REJECTED)
        role = self._authorize(user, exercised_role, model)

        action = self._ledger.record(
            request_id=model.id,
            quote_id=quote_id,
            approver_id=user.user_id,
            role=role,
            action=ApprovalDecision.REJECTED,
            comments=comments.strip(),
        )

        self._close_request(model, ApprovalStatus.REJECTED)
        self._quotes.set_status(quote_id, QuoteStatus.DRAFT)

        logger.info(
            "approval_rejected",
            extra={
                "quote_id": str(quote_id),
                "request_id": str(model.id),
                "approver_id": str(user.user_id),
                "approver_role": role.value,
                "current_approvers": model.current_approvers,
            },
        )
        return RejectionResult(action=action, request=model.to_dto())

    def withdraw(self, quote_id: UUID, user: AuthenticatedUser | None) -> ApprovalRequest:
        """Cancel a pending request.  Only the requester or an Admin may do this."""
        user = self._require_user(user, "withdraw")
        model = self._load_request(quote_id, for_update=True)
        self._require_pending(model, ApprovalStatus.WITHDRAWN)

        if not user.is_admin and model.requested_by != user.user_id:
            raise UnauthorizedApproverError(
                str(user.user_id),
                "requester",
                model.approval_level,
                "only the requester or an Admin may withdraw a request",
            )

        self._close_request(model, ApprovalStatus.WITHDRAWN)
        self._quotes.set_status(quote_id, QuoteStatus.DRAFT)

        logger.info(
            "approval_withdrawn",
            extra={
                "quote_id": str(quote_id),
                "request_id": str(model.id),
                "user_id": str(user.user_id),
            },
        )
        return model.to_dto()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_approval_status(self, quote_id: UUID) -> ApprovalStatusView | None:
        """Latest request for the quote with its full decision history."""
        model = self._latest_request(quote_id)
        if model is None:
            return None
        return ApprovalStatusView(
            request=model.to_dto(),
            actions=self._ledger.history(model.id),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_user(user: AuthenticatedUser | None, operation: str) -> AuthenticatedUser:
        if user is None:
            raise AuthenticationError(operation)
        return user

    def _find_pending(self, quote_id: UUID) -> ApprovalRequestModel | None:
        return self._session.execute(
            select(ApprovalRequestModel).where(
                ApprovalRequestModel.quote_id == quote_id,
                ApprovalRequestModel.status == _PENDING,
            )
        ).scalar_one_or_none()

    def _latest_request(
        self,
        quote_id: UUID,
        for_update: bool = False,
    ) -> ApprovalRequestModel | None:
        # Pending first, then most recent terminal request.
        stmt = (
            select(ApprovalRequestModel)
            .where(ApprovalRequestModel.quote_id == quote_id)
            .order_by(
                case((ApprovalRequestModel.status == _PENDING, 0), else_=1),
                ApprovalRequestModel.created_at.desc(),
            )
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self._session.execute(stmt).scalar_one_or_none()

    def _load_request(self, quote_id: UUID, for_update: bool = False) -> ApprovalRequestModel:
        model = self._latest_request(quote_id, for_update=for_update)
        if model is None:
            raise ApprovalRequestNotFoundError(str(quote_id))
        return model

    @staticmethod
    def _require_pending(model: ApprovalRequestModel, target: ApprovalStatus) -> None:
        current = ApprovalStatus(model.status)
        if current is not ApprovalStatus.PENDING:
            raise ApprovalAlreadyResolvedError(str(model.quote_id), str(model.id), current.value)
        if not is_valid_transition(current, target):
            raise InvalidApprovalTransitionError(current.value, target.value)

    def _authorize(
        self,
        user: AuthenticatedUser,
        exercised_role: RoleName | str,
        model: ApprovalRequestModel,
    ) -> RoleName:
        try:
            role = RoleName.parse(exercised_role)
        except ValueError:
            raise UnauthorizedApproverError(
                str(user.user_id), str(exercised_role), model.approval_level,
                "unknown role",
            ) from None

        if role not in user.roles:
            raise UnauthorizedApproverError(
                str(user.user_id), role.value, model.approval_level,
                "role is not held by the user",
            )

        value = validate_quote_value(self._quotes.get_total_value(model.quote_id))
        level = RoleName(model.approval_level)
        if not role_can_act(self._role_limits, role, level, value):
            raise UnauthorizedApproverError(
                str(user.user_id), role.value, model.approval_level,
                "role is below the required tier and its limit does not cover the quote value",
            )
        return role

    def _close_request(self, model: ApprovalRequestModel, target: ApprovalStatus) -> None:
        closed = self._session.execute(
            update(ApprovalRequestModel)
            .where(
                ApprovalRequestModel.id == model.id,
                ApprovalRequestModel.status == _PENDING,
            )
            .values(status=target.value, resolved_at=self._clock.now())
            .execution_options(synchronize_session=False)
        )
        self._session.refresh(model)
        if closed.rowcount == 0:
            raise ApprovalAlreadyResolvedError(str(model.quote_id), str(model.id), model.status)
