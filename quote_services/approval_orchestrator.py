"""
ApprovalOrchestrator -- application entry point for quote approvals.

Responsibility:
    Owns the transaction boundary for each approval verb.  Opens a
    session, loads the role-limit snapshot for the call, delegates to
    ApprovalService / PendingApprovalSelector, then commits or rolls back.
    Hands finalized quotes to the export dispatcher only after commit.

Architecture position:
    Services -- stateless orchestration over quote_kernel.  Imports
    quote_config for settings; the kernel never does.

Invariants enforced:
    - One transaction per call: the ledger insert, the approver count
      increment and the status flip commit together or not at all.
    - Export after commit: a quote is queued for export only once its
      approval is durable, and an export failure cannot reach the caller.
    - Idempotent submission: a submission that loses the race to create
      the pending request is retried once and returns the winner's request.

Failure modes:
    - Every QuoteKernelError raised by the kernel propagates unchanged
      after the transaction is rolled back.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from quote_config import QuoteApprovalConfig, validate_role_limits
from quote_engines.approval import (
    can_auto_approve,
    describe_requirement,
    resolve_requirement,
)
from quote_kernel.db.engine import session_scope
from quote_kernel.domain.approval import (
    ApprovalRequest,
    ApprovalRequirement,
    ApprovalResult,
    ApprovalStatusView,
    AuthenticatedUser,
    PendingApprovalSummary,
    RejectionResult,
    RoleLimit,
    RoleLimitTable,
    RoleName,
    SubmissionResult,
)
from quote_kernel.domain.clock import Clock, SystemClock
from quote_kernel.logging_config import LogContext, get_logger
from quote_kernel.selectors.pending_approval_selector import PendingApprovalSelector
from quote_kernel.services.approval_ledger import ApprovalLedger
from quote_kernel.services.approval_service import ApprovalService
from quote_kernel.services.quote_store import QuoteStore
from quote_kernel.services.role_limit_service import RoleLimitService
from quote_services.export_dispatcher import ExportDispatcher

logger = get_logger("services.approval_orchestrator")


def _actor(user: AuthenticatedUser | None) -> str | None:
    return str(user.user_id) if user is not None else None


class ApprovalOrchestrator:
    """Transactional facade over the approval engine."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: QuoteApprovalConfig,
        dispatcher: ExportDispatcher | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._config = config
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def _role_limit_service(self, session: Session) -> RoleLimitService:
        approval = self._config.approval
        return RoleLimitService(
            session,
            validator=validate_role_limits,
            dual_control_threshold=approval.dual_control_threshold,
            dual_control_level=RoleName.parse(approval.dual_control_level),
            dual_control_approvers=approval.dual_control_approvers,
            clock=self._clock,
        )

    def _approval_service(self, session: Session) -> ApprovalService:
        return ApprovalService(
            session,
            ledger=ApprovalLedger(session, self._clock),
            quote_store=QuoteStore(session),
            role_limits=self._role_limit_service(session).load_table(),
            clock=self._clock,
        )

    def load_role_limits(self) -> RoleLimitTable:
        with session_scope(self._session_factory) as session:
            return self._role_limit_service(session).load_table()

    # ------------------------------------------------------------------
    # Approval verbs
    # ------------------------------------------------------------------

    def submit_for_approval(
        self,
        quote_id: UUID,
        user: AuthenticatedUser | None,
        comments: str | None = None,
    ) -> SubmissionResult:
        with LogContext.bind(actor_id=_actor(user), quote_id=str(quote_id)):
            try:
                return self._submit(quote_id, user, comments)
            except IntegrityError:
                # Another submission created the pending request first.
                logger.info(
                    "approval_submission_race_retry",
                    extra={"quote_id": str(quote_id)},
                )
                return self._submit(quote_id, user, comments)

    def _submit(
        self,
        quote_id: UUID,
        user: AuthenticatedUser | None,
        comments: str | None,
    ) -> SubmissionResult:
        with session_scope(self._session_factory) as session:
            return self._approval_service(session).submit_for_approval(
                quote_id, user, comments,
            )

    def approve(
        self,
        quote_id: UUID,
        user: AuthenticatedUser | None,
        exercised_role: RoleName | str,
        comments: str | None = None,
    ) -> ApprovalResult:
        with LogContext.bind(actor_id=_actor(user), quote_id=str(quote_id)):
            with session_scope(self._session_factory) as session:
                result = self._approval_service(session).approve(
                    quote_id, user, exercised_role, comments,
                )

            if result.became_final and self._dispatcher is not None:
                self._dispatcher.enqueue(quote_id)
            return result

    def reject(
        self,
        quote_id: UUID,
        user: AuthenticatedUser | None,
        exercised_role: RoleName | str,
        comments: str | None,
    ) -> RejectionResult:
        with LogContext.bind(actor_id=_actor(user), quote_id=str(quote_id)):
            with session_scope(self._session_factory) as session:
                return self._approval_service(session).reject(
                    quote_id, user, exercised_role, comments,
                )

    def withdraw(self, quote_id: UUID, user: AuthenticatedUser | None) -> ApprovalRequest:
        with LogContext.bind(actor_id=_actor(user), quote_id=str(quote_id)):
            with session_scope(self._session_factory) as session:
                return self._approval_service(session).withdraw(quote_id, user)

    def get_approval_status(self, quote_id: UUID) -> ApprovalStatusView | None:
        with session_scope(self._session_factory) as session:
            return self._approval_service(session).get_approval_status(quote_id)

    def get_pending_approvals(
        self,
        user: AuthenticatedUser | None,
        recent_limit: int | None = None,
    ) -> list[PendingApprovalSummary]:
        if recent_limit is None:
            recent_limit = self._config.approval.pending_recent_actions
        with LogContext.bind(actor_id=_actor(user)):
            with session_scope(self._session_factory) as session:
                table = self._role_limit_service(session).load_table()
                return PendingApprovalSelector(session).get_pending_for_user(
                    user, table, recent_limit,
                )

    # ------------------------------------------------------------------
    # Authority queries
    # ------------------------------------------------------------------

    def resolve_requirement(self, quote_value: Decimal) -> ApprovalRequirement:
        return resolve_requirement(self.load_role_limits(), quote_value)

    def can_auto_approve(self, user: AuthenticatedUser, quote_value: Decimal) -> bool:
        return can_auto_approve(self.load_role_limits(), user.roles, quote_value)

    def describe_requirement(self, quote_value: Decimal) -> str:
        return describe_requirement(self.load_role_limits(), quote_value)

    # ------------------------------------------------------------------
    # Role-limit administration
    # ------------------------------------------------------------------

    def replace_role_limits(
        self,
        limits: Sequence[RoleLimit],
        actor_id: UUID,
    ) -> RoleLimitTable:
        with LogContext.bind(actor_id=str(actor_id)):
            with session_scope(self._session_factory) as session:
                return self._role_limit_service(session).replace_limits(limits, actor_id)

    def seed_role_limits(self, actor_id: UUID) -> bool:
        """Store the configured seed ladder if no limits exist yet."""
        limits = [d.to_domain() for d in self._config.approval.role_limits]
        with session_scope(self._session_factory) as session:
            return self._role_limit_service(session).seed(limits, actor_id)

    def shutdown(self, timeout: float = 5.0) -> None:
        """Let queued exports finish, then stop the export worker."""
        if self._dispatcher is not None:
            self._dispatcher.drain(timeout)
            self._dispatcher.stop(timeout)


def build_approval_orchestrator(
    config: QuoteApprovalConfig | None = None,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
) -> ApprovalOrchestrator:
    """Build an ApprovalOrchestrator from config (single entrypoint for production).

    Loads config via get_active_config() unless one is given, initializes
    the engine from ``config.database`` unless a session factory is given,
    and attaches an export dispatcher when the export hook is enabled.

    Args:
        config: Configuration; defaults to get_active_config().
        session_factory: Existing session factory (tests, embedding apps).
        clock: Optional clock; default SystemClock.
    """
    from quote_config import get_active_config
    from quote_kernel.db.engine import get_session_factory, init_engine_from_url
    from quote_services.quote_exporter import HttpQuoteExporter

    config = config or get_active_config()
    if session_factory is None:
        init_engine_from_url(
            config.database.url,
            echo=config.database.echo,
            pool_size=config.database.pool_size,
        )
        session_factory = get_session_factory()

    dispatcher = None
    exporter = HttpQuoteExporter(config.export, session_factory)
    if exporter.enabled:
        dispatcher = ExportDispatcher(
            exporter,
            max_attempts=config.export.max_attempts,
            retry_delay_seconds=config.export.retry_delay_seconds,
        )

    logger.info(
        "approval_orchestrator_built",
        extra={
            "config_checksum": config.checksum,
            "export_enabled": dispatcher is not None,
        },
    )
    return ApprovalOrchestrator(session_factory, config, dispatcher=dispatcher, clock=clock)
