"""
Tests for ApprovalOrchestrator -- the transactional entry point.

Covers:
- Each verb commits on success and rolls back on failure
- Ledger insert and count increment are atomic
- Export is queued only after a final approval commits
- A submission that loses the pending-request race returns the winner
- Role-limit administration and authority queries read the stored table
- Log records carry the bound actor and quote ids
"""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from quote_kernel.domain.approval import (
    ApprovalStatus,
    QuoteStatus,
    RoleLimit,
    RoleName,
)
from quote_kernel.exceptions import (
    ApprovalAlreadyResolvedError,
    RoleLimitConfigurationError,
    UnauthorizedApproverError,
)
from quote_kernel.services.approval_service import ApprovalService
from quote_kernel.services.quote_store import QuoteStore
from quote_services import quote_exporter
from quote_services.approval_orchestrator import (
    ApprovalOrchestrator,
    build_approval_orchestrator,
)


class RecordingDispatcher:
    """Stands in for ExportDispatcher; remembers what was queued."""

    def __init__(self):
        self.queued = []

    def enqueue(self, quote_id):
        self.queued.append(quote_id)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def exporting_orchestrator(session_factory, quote_config, seeded_limits, deterministic_clock, dispatcher):
    return ApprovalOrchestrator(session_factory, quote_config, dispatcher=dispatcher, clock=deterministic_clock)


def committed_quote_status(session_factory, quote_id):
    session = session_factory()
    try:
        return QuoteStore(session).get_status(quote_id)
    finally:
        session.close()


class TestCommitSemantics:

    def test_submission_is_durable(self, orchestrator, session_factory, create_quote, make_user):
        quote_id = create_quote("75000")

        orchestrator.submit_for_approval(quote_id, make_user("CSR"))

        assert committed_quote_status(session_factory, quote_id) == QuoteStatus.PENDING_APPROVAL
        view = orchestrator.get_approval_status(quote_id)
        assert view.request.status == ApprovalStatus.PENDING

    def test_failed_decision_changes_nothing(self, orchestrator, create_quote, make_user):
        quote_id = create_quote("75000")
        orchestrator.submit_for_approval(quote_id, make_user("CSR"))

        with pytest.raises(UnauthorizedApproverError):
            orchestrator.approve(quote_id, make_user("Manager"), RoleName.MANAGER)

        view = orchestrator.get_approval_status(quote_id)
        assert view.request.current_approvers == 0
        assert view.actions == ()

    def test_ledger_and_count_roll_back_together(
        self, orchestrator, session_factory, create_quote, make_user, monkeypatch,
    ):
        quote_id = create_quote("75000")
        orchestrator.submit_for_approval(quote_id, make_user("CSR"))
        original = QuoteStore.set_status

        def failing_set_status(self, qid, status):
            if status == QuoteStatus.APPROVED:
                raise RuntimeError("quote table unavailable")
            return original(self, qid, status)

        monkeypatch.setattr(QuoteStore, "set_status", failing_set_status)

        with pytest.raises(RuntimeError):
            orchestrator.approve(quote_id, make_user("Director"), RoleName.DIRECTOR)

        monkeypatch.undo()
        view = orchestrator.get_approval_status(quote_id)
        assert view.request.status == ApprovalStatus.PENDING
        assert view.request.current_approvers == 0
        assert view.actions == ()
        assert committed_quote_status(session_factory, quote_id) == QuoteStatus.PENDING_APPROVAL

    def test_full_lifecycle(self, orchestrator, session_factory, create_quote, make_user):
        quote_id = create_quote("600000")
        orchestrator.submit_for_approval(quote_id, make_user("CSR"))
        orchestrator.approve(quote_id, make_user("President"), RoleName.PRESIDENT)
        result = orchestrator.approve(quote_id, make_user("President"), RoleName.PRESIDENT)

        assert result.became_final
        assert committed_quote_status(session_factory, quote_id) == QuoteStatus.APPROVED
        assert len(orchestrator.get_approval_status(quote_id).actions) == 2

    def test_reject_then_resubmit(self, orchestrator, session_factory, create_quote, make_user):
        quote_id = create_quote("75000")
        requester = make_user("CSR")
        first = orchestrator.submit_for_approval(quote_id, requester)
        orchestrator.reject(quote_id, make_user("VP"), RoleName.VP, "margin too low")
        assert committed_quote_status(session_factory, quote_id) == QuoteStatus.DRAFT

        second = orchestrator.submit_for_approval(quote_id, requester)

        assert second.request.id != first.request.id
        assert orchestrator.get_approval_status(quote_id).request.id == second.request.id

    def test_withdraw(self, orchestrator, create_quote, make_user):
        quote_id = create_quote("75000")
        requester = make_user("CSR")
        orchestrator.submit_for_approval(quote_id, requester)

        assert orchestrator.withdraw(quote_id, requester).status == ApprovalStatus.WITHDRAWN
        with pytest.raises(ApprovalAlreadyResolvedError):
            orchestrator.approve(quote_id, make_user("Director"), RoleName.DIRECTOR)


class TestExportHandoff:

    def test_final_approval_is_queued(self, exporting_orchestrator, dispatcher, create_quote, make_user):
        quote_id = create_quote("75000")
        exporting_orchestrator.submit_for_approval(quote_id, make_user("CSR"))

        exporting_orchestrator.approve(quote_id, make_user("Director"), RoleName.DIRECTOR)

        assert dispatcher.queued == [quote_id]

    def test_partial_approval_is_not_queued(self, exporting_orchestrator, dispatcher, create_quote, make_user):
        quote_id = create_quote("600000")
        exporting_orchestrator.submit_for_approval(quote_id, make_user("CSR"))

        exporting_orchestrator.approve(quote_id, make_user("President"), RoleName.PRESIDENT)

        assert dispatcher.queued == []

    def test_auto_approval_is_not_queued(self, exporting_orchestrator, dispatcher, create_quote, make_user):
        quote_id = create_quote("100")
        exporting_orchestrator.submit_for_approval(quote_id, make_user("CSR"))
        assert dispatcher.queued == []

    def test_failed_approval_is_not_queued(self, exporting_orchestrator, dispatcher, create_quote, make_user):
        quote_id = create_quote("75000")
        exporting_orchestrator.submit_for_approval(quote_id, make_user("CSR"))

        with pytest.raises(UnauthorizedApproverError):
            exporting_orchestrator.approve(quote_id, make_user("CSR"), RoleName.CSR)

        assert dispatcher.queued == []


class TestSubmissionRace:

    def test_losing_submission_returns_existing_request(
        self, orchestrator, create_quote, make_user, monkeypatch, captured_logs,
    ):
        quote_id = create_quote("75000")
        winner = orchestrator.submit_for_approval(quote_id, make_user("CSR"))

        original = ApprovalService._find_pending
        calls = {"n": 0}

        def stale_find_pending(self, qid):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return original(self, qid)

        monkeypatch.setattr(ApprovalService, "_find_pending", stale_find_pending)

        loser = orchestrator.submit_for_approval(quote_id, make_user("CSR"))

        assert loser.request.id == winner.request.id
        assert any(r["message"] == "approval_submission_race_retry" for r in captured_logs())


class TestRoleLimitAdministration:

    def test_seeded_table_is_used(self, orchestrator):
        table = orchestrator.load_role_limits()
        assert len(table.limits) == 5
        assert orchestrator.resolve_requirement(Decimal("75000")).level == RoleName.DIRECTOR

    def test_seed_is_idempotent(self, orchestrator):
        assert not orchestrator.seed_role_limits(uuid4())

    def test_replace_changes_routing(self, orchestrator, create_quote, make_user):
        quote_id = create_quote("75000")
        orchestrator.replace_role_limits(
            [
                RoleLimit(RoleName.CSR, Decimal("0"), Decimal("99999.99")),
                RoleLimit(RoleName.PRESIDENT, Decimal("100000")),
            ],
            uuid4(),
        )

        assert orchestrator.can_auto_approve(make_user("CSR"), Decimal("75000"))
        assert orchestrator.submit_for_approval(quote_id, make_user("CSR")).auto_approved

    def test_invalid_replacement_keeps_old_table(self, orchestrator):
        with pytest.raises(RoleLimitConfigurationError):
            orchestrator.replace_role_limits(
                [RoleLimit(RoleName.CSR, Decimal("-5"), Decimal("10"))],
                uuid4(),
            )
        assert len(orchestrator.load_role_limits().limits) == 5

    def test_describe_requirement(self, orchestrator):
        assert orchestrator.describe_requirement(Decimal("600000")) == (
            "This quote requires 2 approvals from a President."
        )


class TestInbox:

    def test_pending_approvals(self, orchestrator, create_quote, make_user):
        quote_id = create_quote("75000")
        orchestrator.submit_for_approval(quote_id, make_user("CSR"))

        inbox = orchestrator.get_pending_approvals(make_user("Director"))

        assert [s.quote_id for s in inbox] == [quote_id]
        assert orchestrator.get_pending_approvals(make_user("Manager")) == []


class TestLogContext:

    def test_actor_and_quote_bound(self, orchestrator, create_quote, make_user, captured_logs):
        quote_id = create_quote("75000")
        user = make_user("CSR")

        orchestrator.submit_for_approval(quote_id, user)

        created = [r for r in captured_logs() if r["message"] == "approval_request_created"]
        assert created[0]["actor_id"] == str(user.user_id)
        assert created[0]["quote_id"] == str(quote_id)


class TestBuildApprovalOrchestrator:

    def test_export_disabled_means_no_dispatcher(self, session_factory, quote_config, seeded_limits):
        orchestrator = build_approval_orchestrator(quote_config, session_factory)
        assert orchestrator._dispatcher is None

    def test_approved_quote_is_exported_after_commit(
        self, session_factory, quote_config, seeded_limits, create_quote, make_user, monkeypatch,
    ):
        posted = []

        class Response:
            status_code = 202

        def fake_post(url, **kwargs):
            posted.append((url, kwargs["json"]))
            return Response()

        monkeypatch.setattr(quote_exporter.requests, "post", fake_post)
        config = replace(
            quote_config,
            export=replace(
                quote_config.export,
                enabled=True,
                url="https://erp.example.com/api/quotes",
                retry_delay_seconds=0,
            ),
        )
        orchestrator = build_approval_orchestrator(config, session_factory)
        quote_id = create_quote("75000")

        orchestrator.submit_for_approval(quote_id, make_user("CSR"))
        orchestrator.approve(quote_id, make_user("Director"), RoleName.DIRECTOR)
        orchestrator.shutdown()

        assert len(posted) == 1
        url, payload = posted[0]
        assert url == "https://erp.example.com/api/quotes"
        assert payload["quote_id"] == str(quote_id)
        assert payload["quote_status"] == "approved"
