"""
Tests for PendingApprovalSelector -- the approval inbox.

Covers:
- Eligibility by tier and by configured range; Admin sees everything
- One row per request regardless of how many roles qualify
- Oldest request first
- Joined quote number, customer and requester name
- already_approved_by_user and the recent-actions slice
- A fixed number of SELECTs however many requests are pending
"""

from dataclasses import replace
from decimal import Decimal

import pytest
from sqlalchemy import event

from quote_kernel.domain.approval import (
    ApprovalDecision,
    RoleLimit,
    RoleLimitTable,
    RoleName,
)
from quote_kernel.exceptions import AuthenticationError
from quote_kernel.selectors.pending_approval_selector import PendingApprovalSelector
from quote_kernel.services.approval_ledger import ApprovalLedger
from quote_kernel.services.approval_service import ApprovalService
from quote_kernel.services.quote_store import QuoteStore


@pytest.fixture
def selector(session):
    return PendingApprovalSelector(session)


@pytest.fixture
def requester(create_user):
    return create_user("CSR", name="Casey Requester")


@pytest.fixture
def queued(create_quote, approval_service, requester, make_user, deterministic_clock):
    """Three pending requests at CSR, Manager and Director tiers, oldest first."""
    csr_tier = create_quote("15000", customer_name="Small Co")
    manager_tier = create_quote("30000", customer_name=None)
    director_tier = create_quote("75000", customer_name="Big Co")

    approval_service.submit_for_approval(csr_tier, make_user("Director"))
    deterministic_clock.advance(60)
    approval_service.submit_for_approval(manager_tier, requester)
    deterministic_clock.advance(60)
    approval_service.submit_for_approval(director_tier, requester)
    return csr_tier, manager_tier, director_tier


class TestEligibility:

    def test_manager_sees_own_tier_and_below(self, selector, role_limits, queued, make_user):
        csr_tier, manager_tier, _ = queued

        inbox = selector.get_pending_for_user(make_user("Manager"), role_limits)

        assert [s.quote_id for s in inbox] == [csr_tier, manager_tier]

    def test_director_sees_all_three_oldest_first(self, selector, role_limits, queued, make_user):
        inbox = selector.get_pending_for_user(make_user("Director"), role_limits)
        assert [s.quote_id for s in inbox] == list(queued)

    def test_csr_sees_only_csr_tier(self, selector, role_limits, queued, make_user):
        inbox = selector.get_pending_for_user(make_user("CSR"), role_limits)
        assert [s.approval_level for s in inbox] == [RoleName.CSR]

    def test_admin_sees_everything(self, selector, role_limits, queued, make_user):
        inbox = selector.get_pending_for_user(make_user("Admin"), role_limits)
        assert len(inbox) == 3

    def test_range_match_widens_eligibility(self, selector, queued, make_user):
        widened = RoleLimitTable(limits=(RoleLimit(RoleName.CSR, Decimal("0"), Decimal("100000")),))

        inbox = selector.get_pending_for_user(make_user("CSR"), widened)

        assert [s.quote_id for s in inbox] == list(queued)

    def test_one_row_per_request(self, selector, role_limits, queued, make_user):
        inbox = selector.get_pending_for_user(make_user("CSR", "Manager", "Director"), role_limits)
        assert len({s.request_id for s in inbox}) == len(inbox) == 3

    def test_resolved_requests_drop_out(self, selector, role_limits, queued, approval_service, make_user):
        _, _, director_tier = queued
        approval_service.approve(director_tier, make_user("VP"), RoleName.VP)

        inbox = selector.get_pending_for_user(make_user("VP"), role_limits)

        assert director_tier not in [s.quote_id for s in inbox]

    def test_no_roles(self, selector, role_limits, queued, make_user):
        assert selector.get_pending_for_user(make_user(), role_limits) == []

    def test_requires_user(self, selector, role_limits):
        with pytest.raises(AuthenticationError):
            selector.get_pending_for_user(None, role_limits)


class TestSummaryFields:

    def test_joined_columns(self, selector, role_limits, queued, make_user):
        inbox = selector.get_pending_for_user(make_user("Director"), role_limits)
        csr_row, manager_row, director_row = inbox

        assert director_row.quote_number.startswith("Q-")
        assert director_row.customer_name == "Big Co"
        assert director_row.requester_name == "Casey Requester"
        assert director_row.total_value == Decimal("75000")
        assert director_row.required_approvers == 1
        assert director_row.current_approvers == 0
        assert manager_row.customer_name is None
        assert csr_row.requester_name is None


class TestDecisionColumns:

    @pytest.fixture
    def dual_control_service(self, session, role_limits, deterministic_clock):
        table = replace(role_limits, dual_control_approvers=4)
        return ApprovalService(
            session,
            ledger=ApprovalLedger(session, deterministic_clock),
            quote_store=QuoteStore(session),
            role_limits=table,
            clock=deterministic_clock,
        )

    def test_already_approved_by_user(
        self, selector, role_limits, create_quote, dual_control_service, make_user,
    ):
        quote_id = create_quote("900000")
        dual_control_service.submit_for_approval(quote_id, make_user("CSR"))
        first = make_user("President")
        dual_control_service.approve(quote_id, first, RoleName.PRESIDENT)

        mine = selector.get_pending_for_user(first, role_limits)
        theirs = selector.get_pending_for_user(make_user("President"), role_limits)

        assert mine[0].already_approved_by_user
        assert mine[0].current_approvers == 1
        assert not theirs[0].already_approved_by_user

    def test_recent_actions_newest_first_and_limited(
        self, selector, role_limits, create_quote, dual_control_service, make_user, deterministic_clock,
    ):
        quote_id = create_quote("900000")
        dual_control_service.submit_for_approval(quote_id, make_user("CSR"))
        approvers = [make_user("President") for _ in range(3)]
        for approver in approvers:
            deterministic_clock.advance(60)
            dual_control_service.approve(quote_id, approver, RoleName.PRESIDENT)

        inbox = selector.get_pending_for_user(make_user("Admin"), role_limits, recent_limit=2)

        recent = inbox[0].recent_actions
        assert [a.approver_id for a in recent] == [approvers[2].user_id, approvers[1].user_id]
        assert all(a.action == ApprovalDecision.APPROVED for a in recent)

    def test_recent_limit_zero(self, selector, role_limits, queued, make_user):
        inbox = selector.get_pending_for_user(make_user("Admin"), role_limits, recent_limit=0)
        assert all(s.recent_actions == () for s in inbox)


class TestQueryCount:

    def test_fixed_selects_for_many_requests(
        self, selector, session, engine, role_limits, approval_service, create_quote, make_user,
        deterministic_clock,
    ):
        quote_ids = [create_quote("600000") for _ in range(6)]
        for quote_id in quote_ids:
            approval_service.submit_for_approval(quote_id, make_user("CSR"))
            approval_service.approve(quote_id, make_user("President"), RoleName.PRESIDENT)
            deterministic_clock.advance(1)
        session.flush()

        statements = []

        def record(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        event.listen(engine, "before_cursor_execute", record)
        try:
            inbox = selector.get_pending_for_user(make_user("President"), role_limits)
        finally:
            event.remove(engine, "before_cursor_execute", record)

        assert [s.quote_id for s in inbox] == quote_ids
        assert all(len(s.recent_actions) == 1 for s in inbox)
        selects = [s for s in statements if s.lstrip().upper().startswith("SELECT")]
        assert len(selects) <= 3
