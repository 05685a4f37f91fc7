"""Tests for QuoteStore -- the approval engine's view of the quote table."""

from decimal import Decimal
from uuid import uuid4

import pytest

from quote_kernel.domain.approval import QuoteStatus
from quote_kernel.exceptions import QuoteNotFoundError
from quote_kernel.services.quote_store import QuoteStore


class TestQuoteStore:

    def test_reads(self, session, create_quote):
        quote_id = create_quote("1234.50")
        store = QuoteStore(session)

        assert store.get_total_value(quote_id) == Decimal("1234.50")
        assert store.get_status(quote_id) == QuoteStatus.DRAFT

    def test_set_status(self, session, create_quote):
        quote_id = create_quote("10")
        store = QuoteStore(session)

        store.set_status(quote_id, QuoteStatus.PENDING_APPROVAL)

        assert store.get_status(quote_id) == QuoteStatus.PENDING_APPROVAL

    def test_missing_quote(self, session, engine):
        with pytest.raises(QuoteNotFoundError):
            QuoteStore(session).get_quote(uuid4())

    def test_export_payload(self, session, create_quote):
        creator = uuid4()
        quote_id = create_quote("75000", customer_name="Acme Industrial", created_by=creator, quote_number="Q-7")

        payload = QuoteStore(session).export_payload(quote_id)

        assert payload["quote_id"] == str(quote_id)
        assert payload["quote_number"] == "Q-7"
        assert payload["quote_status"] == "draft"
        assert Decimal(payload["total_value"]) == Decimal("75000")
        assert payload["total_cost"] is None
        assert payload["created_by"] == str(creator)
        assert payload["customer"]["name"] == "Acme Industrial"

    def test_export_payload_without_customer(self, session, create_quote):
        quote_id = create_quote("10", customer_name=None)
        assert QuoteStore(session).export_payload(quote_id)["customer"] is None
