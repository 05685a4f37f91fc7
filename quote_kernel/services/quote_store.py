"""
quote_kernel.services.quote_store -- Narrow read/write access to quotes.

Responsibility:
    Supplies a quote's ``total_value`` to the approval engine and accepts
    ``quote_status`` writes.  Every other quote column is owned by the
    quoting module and is only read here (for the export payload).

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Failure modes:
    - QuoteNotFoundError if the quote id does not exist.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from quote_kernel.domain.approval import QuoteStatus
from quote_kernel.exceptions import QuoteNotFoundError
from quote_kernel.logging_config import get_logger
from quote_kernel.models.quote import QuoteModel

logger = get_logger("services.quote_store")


class QuoteStore:
    """Quote lookups and status writes within a caller-owned session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_quote(self, quote_id: UUID) -> QuoteModel:
        quote = self._session.get(QuoteModel, quote_id)
        if quote is None:
            raise QuoteNotFoundError(str(quote_id))
        return quote

    def get_total_value(self, quote_id: UUID) -> Decimal:
        return self.get_quote(quote_id).total_value

    def get_status(self, quote_id: UUID) -> QuoteStatus:
        return QuoteStatus(self.get_quote(quote_id).quote_status)

    def set_status(self, quote_id: UUID, status: QuoteStatus) -> None:
        """Write ``quote_status``.  The only quote column this engine mutates."""
        quote = self.get_quote(quote_id)
        previous = quote.quote_status
        quote.quote_status = status.value
        self._session.flush()

        logger.debug(
            "quote_status_changed",
            extra={
                "quote_id": str(quote_id),
                "from_status": previous,
                "to_status": status.value,
            },
        )

    def export_payload(self, quote_id: UUID) -> dict[str, Any]:
        """JSON-ready snapshot of an approved quote for the export hook."""
        quote = self.get_quote(quote_id)
        customer = quote.customer
        return {
            "quote_id": str(quote.id),
            "quote_number": quote.quote_number,
            "quote_status": quote.quote_status,
            "total_value": str(quote.total_value),
            "total_cost": None if quote.total_cost is None else str(quote.total_cost),
            "created_by": None if quote.created_by is None else str(quote.created_by),
            "created_at": None if quote.created_at is None else quote.created_at.isoformat(),
            "customer": None if customer is None else {
                "customer_id": str(customer.id),
                "name": customer.name,
                "customer_number": customer.customer_number,
            },
        }
