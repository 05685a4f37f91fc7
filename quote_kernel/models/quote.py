"""
Module: quote_kernel.models.quote
Responsibility: ORM mapping of the quote and customer columns the approval
    engine reads.  These tables belong to the quoting module; the approval
    engine only ever writes ``quotes.quote_status``.

Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quote_kernel.db.base import Base, UUIDString


class CustomerModel(Base):
    """Customer account referenced by quotes."""

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Customer {self.customer_number} {self.name}>"


class QuoteModel(Base):
    """Quote header."""

    __tablename__ = "quotes"

    __table_args__ = (
        CheckConstraint(
            "quote_status IN ('draft', 'pending_approval', 'approved')",
            name="ck_quotes_valid_status",
        ),
    )

    quote_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    customer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("customers.id"), nullable=True,
    )
    created_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    total_value: Mapped[Decimal] = mapped_column(nullable=False)
    total_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    quote_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="draft",
    )
    created_at: Mapped[datetime | None] = mapped_column(nullable=True)

    customer: Mapped[CustomerModel | None] = relationship(CustomerModel, lazy="joined")

    def __repr__(self) -> str:
        return (
            f"<Quote {self.quote_number} value={self.total_value} "
            f"status={self.quote_status}>"
        )
