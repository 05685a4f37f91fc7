"""
Module: quote_kernel.models.role_limit
Responsibility: ORM persistence for the role approval limit table.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per role (UNIQUE role).
    - Contiguity and non-overlap across roles are NOT enforced here; they
      are validated by quote_config.validator when limits are written.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from quote_kernel.db.base import Base
from quote_kernel.domain.approval import RoleLimit, RoleName


class RoleLimitModel(Base):
    """Administrator-maintained monetary range for one role."""

    __tablename__ = "role_approval_limits"

    role: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    min_amount: Mapped[Decimal] = mapped_column(nullable=False)
    max_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<RoleLimit {self.role} [{self.min_amount}, {self.max_amount}]>"

    def to_dto(self) -> RoleLimit:
        return RoleLimit(
            role=RoleName(self.role),
            min_amount=self.min_amount,
            max_amount=self.max_amount,
        )
