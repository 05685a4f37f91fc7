"""
Module: quote_kernel.models.user
Responsibility: ORM mapping of user profiles and role assignments, read by
    SqlIdentityProvider and by the pending-approval inbox query.

Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from quote_kernel.db.base import Base, UUIDString


class ProfileModel(Base):
    """User profile; ``id`` is the authenticated user id."""

    __tablename__ = "profiles"

    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)


class UserRoleModel(Base):
    """Role grant.  Only ``is_active`` rows confer authority."""

    __tablename__ = "user_roles"

    __table_args__ = (
        Index("ix_user_roles_user_active", "user_id", "is_active"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
