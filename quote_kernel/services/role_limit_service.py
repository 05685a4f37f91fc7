"""
quote_kernel.services.role_limit_service -- Role approval limit table.

Responsibility:
    Loads the administrator-maintained role limits into an immutable
    RoleLimitTable snapshot, and provides the validated write path used by
    the limits settings screen and the seeding script.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.
    Validation is injected as a callable so the kernel does not import
    from quote_config.

Invariants enforced:
    - Snapshot reads: ``load_table`` returns a frozen table; callers load
      it once per request cycle and never mutate it.
    - Validated writes: ``replace_limits`` refuses a ladder with any
      validation error and leaves the stored limits untouched.

Failure modes:
    - RoleLimitConfigurationError if the new ladder fails validation.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Iterable, Protocol, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from quote_kernel.domain.approval import (
    DEFAULT_DUAL_CONTROL_THRESHOLD,
    RoleLimit,
    RoleLimitTable,
    RoleName,
)
from quote_kernel.domain.clock import Clock, SystemClock
from quote_kernel.exceptions import RoleLimitConfigurationError
from quote_kernel.logging_config import get_logger
from quote_kernel.models.role_limit import RoleLimitModel

logger = get_logger("services.role_limit")


class _ValidationResult(Protocol):
    errors: list[str]
    warnings: list[str]


LimitValidator = Callable[[Iterable[RoleLimit]], _ValidationResult]


class RoleLimitService:
    """Reads and writes ``role_approval_limits``."""

    def __init__(
        self,
        session: Session,
        validator: LimitValidator | None = None,
        dual_control_threshold: Decimal = DEFAULT_DUAL_CONTROL_THRESHOLD,
        dual_control_level: RoleName = RoleName.PRESIDENT,
        dual_control_approvers: int = 2,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._validator = validator
        self._dual_control_threshold = dual_control_threshold
        self._dual_control_level = dual_control_level
        self._dual_control_approvers = dual_control_approvers
        self._clock = clock or SystemClock()

    def load_limits(self) -> tuple[RoleLimit, ...]:
        rows = self._session.execute(
            select(RoleLimitModel).order_by(RoleLimitModel.min_amount)
        ).scalars().all()
        return tuple(r.to_dto() for r in rows)

    def load_table(self) -> RoleLimitTable:
        """Snapshot the stored limits together with dual-control settings."""
        return RoleLimitTable(
            limits=self.load_limits(),
            dual_control_threshold=self._dual_control_threshold,
            dual_control_level=self._dual_control_level,
            dual_control_approvers=self._dual_control_approvers,
        )

    def is_empty(self) -> bool:
        count = self._session.execute(
            select(func.count()).select_from(RoleLimitModel)
        ).scalar_one()
        return count == 0

    def replace_limits(
        self,
        limits: Sequence[RoleLimit],
        actor_id: UUID,
    ) -> RoleLimitTable:
        """Validate and store a complete ladder, replacing the current one.

        Roles missing from ``limits`` are removed from the table.
        """
        limits = tuple(limits)
        if self._validator is not None:
            result = self._validator(limits)
            if result.errors:
                logger.warning(
                    "role_limits_rejected",
                    extra={"actor_id": str(actor_id), "errors": result.errors},
                )
                raise RoleLimitConfigurationError(result.errors)
            for warning in result.warnings:
                logger.warning(
                    "role_limits_warning",
                    extra={"actor_id": str(actor_id), "detail": warning},
                )

        now = self._clock.now()
        existing = {
            row.role: row
            for row in self._session.execute(select(RoleLimitModel)).scalars()
        }
        incoming = {lim.role.value: lim for lim in limits}

        for role, row in existing.items():
            if role not in incoming:
                self._session.delete(row)

        for role, lim in incoming.items():
            row = existing.get(role)
            if row is None:
                self._session.add(RoleLimitModel(
                    role=role,
                    min_amount=lim.min_amount,
                    max_amount=lim.max_amount,
                    updated_at=now,
                ))
            else:
                row.min_amount = lim.min_amount
                row.max_amount = lim.max_amount
                row.updated_at = now

        self._session.flush()

        logger.info(
            "role_limits_replaced",
            extra={
                "actor_id": str(actor_id),
                "roles": sorted(incoming),
            },
        )
        return self.load_table()

    def seed(self, limits: Sequence[RoleLimit], actor_id: UUID) -> bool:
        """Store ``limits`` only if the table is empty.  Returns True if seeded."""
        if not self.is_empty():
            logger.debug("role_limits_seed_skipped")
            return False
        self.replace_limits(limits, actor_id)
        logger.info("role_limits_seeded", extra={"role_count": len(limits)})
        return True
