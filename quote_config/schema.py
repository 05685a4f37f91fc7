"""
Quote approval configuration schema.

Human-authored YAML is parsed into these frozen dataclasses by the
loader.  ``QuoteApprovalConfig`` is the only object handed to runtime
code; nothing else reads YAML or environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from quote_kernel.domain.approval import (
    DEFAULT_DUAL_CONTROL_THRESHOLD,
    RoleLimit,
    RoleLimitTable,
    RoleName,
)


@dataclass(frozen=True)
class RoleLimitDef:
    """YAML-authored monetary range for one role (``max_amount=None`` = no cap)."""

    role: str
    min_amount: Decimal
    max_amount: Decimal | None = None

    def to_domain(self) -> RoleLimit:
        return RoleLimit(
            role=RoleName.parse(self.role),
            min_amount=self.min_amount,
            max_amount=self.max_amount,
        )


@dataclass(frozen=True)
class ApprovalSettings:
    """Role ladder seed and dual-control settings."""

    role_limits: tuple[RoleLimitDef, ...] = ()
    dual_control_threshold: Decimal = DEFAULT_DUAL_CONTROL_THRESHOLD
    dual_control_level: str = RoleName.PRESIDENT.value
    dual_control_approvers: int = 2
    pending_recent_actions: int = 5

    def build_table(self, limits: tuple[RoleLimit, ...] | None = None) -> RoleLimitTable:
        """Combine limits (the seed ladder by default) with dual-control settings."""
        if limits is None:
            limits = tuple(d.to_domain() for d in self.role_limits)
        return RoleLimitTable(
            limits=limits,
            dual_control_threshold=self.dual_control_threshold,
            dual_control_level=RoleName.parse(self.dual_control_level),
            dual_control_approvers=self.dual_control_approvers,
        )


@dataclass(frozen=True)
class ExportSettings:
    """Approved-quote export endpoint (fire-and-forget hook)."""

    enabled: bool = False
    url: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    timeout_seconds: float = 30.0
    max_attempts: int = 3
    retry_delay_seconds: float = 1.0


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///quote_approval.db"
    echo: bool = False
    pool_size: int = 10


@dataclass(frozen=True)
class QuoteApprovalConfig:
    """Root configuration object."""

    approval: ApprovalSettings = field(default_factory=ApprovalSettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    log_level: str = "INFO"
    source_path: str | None = None
    checksum: str | None = None
