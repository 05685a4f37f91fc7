"""Kernel services: approval lifecycle, ledger, role limits, quotes, identity."""

from quote_kernel.services.approval_ledger import ApprovalLedger
from quote_kernel.services.approval_service import ApprovalService
from quote_kernel.services.identity import SqlIdentityProvider
from quote_kernel.services.quote_store import QuoteStore
from quote_kernel.services.role_limit_service import RoleLimitService

__all__ = [
    "ApprovalLedger",
    "ApprovalService",
    "QuoteStore",
    "RoleLimitService",
    "SqlIdentityProvider",
]
