"""Read-only selectors."""

from quote_kernel.selectors.base import BaseSelector
from quote_kernel.selectors.pending_approval_selector import PendingApprovalSelector

__all__ = ["BaseSelector", "PendingApprovalSelector"]
