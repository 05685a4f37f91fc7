"""
Quote Kernel - approval engine for the quoting application

Value-based, multi-level quote approval with:
- Role-limit driven authority resolution
- Auto-approval for submitters who already hold enough authority
- Dual-control sign-off for the largest quotes
- Append-only approval ledger
- Atomic approver counting under concurrent approvals
"""

__version__ = "0.1.0"
