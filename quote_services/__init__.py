"""
quote_services -- orchestration above the approval kernel.

Transaction boundaries, the post-commit export queue, and the HTTP quote
exporter live here.
"""

from quote_services.approval_orchestrator import (
    ApprovalOrchestrator,
    build_approval_orchestrator,
)
from quote_services.export_dispatcher import ExportDispatcher
from quote_services.quote_exporter import HttpQuoteExporter, QuoteExporter

__all__ = [
    "ApprovalOrchestrator",
    "ExportDispatcher",
    "HttpQuoteExporter",
    "QuoteExporter",
    "build_approval_orchestrator",
]
