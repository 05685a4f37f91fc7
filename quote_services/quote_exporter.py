"""
HTTP export of approved quotes.

Posts a JSON snapshot of the quote to the configured endpoint with HTTP
basic auth.  Called from the ExportDispatcher worker thread, never from
inside an approval transaction.
"""

from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID

import requests
from sqlalchemy.orm import Session, sessionmaker

from quote_config.schema import ExportSettings
from quote_kernel.exceptions import QuoteExportError
from quote_kernel.logging_config import get_logger
from quote_kernel.services.quote_store import QuoteStore

logger = get_logger("services.quote_exporter")


class QuoteExporter(Protocol):
    """Anything that can push an approved quote downstream."""

    def export(self, quote_id: UUID) -> None:
        ...


class HttpQuoteExporter:
    """POSTs approved quotes to an external system using ``requests``."""

    def __init__(
        self,
        settings: ExportSettings,
        session_factory: sessionmaker[Session],
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory

    @property
    def enabled(self) -> bool:
        return self._settings.enabled and bool(self._settings.url)

    def build_payload(self, quote_id: UUID) -> dict[str, Any]:
        session = self._session_factory()
        try:
            return QuoteStore(session).export_payload(quote_id)
        finally:
            session.close()

    def export(self, quote_id: UUID) -> None:
        """Send one quote.

        Raises:
            QuoteExportError: On a transport error or a non-2xx response.
        """
        if not self.enabled:
            logger.debug("quote_export_disabled", extra={"quote_id": str(quote_id)})
            return

        payload = self.build_payload(quote_id)
        auth = None
        if self._settings.username:
            auth = (self._settings.username, self._settings.password)

        try:
            response = requests.post(
                self._settings.url,
                json=payload,
                auth=auth,
                headers={"Accept": "application/json"},
                timeout=self._settings.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise QuoteExportError(str(quote_id), str(exc)) from exc

        if not 200 <= response.status_code < 300:
            raise QuoteExportError(
                str(quote_id),
                f"endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        logger.info(
            "quote_exported",
            extra={
                "quote_id": str(quote_id),
                "quote_number": payload.get("quote_number"),
                "status_code": response.status_code,
            },
        )
