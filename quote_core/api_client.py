"""Direct quotation client that posts the search form without a browser."""
from __future__ import annotations

import logging
from typing import Optional, Tuple

import requests

from .config import Settings
from .errors import RemoteInteractionError
from .resolver import ResolvedQuote

LOGGER = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
ACCEPT_LANGUAGE = "es-ES,es;q=0.9,en;q=0.8"
QUOTATION_PATH = "quotation"


class DirectQuoteClient:
    """Mimics the XHR the quote page sends when the form is submitted."""

    def __init__(
        self,
        settings: Settings,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.timeout = timeout
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        self.session.headers["Accept-Language"] = ACCEPT_LANGUAGE

    @property
    def quote_url(self) -> str:
        return self.settings.site_url.rstrip("/")

    @property
    def quotation_url(self) -> str:
        return f"{self.quote_url}/{QUOTATION_PATH}"

    def _open_session(self) -> None:
        # The quotation endpoint only answers with the cookies set by the quote page.
        try:
            response = self.session.get(
                self.quote_url,
                headers={"Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RemoteInteractionError(f"Could not open quote page {self.quote_url}: {exc}") from exc
        LOGGER.info("Quote session opened (%d cookies)", len(self.session.cookies))

    def fetch_quote(self, resolved: ResolvedQuote) -> Tuple[str, str]:
        """Return the results URL and the plan HTML for ``resolved``."""

        self._open_session()
        payload = resolved.to_form_payload()
        LOGGER.info("Posting quotation request to %s", self.quotation_url)
        try:
            response = self.session.post(
                self.quotation_url,
                data=payload,
                headers={
                    "Accept": "application/json, text/javascript, */*; q=0.01",
                    "X-Requested-With": "XMLHttpRequest",
                    "Referer": self.quote_url,
                    "Origin": self.settings.base_url,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RemoteInteractionError(f"Quotation request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteInteractionError("Quotation response is not JSON") from exc
        html = body.get("html") if isinstance(body, dict) else None
        if not html:
            raise RemoteInteractionError("Quotation response contains no HTML")

        url = body.get("url") or response.url
        LOGGER.info("Received %d bytes of quote HTML for %s", len(html), url)
        return url, html
