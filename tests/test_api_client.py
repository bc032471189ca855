"""Tests for the browserless quotation client."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

import pytest
import requests

from quote_core.api_client import DirectQuoteClient
from quote_core.config import Settings
from quote_core.errors import RemoteInteractionError
from quote_core.resolver import ResolvedQuote


class _StubResponse:
    def __init__(self, payload: Any = None, status: int = 200, url: str = "", text_body: bool = False) -> None:
        self._payload = payload
        self.status_code = status
        self.url = url
        self._text_body = text_body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        if self._text_body:
            raise ValueError("not json")
        return self._payload


class _StubSession:
    """Records requests and answers with canned responses."""

    def __init__(self, post_response: _StubResponse, get_error: Optional[Exception] = None) -> None:
        self.headers: Dict[str, str] = {}
        self.cookies: Dict[str, str] = {"PHPSESSID": "abc"}
        self.post_response = post_response
        self.get_error = get_error
        self.gets: List[str] = []
        self.posts: List[Dict[str, Any]] = []

    def get(self, url: str, **kwargs: Any) -> _StubResponse:
        if self.get_error is not None:
            raise self.get_error
        self.gets.append(url)
        return _StubResponse(status=200, url=url)

    def post(self, url: str, data: Dict[str, str], headers: Dict[str, str], timeout: float) -> _StubResponse:
        self.posts.append({"url": url, "data": data, "headers": headers})
        return self.post_response


def _resolved() -> ResolvedQuote:
    return ResolvedQuote(
        trip_type_value="Viajes Por Día",
        origin_id="12",
        destination_id="7",
        agent_id="2851",
        departure_date=date(2026, 1, 15),
        return_date=date(2026, 1, 22),
        passenger_count=2,
        ages=[30, 65],
    )


def test_fetch_quote_posts_the_search_form() -> None:
    session = _StubSession(
        _StubResponse({"html": "<div class='item-block'></div>", "url": "https://example.com/quotation/abc123"})
    )
    client = DirectQuoteClient(Settings(), session=session)

    url, html = client.fetch_quote(_resolved())

    assert url == "https://example.com/quotation/abc123"
    assert "item-block" in html
    assert session.gets == ["https://www1.mercantilseguros.com/as/viajesint/MRP022052"]
    post = session.posts[0]
    assert post["url"] == "https://www1.mercantilseguros.com/as/viajesint/MRP022052/quotation"
    assert post["headers"]["X-Requested-With"] == "XMLHttpRequest"
    assert post["data"]["websitebundle_quotation_search[origin]"] == "12"
    assert post["data"]["websitebundle_quotation_search[date_to]"] == "2026-01-22"
    assert post["data"]["passengers-age[1]"] == "65"
    assert "User-Agent" in session.headers


def test_response_url_is_used_when_body_has_none() -> None:
    session = _StubSession(_StubResponse({"html": "<p>plans</p>"}, url="https://example.com/results/xyz"))
    url, _ = DirectQuoteClient(Settings(), session=session).fetch_quote(_resolved())
    assert url == "https://example.com/results/xyz"


@pytest.mark.parametrize(
    "response",
    [
        _StubResponse(status=500),
        _StubResponse(text_body=True),
        _StubResponse({"status": "ok"}),
        _StubResponse(["unexpected"]),
    ],
)
def test_bad_responses_are_remote_errors(response: _StubResponse) -> None:
    client = DirectQuoteClient(Settings(), session=_StubSession(response))
    with pytest.raises(RemoteInteractionError):
        client.fetch_quote(_resolved())


def test_unreachable_quote_page_is_a_remote_error() -> None:
    session = _StubSession(_StubResponse({}), get_error=requests.ConnectionError("refused"))
    with pytest.raises(RemoteInteractionError):
        DirectQuoteClient(Settings(), session=session).fetch_quote(_resolved())
    assert session.posts == []
