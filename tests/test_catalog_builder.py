"""Tests for the catalog builder running against a stub Playwright page."""

from __future__ import annotations

from typing import Dict, List, Optional, Set

import pytest
from playwright.async_api import Error as PlaywrightError

from quote_core.catalog import build_catalog
from quote_core.errors import RemoteInteractionError
from quote_core.sources.mercantil import QuoteFormSelectors, SiteConfig

SELECTORS = QuoteFormSelectors()
QUOTE_URL = "https://www1.mercantilseguros.com/as/viajesint/MRP022052"


class _StubOption:
    def __init__(self, value: str, text: str, attributes: Optional[Dict[str, str]] = None) -> None:
        self._text = text
        self._attributes = {"value": value, **(attributes or {})}

    async def text_content(self) -> str:
        return self._text

    async def get_attribute(self, name: str) -> Optional[str]:
        return self._attributes.get(name)


class _StubQuotePage:
    """Imitates the quote form: destinations hide themselves per trip type."""

    def __init__(self, availability: Dict[str, Set[str]], broken_trip_types: Set[str] = frozenset()) -> None:
        self.url = QUOTE_URL + "/"
        self.availability = availability
        self.broken_trip_types = broken_trip_types
        self.selected: Optional[str] = None
        self.selections: List[str] = []
        self.waits: List[int] = []
        self.trip_types = [("", "Seleccione")] + [(value, value) for value in availability]
        self.destinations = [("7", "Europe"), ("5", "Latinoamérica"), ("9", "Mundial")]

    async def query_selector_all(self, selector: str) -> List[_StubOption]:
        if selector == f"{SELECTORS.trip_type} option":
            return [_StubOption(value, text) for value, text in self.trip_types]
        if selector == f"{SELECTORS.origin} option":
            return [_StubOption("", "Seleccione"), _StubOption("12", "Argentina"), _StubOption("160", "Venezuela")]
        if selector == f"{SELECTORS.agent} option":
            return [_StubOption("2851", "Agente Web")]
        if selector == f"{SELECTORS.destination} option":
            available = self.availability.get(self.selected or "", set())
            options = [_StubOption("", "Seleccione")]
            for value, text in self.destinations:
                if value in available:
                    options.append(_StubOption(value, text))
                elif value == "5":
                    options.append(_StubOption(value, text, {"disabled": ""}))
                else:
                    options.append(_StubOption(value, text, {"style": "display: none;"}))
            return options
        return []

    async def select_option(self, selector: str, value: str) -> None:
        if selector == SELECTORS.trip_type:
            if value in self.broken_trip_types:
                raise PlaywrightError("select detached")
            self.selected = value
            self.selections.append(value)

    async def wait_for_timeout(self, milliseconds: int) -> None:
        self.waits.append(milliseconds)


def _site() -> SiteConfig:
    return SiteConfig(
        quote_url=QUOTE_URL,
        navigation_timeout_ms=1000,
        selector_timeout_ms=1000,
        results_timeout_ms=1000,
        settle_ms=50,
    )


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.anyio
async def test_build_catalog_records_destinations_per_trip_type() -> None:
    page = _StubQuotePage({"Viajes Por Día": {"7", "5", "9"}, "Viajes Anuales": {"9"}})

    catalog = await build_catalog(page, _site())

    assert [option.value for option in catalog.trip_types] == ["Viajes Por Día", "Viajes Anuales"]
    assert [option.text for option in catalog.origins] == ["Argentina", "Venezuela"]
    assert [option.value for option in catalog.destinations_for("Viajes Por Día")] == ["7", "5", "9"]
    assert [option.text for option in catalog.destinations_for("Viajes Anuales")] == ["Mundial"]
    assert [option.value for option in catalog.agents] == ["2851"]
    assert page.selections == ["Viajes Por Día", "Viajes Anuales"]
    assert page.waits == [50, 50]


@pytest.mark.anyio
async def test_failing_trip_type_yields_no_destinations() -> None:
    page = _StubQuotePage(
        {"Viajes Por Día": {"7"}, "Viajes Anuales": {"9"}},
        broken_trip_types={"Viajes Anuales"},
    )

    catalog = await build_catalog(page, _site())

    assert catalog.destinations_for("Viajes Anuales") == []
    assert [option.text for option in catalog.destinations_for("Viajes Por Día")] == ["Europe"]


@pytest.mark.anyio
async def test_missing_trip_types_is_a_remote_error() -> None:
    page = _StubQuotePage({})

    with pytest.raises(RemoteInteractionError):
        await build_catalog(page, _site())
