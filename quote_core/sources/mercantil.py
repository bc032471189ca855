"""Playwright stages for the Mercantil Seguros travel insurance site."""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from quote_core.config import Settings, format_human_date
from quote_core.errors import RemoteInteractionError
from quote_core.resolver import ResolvedQuote
from .playwright_common import press_keys, settle, wait_for_required, wait_optional

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteFormSelectors:
    """Selectors of the trip parameter form."""

    trip_type: str = "#websitebundle_quotation_search_product"
    origin: str = "#websitebundle_quotation_search_origin"
    destination: str = "#websitebundle_quotation_search_destination"
    agent: str = "#websitebundle_quotation_search_agent"
    date_range: str = "#sliderDateRange"
    passenger_count: str = "#selector-passenger-count"
    age_input_template: str = "#passengers-age\\[{index}\\]"
    submit_button_name: str = "COTIZAR SEGURO"

    def age_input(self, index: int) -> str:
        return self.age_input_template.format(index=index)


@dataclass(frozen=True)
class QuoteResultSelectors:
    """Selectors of the quote results and purchase pages."""

    loading: str = "#loading"
    plan_card: str = ".item-block"
    purchase_form: str = "form"


@dataclass(frozen=True)
class SiteConfig:
    """Complete configuration required to drive the insurer's site."""

    quote_url: str
    navigation_timeout_ms: int
    selector_timeout_ms: int
    results_timeout_ms: int
    settle_ms: int
    form: QuoteFormSelectors = field(default_factory=QuoteFormSelectors)
    results: QuoteResultSelectors = field(default_factory=QuoteResultSelectors)
    element_timeout_ms: int = 5000
    typing_delay_ms: int = 30

    @classmethod
    def from_settings(cls, settings: Settings) -> "SiteConfig":
        return cls(
            quote_url=settings.site_url,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            selector_timeout_ms=settings.selector_timeout_ms,
            results_timeout_ms=settings.results_timeout_ms,
            settle_ms=settings.settle_ms,
        )


async def open_quote_form(page: Page, site: SiteConfig) -> None:
    """Navigate to the quote page and wait for the trip type selector."""

    LOGGER.info("Navigating to %s", site.quote_url)
    try:
        await page.goto(site.quote_url, wait_until="load", timeout=site.navigation_timeout_ms)
    except PlaywrightError as exc:
        raise RemoteInteractionError(f"Could not load {site.quote_url}: {exc}") from exc
    await wait_for_required(page, site.form.trip_type, site.selector_timeout_ms, "Trip type selector")


async def _select(page: Page, selector: str, value: str, description: str) -> None:
    try:
        await page.select_option(selector, value)
    except PlaywrightError as exc:
        raise RemoteInteractionError(f"Could not select {description} {value!r}: {exc}") from exc


async def _fill_date_range(page: Page, site: SiteConfig, value: str) -> None:
    # The date picker parses keystrokes, so the value is typed rather than set.
    date_input = page.locator(site.form.date_range)
    await date_input.click()
    await page.wait_for_timeout(100)
    await date_input.click(click_count=3)
    await press_keys(page, "Backspace")
    await date_input.press_sequentially(value, delay=site.typing_delay_ms)
    await settle(page, 300)
    await press_keys(page, "Tab", "Escape")

    actual = await date_input.input_value()
    if actual != value:
        LOGGER.warning("Date range mismatch: expected %r but got %r", value, actual)


async def submit_quote(page: Page, resolved: ResolvedQuote, site: SiteConfig) -> Tuple[str, str]:
    """Fill and submit the quote form; return the results URL and HTML."""

    await open_quote_form(page, site)
    selectors = site.form

    await _select(page, selectors.trip_type, resolved.trip_type_value, "trip type")
    await settle(page, site.settle_ms)
    await _select(page, selectors.origin, resolved.origin_id, "origin")
    await settle(page, site.settle_ms)
    await _select(page, selectors.destination, resolved.destination_id, "destination")
    await settle(page, site.settle_ms)
    await _select(page, selectors.agent, resolved.agent_id, "agent")
    await settle(page, site.settle_ms)

    date_range = f"{format_human_date(resolved.departure_date)} - {format_human_date(resolved.return_date)}"
    await _fill_date_range(page, site, date_range)

    await _select(page, selectors.passenger_count, str(resolved.passenger_count), "passenger count")
    await settle(page, site.settle_ms)
    for index, age in enumerate(resolved.ages):
        age_input = page.locator(selectors.age_input(index))
        try:
            await age_input.wait_for(state="visible", timeout=site.element_timeout_ms)
        except PlaywrightError as exc:
            raise RemoteInteractionError(f"Age input for passenger {index + 1} not found: {exc}") from exc
        await age_input.fill(str(age))
        await page.wait_for_timeout(200)

    await press_keys(page, "Escape")
    submit_button = page.get_by_role("button", name=selectors.submit_button_name)
    try:
        await submit_button.scroll_into_view_if_needed()
        await submit_button.wait_for(state="visible", timeout=site.element_timeout_ms)
        await submit_button.click()
    except PlaywrightError as exc:
        raise RemoteInteractionError(f"Submit button {selectors.submit_button_name!r} not usable: {exc}") from exc

    LOGGER.info("Quote submitted, waiting for plans")
    await wait_optional(page, site.results.loading, "visible", 2000)
    if not await wait_optional(page, site.results.loading, "hidden", site.results_timeout_ms):
        LOGGER.warning("Loading indicator did not disappear, continuing")
    if not await wait_optional(page, site.results.plan_card, "visible", site.results_timeout_ms):
        LOGGER.warning("No plan cards appeared on %s", page.url)
    await settle(page, 1000)

    return page.url, await page.content()


async def open_purchase_page(page: Page, url: str, site: SiteConfig) -> Tuple[str, str]:
    """Load a purchase page directly and return its final URL and HTML."""

    LOGGER.info("Opening purchase page %s", url)
    try:
        await page.goto(url, wait_until="load", timeout=site.navigation_timeout_ms)
    except PlaywrightError as exc:
        raise RemoteInteractionError(f"Could not load purchase page {url}: {exc}") from exc
    try:
        await page.wait_for_selector(site.results.purchase_form, state="attached", timeout=site.selector_timeout_ms)
    except PlaywrightError as exc:
        raise RemoteInteractionError(f"No form found on purchase page {url}: {exc}") from exc
    await settle(page, site.settle_ms)
    return page.url, await page.content()
