"""Reusable Playwright helpers shared by the site stages."""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from quote_core.errors import RemoteInteractionError
from quote_core.models import CatalogOption
from quote_core.resolver import PLACEHOLDER_TEXTS, normalise_text

LOGGER = logging.getLogger(__name__)


def is_hidden_style(style: Optional[str]) -> bool:
    if not style:
        return False
    compact = style.replace(" ", "").lower()
    return "display:none" in compact or "visibility:hidden" in compact


async def _read_text(element: Any) -> str:
    try:
        text = await element.text_content()
    except PlaywrightError:
        text = None
    return (text or "").strip()


async def read_select_options(
    page: Page, selector: str, skip_unavailable: bool = False
) -> List[CatalogOption]:
    """Return the non-placeholder options of a ``<select>``.

    With ``skip_unavailable`` disabled options and options styled hidden are
    left out, which is how the site marks destinations that do not apply to
    the selected trip type.
    """

    options: List[CatalogOption] = []
    for element in await page.query_selector_all(f"{selector} option"):
        value = (await element.get_attribute("value") or "").strip()
        text = await _read_text(element)
        if not value or not text or normalise_text(text) in PLACEHOLDER_TEXTS:
            continue
        disabled = await element.get_attribute("disabled") is not None
        if skip_unavailable and (disabled or is_hidden_style(await element.get_attribute("style"))):
            continue
        options.append(
            CatalogOption(
                value=value,
                text=text,
                disabled=disabled,
                data_filter=await element.get_attribute("data-filter") or None,
            )
        )
    return options


async def settle(page: Page, milliseconds: int) -> None:
    """Give the page's own scripts time to react to a programmatic change."""

    if milliseconds > 0:
        await page.wait_for_timeout(milliseconds)


async def wait_for_required(page: Page, selector: str, timeout: int, description: str) -> None:
    """Wait for an element the flow cannot continue without."""

    try:
        await page.wait_for_selector(selector, state="visible", timeout=timeout)
    except PlaywrightError as exc:
        raise RemoteInteractionError(f"{description} not found ({selector}): {exc}") from exc


async def wait_optional(page: Page, selector: str, state: str, timeout: int) -> bool:
    """Wait for a state change that may legitimately never happen."""

    try:
        await page.wait_for_selector(selector, state=state, timeout=timeout)
    except PlaywrightError:
        LOGGER.debug("Optional wait for %s (%s) timed out", selector, state)
        return False
    return True


async def press_keys(page: Page, *keys: str, pause_ms: int = 100) -> None:
    for key in keys:
        await page.keyboard.press(key)
        if pause_ms:
            await page.wait_for_timeout(pause_ms)
