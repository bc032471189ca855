"""Discovery of the trip type -> destination availability matrix."""
from __future__ import annotations

import logging
from typing import Dict, List

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .errors import RemoteInteractionError
from .models import Catalog, CatalogOption
from .sources.mercantil import SiteConfig, open_quote_form
from .sources.playwright_common import read_select_options, settle

LOGGER = logging.getLogger(__name__)


def _on_quote_page(page: Page, site: SiteConfig) -> bool:
    current = (page.url or "").rstrip("/").lower()
    return bool(current) and current.startswith(site.quote_url.rstrip("/").lower())


async def _destinations_for(page: Page, site: SiteConfig, trip_type: CatalogOption) -> List[CatalogOption]:
    await page.select_option(site.form.trip_type, trip_type.value)
    await settle(page, site.settle_ms)
    return await read_select_options(page, site.form.destination, skip_unavailable=True)


async def build_catalog(page: Page, site: SiteConfig) -> Catalog:
    """Walk every trip type and record which destinations it enables.

    The remote form is left with the last trip type selected.
    """

    if not _on_quote_page(page, site):
        await open_quote_form(page, site)

    try:
        trip_types = await read_select_options(page, site.form.trip_type)
    except PlaywrightError as exc:
        raise RemoteInteractionError(f"Trip type selector could not be read: {exc}") from exc
    if not trip_types:
        raise RemoteInteractionError(f"Trip type selector {site.form.trip_type} has no options")
    LOGGER.info("Found %d trip types", len(trip_types))

    origins = await read_select_options(page, site.form.origin)
    LOGGER.info("Found %d origins", len(origins))

    destinations: Dict[str, List[CatalogOption]] = {}
    for trip_type in trip_types:
        try:
            available = await _destinations_for(page, site, trip_type)
        except PlaywrightError as exc:
            LOGGER.warning("Could not read destinations for trip type %s: %s", trip_type.text, exc)
            available = []
        destinations[trip_type.value] = available
        LOGGER.info(
            "Trip type %s: %s",
            trip_type.text,
            ", ".join(option.text for option in available) or "no destinations",
        )

    agents = await read_select_options(page, site.form.agent)
    LOGGER.info("Found %d agents", len(agents))

    return Catalog(trip_types=trip_types, origins=origins, destinations=destinations, agents=agents)
