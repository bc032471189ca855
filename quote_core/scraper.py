"""Browser session lifecycle and execution of Playwright stages."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Route, async_playwright

from .config import Settings
from .errors import RemoteInteractionError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
Stage = Callable[..., Awaitable[T]]

CHROMIUM_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-gpu",
    "--disable-setuid-sandbox",
    "--no-sandbox",
]
BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media"})
VIEWPORT = {"width": 1280, "height": 720}
LOCALE = "es-VE"


async def _block_heavy_resources(route: Route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


@asynccontextmanager
async def browser_session(settings: Settings) -> AsyncIterator[Page]:
    """Yield a fresh page; the browser is closed on every exit path."""

    async with async_playwright() as p:
        browser_type = getattr(p, settings.browser, None)
        if browser_type is None:
            raise RemoteInteractionError(f"Unknown browser {settings.browser!r}")
        launch_args = CHROMIUM_ARGS if settings.browser == "chromium" else []
        try:
            browser = await browser_type.launch(headless=settings.headless, args=launch_args)
        except PlaywrightError as exc:
            raise RemoteInteractionError(f"Could not launch {settings.browser}: {exc}") from exc
        try:
            context = await browser.new_context(locale=LOCALE, viewport=VIEWPORT)
            page = await context.new_page()
            await page.route("**/*", _block_heavy_resources)
            LOGGER.info("Browser session started (%s, headless=%s)", settings.browser, settings.headless)
            yield page
        finally:
            await browser.close()
            LOGGER.info("Browser session closed")


async def capture_screenshot(page: Page, directory: Path, prefix: str) -> Optional[str]:
    """Write a full page screenshot; ``None`` when the page cannot be captured."""

    path = Path(directory) / f"{prefix}-{datetime.now():%Y%m%d-%H%M%S-%f}.png"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        await page.screenshot(path=str(path), full_page=True)
    except (PlaywrightError, OSError) as exc:
        LOGGER.warning("Could not capture screenshot %s: %s", path, exc)
        return None
    LOGGER.info("Screenshot saved to %s", path)
    return str(path)


async def run_stage(page: Page, settings: Settings, stage: Stage, *args: Any) -> T:
    """Run ``stage(page, *args)``, converting driver failures to :class:`RemoteInteractionError`."""

    prefix = getattr(stage, "__name__", "stage").strip("_").replace("_", "-")
    try:
        return await stage(page, *args)
    except RemoteInteractionError as exc:
        if exc.screenshot_path is None:
            exc.screenshot_path = await capture_screenshot(page, settings.screenshot_dir, f"error-{prefix}")
        raise
    except PlaywrightError as exc:
        screenshot = await capture_screenshot(page, settings.screenshot_dir, f"error-{prefix}")
        raise RemoteInteractionError(f"{prefix} failed: {exc}", screenshot_path=screenshot) from exc


def run_sync(factory: Callable[[], Awaitable[T]]) -> T:
    """Run a coroutine from synchronous code, even inside a running loop's thread."""

    try:
        return asyncio.run(factory())
    except RuntimeError as exc:
        if "asyncio.run() cannot be called" not in str(exc):
            raise
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            return loop.run_until_complete(factory())
        finally:
            asyncio.set_event_loop(None)
            loop.close()


class BrowserRunner:
    """Runs one stage per fresh browser session."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def run_async(self, stage: Stage, *args: Any) -> T:
        async with browser_session(self.settings) as page:
            return await run_stage(page, self.settings, stage, *args)

    def run(self, stage: Stage, *args: Any) -> T:
        return run_sync(lambda: self.run_async(stage, *args))
