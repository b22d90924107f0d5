"""Headless-browser render driver: one isolated context per task, shared browser."""
import asyncio
import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import orjson
from playwright.async_api import Browser, Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from outage_snapshots.config import TEMPLATES_DIR, config
from outage_snapshots.errors import MeasurementError, RenderTimeoutError, TemplateNotFoundError
from outage_snapshots.render.models import RenderResult, RenderTask
from outage_snapshots.render.server import StaticServer
from outage_snapshots.render.templates import (
    CONTAINER_SELECTOR,
    DEFAULT_MARKERS,
    READY_ATTRIBUTE,
    CompletionMarkers,
    template_path,
)
from outage_snapshots.store.record_store import read_record

logger = logging.getLogger(__name__)

MEASURE_TIMEOUT_MS = 5000


class RenderState(str, enum.Enum):
    CREATED = "created"
    CONTEXT_OPENED = "context_opened"
    NAVIGATED = "navigated"
    AWAITING_READY = "awaiting_ready"
    CAPTURED = "captured"
    CLOSED = "closed"
    FAILED = "failed"


TERMINAL_STATES = (RenderState.CLOSED, RenderState.FAILED)


class RenderSession:
    """Lifecycle of a single task: created -> ... -> closed, or failed from anywhere."""

    def __init__(self, task: RenderTask):
        self.task = task
        self.state = RenderState.CREATED
        self.history = [RenderState.CREATED]

    def advance(self, state: RenderState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"{self.task.name}: cannot move from {self.state.value} to {state.value}")
        self.state = state
        self.history.append(state)
        logger.debug(f"{self.task.name}: {state.value}")


@dataclass
class RenderOptions:
    theme: str = "light"
    device_scale_factor: float = 4
    timeout_ms: int = 30000
    navigation_timeout_ms: int = 10000
    locale: str = "uk-UA"
    timezone_id: str = "Europe/Kyiv"
    templates_dir: Path = TEMPLATES_DIR

    @classmethod
    def from_config(
        cls,
        theme: str | None = None,
        scale: float | None = None,
        timeout_ms: int | None = None,
    ) -> "RenderOptions":
        return cls(
            theme="dark" if (theme or config.THEME) == "dark" else "light",
            device_scale_factor=config.clamp_scale(scale),
            timeout_ms=timeout_ms or config.RENDER_TIMEOUT_MS,
            navigation_timeout_ms=config.NAVIGATION_TIMEOUT_MS,
            locale=config.LOCALE,
            timezone_id=config.TIMEZONE,
        )


class SharedBrowser:
    """
    Reference-counted handle to one Chromium process.

    The first ``acquire`` launches the browser, the matching last ``release``
    closes it. Used as ``async with SharedBrowser() as browser``.
    """

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._refs = 0
        self._lock = asyncio.Lock()

    @property
    def refs(self) -> int:
        return self._refs

    async def acquire(self) -> Browser:
        async with self._lock:
            if self._browser is None:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(headless=self.headless)
                logger.info("Browser launched")
            self._refs += 1
            return self._browser

    async def release(self) -> None:
        async with self._lock:
            if self._refs == 0:
                raise RuntimeError("release() without matching acquire()")
            self._refs -= 1
            if self._refs == 0:
                try:
                    await self._browser.close()
                finally:
                    await self._playwright.stop()
                    self._browser = None
                    self._playwright = None
                    logger.info("Browser closed")

    async def __aenter__(self) -> Browser:
        return await self.acquire()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.release()


def init_script(payload: Any, gpv_key: str | None = None, day: str | None = None) -> str:
    """Page-global state installed before any template script runs."""
    lines = [f"window.__SCHEDULE__ = {orjson.dumps(payload).decode()};"]
    if gpv_key:
        lines.append(f"window.__GPV_KEY__ = {orjson.dumps(gpv_key).decode()};")
    if day:
        lines.append(f"window.__RENDER_DAY__ = {orjson.dumps(day).decode()};")
    return "\n".join(lines)


class RenderDriver:
    """Renders tasks through ``browser`` against templates served by ``server``."""

    def __init__(
        self,
        browser: Browser,
        server: StaticServer,
        options: RenderOptions | None = None,
        markers: CompletionMarkers = DEFAULT_MARKERS,
    ):
        self.browser = browser
        self.server = server
        self.options = options or RenderOptions.from_config()
        self.markers = markers

    async def render(self, task: RenderTask, session: RenderSession | None = None) -> RenderResult:
        session = session or RenderSession(task)
        html_path = template_path(task.template, self.options.templates_dir)
        try:
            if not html_path.is_file():
                raise TemplateNotFoundError(f"HTML template not found: {html_path}")
            record = await read_record(task.record_path)
            context = await self.browser.new_context(
                device_scale_factor=self.options.device_scale_factor,
                locale=self.options.locale,
                timezone_id=self.options.timezone_id,
            )
        except BaseException:
            session.advance(RenderState.FAILED)
            raise

        session.advance(RenderState.CONTEXT_OPENED)
        try:
            page = await context.new_page()
            await page.add_init_script(script=init_script(record.to_json_dict(), task.outage_group, task.day))

            url = self.server.url_for(html_path, theme=self.options.theme, day=task.day)
            await page.goto(
                url,
                wait_until="networkidle",
                timeout=max(self.options.timeout_ms, self.options.navigation_timeout_ms),
            )
            session.advance(RenderState.NAVIGATED)

            session.advance(RenderState.AWAITING_READY)
            await self.await_ready(page)

            result = await self.capture(page, Path(task.output_path))
            session.advance(RenderState.CAPTURED)
            return result
        except BaseException:
            session.advance(RenderState.FAILED)
            raise
        finally:
            await context.close()
            if session.state is RenderState.CAPTURED:
                session.advance(RenderState.CLOSED)

    async def await_ready(self, page: Page) -> None:
        """Wait for the template's ready signal, or its structural markers if it has none."""
        timeout = self.options.timeout_ms
        declares_signal = await page.evaluate(
            "(attr) => !!document.body && document.body.hasAttribute(attr)", READY_ATTRIBUTE
        )
        if declares_signal:
            await self._wait_for(
                page, f'body[{READY_ATTRIBUTE}="ready"], body[{READY_ATTRIBUTE}="failed"]', timeout
            )
            if await page.get_attribute("body", READY_ATTRIBUTE) == "failed":
                reason = await page.get_attribute("body", "data-render-error")
                raise RenderTimeoutError(f"Template reported failure: {reason or 'no reason given'}")
            return

        found = False
        for probe, wait in self.markers.required:
            if await page.query_selector(probe):
                found = True
                await self._wait_for(page, wait, timeout)

        probe, waits = self.markers.any_of
        if await page.query_selector(probe):
            found = True
            await self._wait_for(page, ", ".join(waits), timeout)

        if not found:
            raise RenderTimeoutError("Template did not render #matrix nor #today nor summary-card")

    async def _wait_for(self, page: Page, selector: str, timeout: int) -> None:
        try:
            await page.wait_for_selector(selector, timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise RenderTimeoutError(f"Timed out after {timeout}ms waiting for {selector}") from e

    async def capture(self, page: Page, output_path: Path) -> RenderResult:
        """Screenshot the template container, cropped to its bounding box."""
        container = page.locator(CONTAINER_SELECTOR).first
        try:
            bbox = await container.bounding_box(timeout=MEASURE_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            bbox = None
        if not bbox or bbox["width"] <= 0 or bbox["height"] <= 0:
            raise MeasurementError(f"Failed to measure {CONTAINER_SELECTOR} bounding box")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        await container.screenshot(path=str(output_path), type="png")
        return RenderResult(
            output_path=output_path, width=round(bbox["width"]), height=round(bbox["height"])
        )
