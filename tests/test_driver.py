"""Tests for the render driver, using mocked Playwright objects."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from outage_snapshots.errors import MeasurementError, RenderTimeoutError, TemplateNotFoundError
from outage_snapshots.render.driver import (
    RenderDriver,
    RenderOptions,
    RenderSession,
    RenderState,
    SharedBrowser,
    init_script,
)
from outage_snapshots.render.models import RenderTask
from outage_snapshots.render.templates import READY_ATTRIBUTE, TemplateKind
from outage_snapshots.store.record_store import build_success, persist


def make_page(declares_signal=True, state="ready", present=(), bbox=None):
    page = MagicMock()
    page.add_init_script = AsyncMock()
    page.goto = AsyncMock()
    page.evaluate = AsyncMock(return_value=declares_signal)
    page.wait_for_selector = AsyncMock()
    page.get_attribute = AsyncMock(side_effect=lambda selector, name: state if name == READY_ATTRIBUTE else "boom")
    page.query_selector = AsyncMock(side_effect=lambda selector: object() if selector in present else None)
    container = MagicMock()
    container.bounding_box = AsyncMock(
        return_value=bbox if bbox is not None else {"x": 0, "y": 0, "width": 800.4, "height": 600.6}
    )
    container.screenshot = AsyncMock()
    page.locator.return_value.first = container
    return page


def make_driver(page, options=None):
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    server = MagicMock()
    server.url_for.return_value = "http://127.0.0.1:1/full-template.html?theme=light"
    driver = RenderDriver(browser, server, options or RenderOptions(timeout_ms=2000, navigation_timeout_ms=10000))
    return driver, browser, context


@pytest.fixture
def task(tmp_path):
    record_path = tmp_path / "kyiv.json"
    persist(build_success("kyiv", {"a": 1}, {"data": {"GPV1.1": {}}}, 0, "{}"), record_path)
    return RenderTask(
        template=TemplateKind.FULL,
        region="kyiv",
        record_path=record_path,
        output_path=tmp_path / "images" / "kyiv" / "gpv-1-1.png",
        outage_group="GPV1.1",
    )


@pytest.mark.asyncio
async def test_render_with_ready_signal(task):
    """Test the full lifecycle of a successful render."""
    page = make_page()
    driver, browser, context = make_driver(page)
    session = RenderSession(task)

    result = await driver.render(task, session)

    assert (result.width, result.height) == (800, 601)
    assert result.output_path == task.output_path
    assert task.output_path.parent.is_dir()
    page.locator.return_value.first.screenshot.assert_awaited_once_with(path=str(task.output_path), type="png")
    page.wait_for_selector.assert_awaited_once_with(
        'body[data-render-state="ready"], body[data-render-state="failed"]', timeout=2000
    )
    _, kwargs = page.goto.call_args
    assert kwargs == {"wait_until": "networkidle", "timeout": 10000}
    script = page.add_init_script.call_args.kwargs["script"]
    assert "window.__SCHEDULE__" in script and '"GPV1.1"' in script
    ctx_kwargs = browser.new_context.call_args.kwargs
    assert ctx_kwargs["locale"] == "uk-UA"
    assert ctx_kwargs["timezone_id"] == "Europe/Kyiv"
    context.close.assert_awaited_once()
    assert session.history == [
        RenderState.CREATED,
        RenderState.CONTEXT_OPENED,
        RenderState.NAVIGATED,
        RenderState.AWAITING_READY,
        RenderState.CAPTURED,
        RenderState.CLOSED,
    ]


@pytest.mark.asyncio
async def test_template_reported_failure(task):
    """Test that a failed ready signal fails the task without a screenshot."""
    page = make_page(state="failed")
    driver, _, context = make_driver(page)
    session = RenderSession(task)

    with pytest.raises(RenderTimeoutError, match="boom"):
        await driver.render(task, session)

    page.locator.return_value.first.screenshot.assert_not_awaited()
    context.close.assert_awaited_once()
    assert session.state is RenderState.FAILED


@pytest.mark.asyncio
async def test_marker_fallback(task):
    """Test structural markers for templates without a ready signal."""
    page = make_page(declares_signal=False, present=("#matrix", "#today"))
    driver, _, _ = make_driver(page)

    await driver.render(task)

    waited = [call.args[0] for call in page.wait_for_selector.await_args_list]
    assert waited == ["#matrix tbody tr:last-child td:last-child", "#today tbody tr td:last-child"]


@pytest.mark.asyncio
async def test_summary_marker_race(task):
    """Test that either summary marker satisfies the wait."""
    page = make_page(declares_signal=False, present=(".summary-card",))
    driver, _, _ = make_driver(page)

    await driver.render(task)

    page.wait_for_selector.assert_awaited_once_with(
        ".summary-intervals > div, .status-badge.badge-on", timeout=2000
    )


@pytest.mark.asyncio
async def test_no_markers_fails_without_screenshot(task):
    """Test a page that renders none of the known structures."""
    page = make_page(declares_signal=False)
    driver, _, context = make_driver(page)

    with pytest.raises(RenderTimeoutError):
        await driver.render(task)

    page.locator.return_value.first.screenshot.assert_not_awaited()
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_marker_timeout(task):
    """Test that a Playwright timeout becomes a RenderTimeoutError."""
    page = make_page(declares_signal=False, present=("#matrix",))
    page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout 2000ms exceeded")
    driver, _, _ = make_driver(page)

    with pytest.raises(RenderTimeoutError):
        await driver.render(task)
    page.locator.return_value.first.screenshot.assert_not_awaited()


@pytest.mark.asyncio
async def test_unmeasurable_container(task):
    """Test a zero-size container."""
    page = make_page(bbox={"x": 0, "y": 0, "width": 0, "height": 10})
    driver, _, context = make_driver(page)
    session = RenderSession(task)

    with pytest.raises(MeasurementError):
        await driver.render(task, session)
    assert session.state is RenderState.FAILED
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_missing_template(task, tmp_path):
    """Test that a missing template fails before opening a context."""
    page = make_page()
    driver, browser, _ = make_driver(page, RenderOptions(templates_dir=tmp_path / "none"))
    session = RenderSession(task)

    with pytest.raises(TemplateNotFoundError):
        await driver.render(task, session)
    browser.new_context.assert_not_awaited()
    assert session.history == [RenderState.CREATED, RenderState.FAILED]


def test_session_terminal_states(task):
    """Test that terminal sessions cannot move on."""
    session = RenderSession(task)
    session.advance(RenderState.FAILED)
    with pytest.raises(RuntimeError):
        session.advance(RenderState.CONTEXT_OPENED)


def test_init_script():
    """Test page globals."""
    script = init_script({"a": "й"}, "GPV2.1", "tomorrow")
    assert 'window.__SCHEDULE__ = {"a":"й"};' in script
    assert 'window.__GPV_KEY__ = "GPV2.1";' in script
    assert 'window.__RENDER_DAY__ = "tomorrow";' in script
    assert "__GPV_KEY__" not in init_script({})


def test_options_from_config():
    """Test scale clamping and theme fallback."""
    options = RenderOptions.from_config(theme="neon", scale=10)
    assert options.theme == "light"
    assert options.device_scale_factor == 4
    assert RenderOptions.from_config(theme="dark", scale=2).device_scale_factor == 2


@pytest.mark.asyncio
async def test_shared_browser_refcount():
    """Test that one browser serves all holders and closes with the last one."""
    browser = MagicMock()
    browser.close = AsyncMock()
    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()
    factory = MagicMock()
    factory.return_value.start = AsyncMock(return_value=playwright)

    with patch("outage_snapshots.render.driver.async_playwright", factory):
        shared = SharedBrowser()
        async with shared as first:
            second = await shared.acquire()
            assert first is second is browser
            assert shared.refs == 2
            await shared.release()
            browser.close.assert_not_awaited()

    assert shared.refs == 0
    playwright.chromium.launch.assert_awaited_once_with(headless=True)
    browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()
    with pytest.raises(RuntimeError):
        await shared.release()
