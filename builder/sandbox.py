"""
Isolated rendering of preview documents.

SandboxHost owns exactly one execution context at a time. Every mount tears
the previous context down and creates a new one, so nothing from an earlier
generation survives into the next. Whatever happens inside the context is
reported as a state (`rendered` or `crashed`), never raised to the caller.

The browser-backed context loads the document into an
`<iframe sandbox="allow-scripts">`: scripts run, but the frame gets an opaque
origin (no cookies or storage) and cannot navigate the top page.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from html import escape as html_escape
from typing import Awaitable, Callable, Mapping, Optional

from playwright.async_api import Browser, Route, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from builder.assemble import assemble
from builder.files import has_entry
from builder.runtime import CRASH_ATTRIBUTE, ERROR_MESSAGE_ID, ERROR_PANEL_ID, ROOT_ID

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_TIMEOUT = 8.0


class PreviewState(str, Enum):
    EMPTY = "empty"
    RENDERING = "rendering"
    RENDERED = "rendered"
    CRASHED = "crashed"


@dataclass
class ContextReport:
    """What an execution context observed after loading a document."""
    crashed: bool
    error: Optional[str] = None
    text: str = ""


@dataclass
class RenderOutcome:
    state: PreviewState
    error: Optional[str] = None
    text: str = ""


class SandboxUnavailable(RuntimeError):
    """No execution context could be created (e.g. browser not installed)."""


class ExecutionContext:
    """A disposable place to run one preview document."""

    async def load(self, document: str) -> None:
        raise NotImplementedError

    async def settle(self, timeout: float) -> ContextReport:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


ContextFactory = Callable[[], Awaitable[ExecutionContext]]


class SandboxHost:
    """Renders a file table's preview and tracks the observable state."""

    def __init__(self, context_factory: ContextFactory, settle_timeout: float = DEFAULT_SETTLE_TIMEOUT):
        self._factory = context_factory
        self._settle_timeout = settle_timeout
        self._context: Optional[ExecutionContext] = None
        self.state = PreviewState.EMPTY
        self.error: Optional[str] = None
        self.document: Optional[str] = None
        self.mounts = 0

    async def mount(self, files: Mapping[str, str]) -> RenderOutcome:
        """Tear down the current context and render `files` in a fresh one."""
        await self._teardown()

        if not has_entry(files):
            self.state = PreviewState.EMPTY
            self.error = None
            self.document = None
            return RenderOutcome(PreviewState.EMPTY)

        document = assemble(files)
        try:
            context = await self._factory()
        except Exception as e:
            self.state = PreviewState.EMPTY
            raise SandboxUnavailable(f"Could not create preview context: {e}") from e

        self._context = context
        self.document = document
        self.mounts += 1
        self.state = PreviewState.RENDERING
        self.error = None

        try:
            await context.load(document)
            report = await context.settle(self._settle_timeout)
        except Exception as e:
            logger.warning("Preview context failed during render: %s", e)
            report = ContextReport(crashed=True, error=str(e) or e.__class__.__name__)

        if report.crashed:
            self.state = PreviewState.CRASHED
            self.error = report.error or "Unknown error"
        else:
            self.state = PreviewState.RENDERED
        return RenderOutcome(self.state, self.error, report.text)

    async def close(self) -> None:
        await self._teardown()
        self.state = PreviewState.EMPTY
        self.document = None

    async def _teardown(self) -> None:
        context, self._context = self._context, None
        if context is None:
            return
        try:
            await context.close()
        except Exception:
            logger.warning("Failed to close preview context", exc_info=True)


# --- Browser-backed context ---

_HOST_PAGE = (
    '<!DOCTYPE html><html><body style="margin:0">'
    '<iframe id="preview" sandbox="allow-scripts" '
    'style="border:0;width:100%%;height:100vh" srcdoc="%s"></iframe>'
    "</body></html>"
)

_SIGNAL_IDS = {
    "root": ROOT_ID,
    "panel": ERROR_PANEL_ID,
    "message": ERROR_MESSAGE_ID,
    "attr": CRASH_ATTRIBUTE,
}

_SETTLED_JS = """(ids) => {
  const panel = document.getElementById(ids.panel);
  if (panel && panel.style.display === 'block') return true;
  if (document.querySelector('[' + ids.attr + ']')) return true;
  const root = document.getElementById(ids.root);
  return !!(root && root.childElementCount > 0);
}"""

_REPORT_JS = """(ids) => {
  const panel = document.getElementById(ids.panel);
  const panelShown = !!(panel && panel.style.display === 'block');
  const crashNode = document.querySelector('[' + ids.attr + ']');
  let error = null;
  if (panelShown) {
    const message = document.getElementById(ids.message);
    error = message ? message.textContent : 'Unknown error';
  } else if (crashNode) {
    error = crashNode.textContent;
  }
  const root = document.getElementById(ids.root);
  return { crashed: panelShown || !!crashNode, error: error, text: root ? root.innerText : '' };
}"""


class BrowserExecutionContext(ExecutionContext):
    """A fresh Chromium browser context holding one sandboxed iframe."""

    def __init__(self, browser: Browser):
        self._browser = browser
        self._context = None
        self._page = None

    async def load(self, document: str) -> None:
        self._context = await self._browser.new_context(service_workers="block")
        self._page = await self._context.new_page()
        self._page.on("pageerror", lambda exc: logger.debug("Host page error: %s", exc))
        await self._page.route("**/*", self._guard_navigation)
        await self._page.set_content(_HOST_PAGE % html_escape(document, quote=True), wait_until="load")

    async def _guard_navigation(self, route: Route) -> None:
        # Subresources (runtime scripts) load; any attempt to navigate is refused.
        if route.request.is_navigation_request():
            await route.abort()
        else:
            await route.continue_()

    async def settle(self, timeout: float) -> ContextReport:
        element = await self._page.query_selector("#preview")
        frame = await element.content_frame()
        try:
            await frame.wait_for_function(_SETTLED_JS, arg=_SIGNAL_IDS, timeout=timeout * 1000)
        except PlaywrightTimeoutError:
            logger.debug("Preview did not settle within %.1fs", timeout)
        result = await frame.evaluate(_REPORT_JS, _SIGNAL_IDS)
        return ContextReport(crashed=bool(result["crashed"]), error=result["error"], text=result["text"] or "")

    async def close(self) -> None:
        if self._context is not None:
            await self._context.close()
        self._context = None
        self._page = None


class PreviewBrowser:
    """Launches Chromium on first use and hands out fresh execution contexts."""

    def __init__(self, headless: bool = True):
        self._headless = headless
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is None:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(headless=self._headless)
                logger.info("Preview browser launched")
        return self._browser

    async def new_context(self) -> ExecutionContext:
        return BrowserExecutionContext(await self._ensure_browser())

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
