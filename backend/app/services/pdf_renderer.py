"""
HTML-to-PDF rendering with headless Chromium (Playwright).

Lifecycle of one render:

  launch engine -> open page (1920x1080 @2x) -> load wrapped HTML
  (load + networkidle, bounded) -> export A4 PDF (bounded) -> close engine

The engine belongs to exactly one render call and is closed exactly once on
every path out of it: success, launch failure, load timeout, export timeout
or a bad PDF. ``acquire_engine`` is the only place that closes it.

Two ways to get a browser, chosen once from configuration:
  - local       Playwright's Chromium (or CHROMIUM_EXECUTABLE_PATH)
  - serverless  a Chromium archive downloaded from CHROMIUM_PACK_URL into
                CHROMIUM_INSTALL_DIR on first use, launched sandbox-free

Public API:
  PdfRenderer(provider, ...).render(html_fragment) -> bytes
  build_render_provider(settings) -> RenderEngineProvider
  build_attachment(subject, pdf_bytes) -> RenderedAttachment
  wrap_document(fragment) -> str
  attachment_filename(subject) -> str
  verify_pdf(data) -> None
"""

import asyncio
import base64
import logging
import os
import re
import stat
import tarfile
import tempfile
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Optional

import httpx
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from app.config import Settings
from app.errors import RenderError
from app.models.notification import RenderedAttachment

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PDF_MAGIC = b"%PDF"

VIEWPORT = {"width": 1920, "height": 1080}
DEVICE_SCALE_FACTOR = 2

PDF_OPTIONS: dict[str, Any] = {
    "format": "A4",
    "margin": {"top": "20mm", "right": "15mm", "bottom": "20mm", "left": "15mm"},
    "print_background": True,
    "display_header_footer": False,
}

_MAX_FILENAME_LENGTH = 50
_DEFAULT_FILENAME = "document"

LOCAL_CHROME_ARGS = [
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--font-render-hinting=none",
]

# Lambda-style sandboxes: no user namespaces, tiny /dev/shm, single process.
SERVERLESS_CHROME_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--no-zygote",
    "--single-process",
    "--disable-extensions",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--font-render-hinting=none",
]

DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<style>
  *, *::before, *::after {{ box-sizing: border-box; margin: 0; padding: 0; }}
  body {{
    font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto,
                 "Helvetica Neue", Arial, sans-serif;
    font-size: 14px;
    line-height: 1.6;
    color: #1f2937;
    background: #ffffff;
  }}
  h1, h2, h3, h4, h5, h6 {{
    margin: 1.2em 0 0.6em;
    line-height: 1.25;
    page-break-after: avoid;
  }}
  h1 {{ font-size: 24px; }}
  h2 {{ font-size: 20px; }}
  h3 {{ font-size: 17px; }}
  p, ul, ol {{ margin: 0 0 0.8em; }}
  ul, ol {{ padding-left: 1.5em; }}
  table {{
    width: 100%;
    border-collapse: collapse;
    margin: 1em 0;
    page-break-inside: auto;
  }}
  tr {{ page-break-inside: avoid; }}
  th, td {{
    border: 1px solid #d1d5db;
    padding: 6px 10px;
    text-align: left;
    vertical-align: top;
  }}
  th {{ background: #f3f4f6; font-weight: 600; }}
  img {{ max-width: 100%; }}
</style>
</head>
<body>
{content}
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Plain helpers
# ---------------------------------------------------------------------------

def wrap_document(fragment: str) -> str:
    """Embed a caller's HTML fragment in the fixed print template."""
    return DOCUMENT_TEMPLATE.format(content=fragment)


def attachment_filename(subject: str) -> str:
    """
    Derive "<name>.pdf" from an email subject.

    Keeps [A-Za-z0-9 -] (tabs and newlines are dropped), turns each run of
    spaces into one underscore, truncates to 50 characters and falls back
    to "document".
    """
    cleaned = re.sub(r"[^A-Za-z0-9 -]", "", subject or "")
    cleaned = re.sub(r" +", "_", cleaned)
    cleaned = cleaned[:_MAX_FILENAME_LENGTH]
    return f"{cleaned or _DEFAULT_FILENAME}.pdf"


def verify_pdf(data: Optional[bytes]) -> None:
    """Raise RenderError unless data is non-empty and starts with %PDF."""
    if not data:
        raise RenderError("empty output")
    if data[:4] != PDF_MAGIC:
        raise RenderError("invalid output")


def build_attachment(subject: str, pdf_bytes: bytes) -> RenderedAttachment:
    """Wrap verified PDF bytes as a base64 provider attachment."""
    verify_pdf(pdf_bytes)
    return RenderedAttachment(
        filename=attachment_filename(subject),
        content=base64.b64encode(pdf_bytes).decode("ascii"),
    )


# ---------------------------------------------------------------------------
# Engines and providers
# ---------------------------------------------------------------------------

class RenderEngine(ABC):
    """A launched browser owned by a single render call."""

    @abstractmethod
    async def new_page(self, **options: Any) -> Any:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class PlaywrightEngine(RenderEngine):
    """Chromium browser plus the Playwright driver process that launched it."""

    def __init__(self, playwright, browser):
        self._playwright = playwright
        self._browser = browser

    async def new_page(self, **options: Any):
        return await self._browser.new_page(**options)

    async def close(self) -> None:
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()


class RenderEngineProvider(ABC):
    """Strategy for obtaining a fresh RenderEngine."""

    name: str = "abstract"

    @abstractmethod
    async def launch(self) -> RenderEngine:
        ...


class LocalChromiumProvider(RenderEngineProvider):
    """Launch a locally installed Chromium through Playwright."""

    name = "local"
    chrome_args = LOCAL_CHROME_ARGS

    def __init__(self, executable_path: Optional[str] = None, launch_timeout_ms: int = 30000):
        self.executable_path = executable_path
        self.launch_timeout_ms = launch_timeout_ms

    async def _resolve_executable(self) -> Optional[str]:
        return self.executable_path

    async def launch(self) -> RenderEngine:
        executable = await self._resolve_executable()
        playwright = await async_playwright().start()
        try:
            start = time.time()
            browser = await playwright.chromium.launch(
                headless=True,
                executable_path=executable,
                args=self.chrome_args,
                timeout=self.launch_timeout_ms,
                chromium_sandbox=False,
            )
        except BaseException:
            await playwright.stop()
            raise
        logger.info(f"Browser launched ({self.name}) in {time.time() - start:.2f}s")
        return PlaywrightEngine(playwright, browser)


class ServerlessChromiumProvider(LocalChromiumProvider):
    """
    Launch a Chromium build fetched at runtime.

    Serverless bundles are too small to ship a browser, so the archive at
    pack_url is downloaded and unpacked into install_dir the first time it is
    needed and reused for the life of the process.
    """

    name = "serverless"
    chrome_args = SERVERLESS_CHROME_ARGS

    def __init__(
        self,
        pack_url: str,
        install_dir: str = "/tmp/chromium",
        executable_name: str = "chromium",
        launch_timeout_ms: int = 30000,
        download_timeout: float = 120.0,
    ):
        if not pack_url:
            raise ValueError("CHROMIUM_PACK_URL must be set when RENDER_ENGINE=serverless")
        super().__init__(executable_path=None, launch_timeout_ms=launch_timeout_ms)
        self.pack_url = pack_url
        self.install_dir = Path(install_dir)
        self.executable_name = executable_name
        self.download_timeout = download_timeout
        self._install_lock = asyncio.Lock()

    @property
    def binary_path(self) -> Path:
        return self.install_dir / self.executable_name

    async def _resolve_executable(self) -> Optional[str]:
        async with self._install_lock:
            if not self.binary_path.exists():
                await self._install()
        return str(self.binary_path)

    async def _install(self) -> None:
        logger.info(f"Downloading Chromium pack from {self.pack_url}")
        start = time.time()
        self.install_dir.mkdir(parents=True, exist_ok=True)

        fd, archive_path = tempfile.mkstemp(suffix=".tar", dir=self.install_dir)
        try:
            with os.fdopen(fd, "wb") as archive:
                async with httpx.AsyncClient(
                    timeout=self.download_timeout, follow_redirects=True
                ) as client:
                    async with client.stream("GET", self.pack_url) as response:
                        response.raise_for_status()
                        async for chunk in response.aiter_bytes():
                            archive.write(chunk)

            with tarfile.open(archive_path, "r:*") as tar:
                tar.extractall(self.install_dir, filter="data")
        finally:
            os.remove(archive_path)

        if not self.binary_path.exists():
            raise FileNotFoundError(
                f"Chromium pack did not contain {self.executable_name!r}"
            )
        mode = self.binary_path.stat().st_mode
        self.binary_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        logger.info(f"Chromium installed at {self.binary_path} in {time.time() - start:.2f}s")


_PROVIDERS = {
    "local": lambda s: LocalChromiumProvider(executable_path=s.chromium_executable_path),
    "serverless": lambda s: ServerlessChromiumProvider(
        pack_url=s.chromium_pack_url,
        install_dir=s.chromium_install_dir,
        executable_name=s.chromium_executable_name,
    ),
}


def build_render_provider(settings: Settings) -> RenderEngineProvider:
    """
    Pick the engine provider named by RENDER_ENGINE.

    Raises ValueError for unknown names (and for serverless without a pack URL).
    """
    name = settings.render_engine.lower().strip()
    factory = _PROVIDERS.get(name)
    if factory is None:
        raise ValueError(
            f"Unknown render engine {name!r}. Supported engines: {sorted(_PROVIDERS)}"
        )
    return factory(settings)


class DeferredRenderEngineProvider(RenderEngineProvider):
    """
    Builds the configured provider on first launch.

    A bad RENDER_ENGINE setting then only fails requests that actually render;
    the build error surfaces from launch() and becomes "browser launch failed".
    """

    name = "deferred"

    def __init__(self, factory: Callable[[], RenderEngineProvider]):
        self._factory = factory
        self._provider: Optional[RenderEngineProvider] = None

    def resolve(self) -> RenderEngineProvider:
        if self._provider is None:
            self._provider = self._factory()
            logger.info(f"Using {self._provider.name} render engine")
        return self._provider

    async def launch(self) -> RenderEngine:
        return await self.resolve().launch()


@asynccontextmanager
async def acquire_engine(provider: RenderEngineProvider) -> AsyncIterator[RenderEngine]:
    """
    Launch an engine and close it exactly once, whatever happens inside.

    A failure to close is logged rather than raised so it never hides the
    error that got us here.
    """
    try:
        engine = await provider.launch()
    except RenderError:
        raise
    except Exception as e:
        logger.error(f"Render engine launch failed: {e}")
        raise RenderError(f"browser launch failed: {e}")

    try:
        yield engine
    finally:
        try:
            await engine.close()
        except Exception as e:
            logger.warning(f"Failed to release render engine: {e}")


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------

class PdfRenderer:
    """Converts HTML fragments to PDF bytes, one fresh engine per call."""

    def __init__(
        self,
        provider: RenderEngineProvider,
        load_timeout: float = 30.0,
        export_timeout: float = 60.0,
    ):
        self.provider = provider
        self.load_timeout = load_timeout
        self.export_timeout = export_timeout

    async def render(self, html_fragment: str) -> bytes:
        """
        Render an HTML fragment to a PDF.

        Raises:
            RenderError: launch failure, "content load timeout", "export timeout",
                         "empty output", "invalid output" or "render failed: ..."
        """
        document = wrap_document(html_fragment)
        start = time.time()

        async with acquire_engine(self.provider) as engine:
            try:
                page = await engine.new_page(
                    viewport=VIEWPORT, device_scale_factor=DEVICE_SCALE_FACTOR
                )
                await self._load(page, document)
                pdf_bytes = await self._export(page)
                verify_pdf(pdf_bytes)
            except RenderError as e:
                logger.error(f"PDF render failed: {e.reason}")
                raise
            except Exception as e:
                logger.error(f"PDF render failed: {type(e).__name__}: {e}")
                raise RenderError(f"render failed: {e}")

        logger.info(f"PDF rendered ({len(pdf_bytes)} bytes) in {time.time() - start:.2f}s")
        return pdf_bytes

    async def _load(self, page, document: str) -> None:
        timeout_ms = self.load_timeout * 1000

        async def load() -> None:
            await page.set_content(document, wait_until="load", timeout=timeout_ms)
            await page.wait_for_load_state("networkidle", timeout=timeout_ms)

        try:
            await asyncio.wait_for(load(), timeout=self.load_timeout)
        except (asyncio.TimeoutError, PlaywrightTimeoutError):
            raise RenderError("content load timeout")

    async def _export(self, page) -> bytes:
        try:
            return await asyncio.wait_for(page.pdf(**PDF_OPTIONS), timeout=self.export_timeout)
        except (asyncio.TimeoutError, PlaywrightTimeoutError):
            raise RenderError("export timeout")
