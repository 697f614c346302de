"""
FastAPI dependency providers.

Collaborators are built here and injected into routes so that tests can
replace any of them through ``app.dependency_overrides``:

  get_settings         cached Settings from the environment
  get_email_client     a ResendClient per request, closed after the response
  get_render_provider  RenderEngineProvider chosen from RENDER_ENGINE on first render
  get_pdf_renderer     PdfRenderer bound to that provider and the timeouts
  get_dispatcher       NotificationDispatcher wiring the above together
"""

from functools import lru_cache, partial
from typing import AsyncIterator, Optional

from fastapi import Depends

from app.config import Settings, get_settings
from app.services.email_client import ResendClient
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.pdf_renderer import (
    DeferredRenderEngineProvider,
    PdfRenderer,
    RenderEngineProvider,
    build_render_provider,
)


async def get_email_client(
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[ResendClient]:
    async with ResendClient(
        api_key=settings.resend_api_key,
        base_url=settings.resend_api_url,
        timeout=settings.email_timeout_seconds,
    ) as client:
        yield client


@lru_cache()
def _render_provider_for(engine: str, executable_path: Optional[str], pack_url: str,
                         install_dir: str, executable_name: str) -> DeferredRenderEngineProvider:
    settings = Settings(
        render_engine=engine,
        chromium_executable_path=executable_path,
        chromium_pack_url=pack_url,
        chromium_install_dir=install_dir,
        chromium_executable_name=executable_name,
    )
    # Built on first launch; requests that never render don't depend on it.
    return DeferredRenderEngineProvider(partial(build_render_provider, settings))


def get_render_provider(settings: Settings = Depends(get_settings)) -> RenderEngineProvider:
    # Cached on the render settings so the serverless binary is installed once per process.
    return _render_provider_for(
        settings.render_engine,
        settings.chromium_executable_path,
        settings.chromium_pack_url,
        settings.chromium_install_dir,
        settings.chromium_executable_name,
    )


def get_pdf_renderer(
    settings: Settings = Depends(get_settings),
    provider: RenderEngineProvider = Depends(get_render_provider),
) -> PdfRenderer:
    return PdfRenderer(
        provider,
        load_timeout=settings.render_load_timeout_seconds,
        export_timeout=settings.render_export_timeout_seconds,
    )


def get_dispatcher(
    settings: Settings = Depends(get_settings),
    email_client: ResendClient = Depends(get_email_client),
    renderer: PdfRenderer = Depends(get_pdf_renderer),
) -> NotificationDispatcher:
    return NotificationDispatcher(
        email_client=email_client,
        sender=settings.email_from,
        renderer=renderer,
        admin_email=settings.admin_email,
    )
