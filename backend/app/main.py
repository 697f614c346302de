"""
Completion Notifier API
FastAPI application that emails completion notifications, optionally with
the message rendered to a PDF attachment.
"""

import logging

from fastapi import FastAPI

from app.config import get_settings
from app.cors import PermissiveCORSMiddleware
from app.errors import register_exception_handlers
from app.routers import notifications

settings = get_settings()

# Configure logging to output to console
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Completion Notifier API",
    description="Completion notification emails with optional HTML-to-PDF attachments",
    version="0.1.0",
)

app.add_middleware(PermissiveCORSMiddleware, allow_origin=settings.cors_allow_origin)

register_exception_handlers(app)

# Include routers
app.include_router(notifications.router, prefix="/api", tags=["notifications"])


@app.get("/")
async def root():
    return {"message": "Completion Notifier API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}
