# api/endpoints/app_health.py
from __future__ import annotations

import os

from fastapi import APIRouter

from core.config import settings

APP_VERSION = os.getenv("APP_VERSION", "0.1.0")

health_router = APIRouter()


@health_router.get("/health", tags=["_health"])
async def health_check():
    """
    Liveness plus what the feed pipeline is wired to. Credentials are reported
    as present/absent only; the model host itself is not contacted.
    """
    return {
        "status": "ok",
        "service": "khulark-feed",
        "version": APP_VERSION,
        "detectionModel": settings.detection_model,
        "languageModel": settings.language_model,
        "credentialsConfigured": bool(settings.cloudflare_account_id and settings.cloudflare_api_token),
    }
