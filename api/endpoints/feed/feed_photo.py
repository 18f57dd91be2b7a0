# api/endpoints/feed/feed_photo.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from core.config import settings
from core.services.workers_ai import WorkersAIClient
from systems.khulark.core.feed_service import FeedPhotoService

logger = logging.getLogger(__name__)
feed_photo_router = APIRouter()

_service: FeedPhotoService | None = None


def get_feed_service() -> FeedPhotoService:
    global _service
    if _service is None:
        _service = FeedPhotoService(WorkersAIClient.from_settings(settings), settings)
    return _service


async def _read_image(request: Request) -> bytes | None:
    """
    Best-effort multipart parse; anything that is not an uploaded `image` file counts as missing.
    The form (and its spooled temp files) is closed before returning.
    """
    try:
        async with request.form() as form:
            image = form.get("image")
            if not isinstance(image, UploadFile):
                return None
            return await image.read()
    except (StarletteHTTPException, MultiPartException, ValueError) as e:
        logger.warning("[FeedPhoto] Could not parse multipart body: %r", e)
        return None


@feed_photo_router.post("/feed-photo")
async def feed_photo(
    request: Request,
    service: FeedPhotoService = Depends(get_feed_service),
) -> JSONResponse:
    """
    Upload a photo, get back what the khulark ate and how it felt about it.
    - 200: always, with a Decision body (fallback substituted on any remote failure).
    - 400: no image field in the form.
    """
    image = await _read_image(request)
    logger.info("[FeedPhoto] Image file received: %s", "yes" if image is not None else "no")

    if image is None:
        return JSONResponse(status_code=400, content={"error": "No image provided"})

    outcome = await service.run(image)
    logger.info(
        "[FeedPhoto] Returning %s | fallback=%s | labels=%s",
        outcome.stage.value,
        outcome.used_fallback,
        outcome.labels,
    )
    return JSONResponse(status_code=200, content=outcome.decision.to_payload())
