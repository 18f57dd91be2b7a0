from fastapi import APIRouter

from .feed_photo import feed_photo_router

feed_router = APIRouter()
feed_router.include_router(feed_photo_router)
