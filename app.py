from __future__ import annotations

# --- dotenv early load ---
from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv())

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

import typer
from fastapi import FastAPI

# --- Routers ---
from api.endpoints.app_health import APP_VERSION, health_router
from api.endpoints.feed import feed_router

# --- Middleware ---
from api.middleware.cors_headers import PermissiveCorsMiddleware
from api.middleware.timing_headers import TimingHeadersMiddleware

# --- Core Imports ---
from core.config import settings
from core.utils.net_api import close_http_client
from systems.khulark.core.arbiter import FeedingArbiter
from systems.khulark.core.models import TooSoon
from systems.khulark.core.session import KhularkSession
from systems.khulark.core.stat_store import StatStore
from systems.khulark.core.storage import get_state_storage

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "[Lifespan] Starting | account_id=%s | api_token=%s | detector=%s | llm=%s",
        "present" if settings.cloudflare_account_id else "MISSING",
        "present" if settings.cloudflare_api_token else "MISSING",
        settings.detection_model,
        settings.language_model,
    )
    try:
        yield
    finally:
        try:
            await close_http_client()
        except Exception:
            logger.warning("close_http_client raised.", exc_info=True)
        logger.info("[Lifespan] Khulark feed service is offline.")


app = FastAPI(title="Khulark", version=APP_VERSION, lifespan=lifespan)

app.add_middleware(PermissiveCorsMiddleware)
app.add_middleware(TimingHeadersMiddleware)

app.include_router(feed_router, tags=["feed"])
app.include_router(health_router)


# ---------------------------------------------------------------------
# CLI: a terminal stand-in for the game's presentation layer
# ---------------------------------------------------------------------
cli = typer.Typer(help="Khulark command-line utilities.")


async def _open_session() -> KhularkSession:
    storage = get_state_storage(settings)
    await storage.initialize()
    store = StatStore(storage)
    session = KhularkSession(store, FeedingArbiter(store, cfg=settings))
    await session.start()
    return session


async def _close_session(session: KhularkSession) -> None:
    await close_http_client()
    await session.store.close()


def _print_snapshot(snap: dict) -> None:
    typer.echo(
        f"hunger={snap['hunger']:.1f} affection={snap['affection']:.1f} "
        f"sanity={snap['sanity']:.1f} | body={snap['bodyState']} mood={snap['mood']}",
    )
    if snap["needsAttention"]:
        typer.echo("The khulark needs attention.")


@cli.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(int(os.getenv("PORT", "8000")), help="Bind port."),
):
    """Run the /feed-photo service."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)


@cli.command()
def status():
    """Load the save (applying decay for time away) and print the stats."""

    async def main():
        session = await _open_session()
        try:
            _print_snapshot(session.snapshot())
        finally:
            await _close_session(session)

    asyncio.run(main())


@cli.command()
def tick():
    """Apply decay up to now and persist."""

    async def main():
        session = await _open_session()
        try:
            _print_snapshot(await session.tick())
        finally:
            await _close_session(session)

    asyncio.run(main())


@cli.command()
def feed(photo: Path = typer.Argument(..., exists=True, dir_okay=False, help="JPEG to offer.")):
    """Offer a photo to the khulark via the feed service."""

    async def main():
        session = await _open_session()
        try:
            result = await session.feed_photo(photo.read_bytes())
            if isinstance(result, TooSoon):
                typer.echo(f"{result.message} ({result.remaining_seconds}s)")
                return
            typer.echo(f'"{result.decision.speech}"')
            typer.echo(result.decision.alert_text)
            _print_snapshot(session.snapshot())
        finally:
            await _close_session(session)

    asyncio.run(main())


@cli.command()
def pet():
    """Pet the khulark."""

    async def main():
        session = await _open_session()
        try:
            result = await session.pet()
            if isinstance(result, TooSoon):
                typer.echo(f"{result.message} ({result.remaining_seconds}s)")
                return
            typer.echo("+10 Affection!")
            _print_snapshot(session.snapshot())
        finally:
            await _close_session(session)

    asyncio.run(main())


@cli.command()
def reset(yes: bool = typer.Option(False, "--yes", help="Skip confirmation.")):
    """Discard the save and start over with a fresh khulark."""
    if not yes:
        typer.confirm("Really discard the current khulark?", abort=True)

    async def main():
        session = await _open_session()
        try:
            _print_snapshot(await session.reset())
        finally:
            await _close_session(session)

    asyncio.run(main())


if __name__ == "__main__":
    cli()
