import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from routes.realtime_ws import router as realtime_router
from routes.translate_route import router as translate_router
from services.realtime.credential_pool import ClientFactory
from services.realtime.runtime import build_runtime
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    db_dir: Optional[str] = None,
    client_factory: Optional[ClientFactory] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Arguments override what the lifespan would otherwise read from the
    environment; tests use them to inject fake model clients.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager to initialize:
          - the SQLite database holding vocabulary and translation history
          - the credential pool, caches and session registry
        and attach them to `app.state`.
        """
        resolved = settings or Settings.from_env()
        logging.basicConfig(
            level=getattr(logging, resolved.log_level.upper(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        if not resolved.api_keys:
            raise RuntimeError("No OpenAI API key configured (OPENAI_API_KEY or OPENAI_API_KEYS)")

        db_initializer = AsyncDatabaseInitializer(db_dir)
        await db_initializer.ensure_database()
        app.state.db_initializer = db_initializer

        try:
            runtime = build_runtime(resolved, db_initializer, client_factory)
        except Exception as exc:
            raise RuntimeError("Failed to initialize the realtime pipeline") from exc
        app.state.runtime = runtime

        sweeper = asyncio.create_task(
            runtime.feature_cache.run_periodic_sweep(resolved.stage_a_sweep_interval)
        )
        try:
            yield
        finally:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass
            await runtime.pool.aclose()

    app = FastAPI(lifespan=lifespan)

    # Serve static assets from the public directory, if it exists.
    if PUBLIC_DIR.exists():
        app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

    @app.get("/", include_in_schema=False)
    async def serve_index():
        """
        Serve the frontend index page from the public directory.
        """
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check reporting database, credential and session state.
        """
        runtime = getattr(request.app.state, "runtime", None)
        return {
            "ok": True,
            "db_initialized": hasattr(request.app.state, "db_initializer"),
            "credentials": len(runtime.pool) if runtime else 0,
            "active_sessions": len(runtime.sessions) if runtime else 0,
        }

    # Register application routers
    app.include_router(translate_router)
    app.include_router(realtime_router)

    return app


app = create_app()
