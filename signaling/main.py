import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from signaling.config import Settings
from signaling.context import ServiceContext
from signaling.database import AsyncSessionLocal, close_db, get_db, init_db
from signaling.routers.calls import router as calls_router
from signaling.routers.rooms import router as rooms_router
from signaling.routers.signaling import router as signaling_router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application around an explicit service context."""
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Handle application startup and shutdown."""
        # Startup
        await init_db()
        context = ServiceContext(settings=settings)
        await context.start(AsyncSessionLocal)
        app.state.context = context
        yield
        # Shutdown
        await context.close()
        await close_db()

    app = FastAPI(
        title="Signaling Service",
        description="Room presence, call sessions and polling signaling relay",
        version=settings.commit_hash or "dev",
        lifespan=lifespan,
    )

    # Include routers
    app.include_router(rooms_router, prefix="/api/rooms", tags=["rooms"])
    app.include_router(calls_router, prefix="/api/call", tags=["calls"])
    app.include_router(signaling_router, prefix="/api/signaling", tags=["signaling"])

    @app.get("/health")
    async def health_check(db: AsyncSession = Depends(get_db)) -> Dict[str, Optional[str]]:
        """Health check endpoint with database connectivity."""
        try:
            # Test database connection
            result = await db.execute(text("SELECT 1"))
            db_status = "connected" if result.scalar() == 1 else "error"
        except Exception:
            logger.exception("Database health check failed")
            db_status = "disconnected"

        return {
            "status": "healthy" if db_status == "connected" else "degraded",
            "database": db_status,
            "environment": settings.env,
            "version": settings.commit_hash,
        }

    return app


app = create_app()


# If run directly, start the server
if __name__ == "__main__":
    import uvicorn

    _settings = Settings.from_env()
    uvicorn.run(app, host=_settings.host, port=_settings.port)
