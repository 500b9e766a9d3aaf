"""FastAPI application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from meal_inference.api.analysis import router as analysis_router
from meal_inference.app_logging import configure_logging
from meal_inference.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(analysis_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check with the product database breaker state."""
        return {
            "status": "ok",
            "productDatabase": app.state.container.product_database.state,
        }

    return app
