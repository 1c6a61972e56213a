"""FastAPI application for the mood board."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from config import Settings
from pipeline import MoodBoardPipeline

logger = logging.getLogger(__name__)


# Global instances
pipeline: MoodBoardPipeline | None = None
shutdown_event: asyncio.Event | None = None


def get_pipeline() -> MoodBoardPipeline:
    """Get the pipeline instance."""
    if pipeline is None:
        raise RuntimeError("Pipeline not initialized")
    return pipeline


def get_shutdown_event() -> asyncio.Event:
    """Get the shutdown event."""
    if shutdown_event is None:
        raise RuntimeError("Shutdown event not initialized")
    return shutdown_event


def create_app(settings: Settings | None = None, pipeline_factory=None, contextual: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to build the pipeline from (environment by default)
        pipeline_factory: Callable building the pipeline from settings
        contextual: Run the background contextual prompt loop
    """
    factory = pipeline_factory or MoodBoardPipeline.from_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle app startup and shutdown."""
        global pipeline, shutdown_event

        shutdown_event = asyncio.Event()
        pipeline = factory(settings or Settings.from_env())
        context_task = None
        if contextual:
            context_task = asyncio.create_task(pipeline.run_contextual_loop(shutdown_event))

        yield

        # Shutdown: signal SSE connections and the contextual loop to stop
        shutdown_event.set()
        if context_task is not None:
            context_task.cancel()
            try:
                await context_task
            except asyncio.CancelledError:
                pass
        await pipeline.aclose()
        pipeline = None

    app = FastAPI(
        title="Mood Board",
        description="Progressive multi-backend image generation",
        version="1.0.0",
        lifespan=lifespan,
    )

    from .routes import router
    app.include_router(router)

    return app


# Create the app instance
app = create_app()
