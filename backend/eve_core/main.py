# eve_core/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from eve_core.core.config import settings
from eve_core.api.v1 import api_router
from eve_core.core.database import redis_manager, supabase_manager
from eve_core.core.errors import register_exception_handlers
from eve_core.core.logging_config import add_trace_id_middleware, setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    await supabase_manager.connect()
    await redis_manager.connect()
    try:
        yield
    finally:
        await redis_manager.disconnect()
        await supabase_manager.disconnect()
        logger.info(f"{settings.PROJECT_NAME} stopped.")


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(add_trace_id_middleware)

    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("eve_core.main:app", host="0.0.0.0", port=8000, log_level=settings.LOG_LEVEL.lower())
