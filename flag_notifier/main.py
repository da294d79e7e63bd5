from contextlib import asynccontextmanager
from fastapi import FastAPI

from flag_notifier.config.settings import settings
from flag_notifier.utils.logging import get_logger
from flag_notifier.routers import main_router, webhook_router
from flag_notifier.utils.errors import setup_error_handlers
from flag_notifier.middlewares import RequestIDMiddleware

# Initialize the logger
logger = get_logger()


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info(f"{settings.NAME} is starting up...")
    yield
    logger.info(f"{settings.NAME} is shutting down...")


def create_application() -> FastAPI:
    """Initialize the FastAPI application with settings and lifespan events."""
    application = FastAPI(
        title=settings.NAME, version=settings.VERSION, lifespan=lifespan
    )

    # Setup error handlers
    setup_error_handlers(application)

    # Add custom middlewares
    application.add_middleware(RequestIDMiddleware)

    # Routers
    application.include_router(main_router, prefix=settings.API_PREFIX, tags=["APIs"])
    application.include_router(
        webhook_router, prefix=settings.WEBHOOK_PREFIX, tags=["Webhooks"]
    )

    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "flag_notifier.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_config=None,
        log_level=None,
    )
