import uvicorn
from fastapi import FastAPI

from ispsync.api.routes.health import router as health_router
from ispsync.api.routes.internal_jobs import router as internal_jobs_router
from ispsync.core.config import get_settings
from ispsync.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="ISP Reconciler API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.include_router(health_router)
    app.include_router(internal_jobs_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "ispsync.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
