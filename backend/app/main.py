import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .logging_config import get_logger, setup_logging
from .middleware.logging_middleware import LoggingMiddleware
from .routers import health as health_router
from .routers import leads as leads_router
from .routers import outreach as outreach_router
from .routers import settings as settings_router
from .routers import ai as ai_router
from .routers import analytics as analytics_router
from dotenv import load_dotenv, find_dotenv
from pathlib import Path

logger = get_logger(__name__)


def load_environment() -> None:
    # Prefer a repo-root .env, then backend/.env for overrides
    repo_root_env = Path(__file__).resolve().parents[2] / ".env"
    backend_env = Path(__file__).resolve().parents[1] / ".env"
    if repo_root_env.exists():
        load_dotenv(dotenv_path=repo_root_env, override=False)
    if backend_env.exists():
        load_dotenv(dotenv_path=backend_env, override=False)
    if not repo_root_env.exists() and not backend_env.exists():
        load_dotenv(find_dotenv(usecwd=False), override=False)


def create_app() -> FastAPI:
    load_environment()
    setup_logging()

    app = FastAPI(title="Levrix Backend", version="1.0.0")

    # Middleware added last runs first, so logging wraps CORS
    frontend_url = os.getenv("FRONTEND_URL", "http://localhost:5173")
    allowed_origins = [
        frontend_url,
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",
    ]

    # In development, allow all origins. In production, use specific origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins if os.getenv("NODE_ENV") == "production" else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    # Routers
    app.include_router(health_router.router)
    app.include_router(leads_router.router)
    app.include_router(outreach_router.router)
    app.include_router(settings_router.router)
    app.include_router(ai_router.router)
    app.include_router(analytics_router.router)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: {exc}",
            exc_info=exc,
        )

        # Only return detailed errors in development
        if os.getenv("NODE_ENV") == "production":
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error"}
            )
        else:
            return JSONResponse(
                status_code=500,
                content={"detail": str(exc), "type": type(exc).__name__}
            )

    return app


app = create_app()
