"""FastAPI application factory."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crosspay import __version__
from crosspay.config import get_settings


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="crosspay API",
        description="Cross-chain route aggregation API",
        version=__version__,
        debug=settings.debug,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    from crosspay.api.routes import health
    from crosspay.web.controllers import quotes_router

    app.include_router(health.router, tags=["Health"])
    app.include_router(quotes_router, prefix="/api/v1")

    return app


# Default app instance
app = create_app()
