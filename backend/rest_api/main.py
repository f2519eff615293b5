"""
Game hub main application.
Entry point for the FastAPI server: webhook ingestion, game API and the
subscription WebSocket share one process and one notification broker.
"""

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from shared.config.settings import Settings, get_settings
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from shared.utils.schemas import HealthResponse
from rest_api.core.cors import configure_cors
from rest_api.core.lifespan import lifespan
from rest_api.core.middlewares import register_middlewares
from rest_api.routers.games import router as games_router
from rest_api.routers.webhook import router as webhook_router
from ws_gateway.broker import NotificationBroker
from ws_gateway.router import router as subscriptions_router

VERSION = "0.1.0"


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application.

    Each app owns its broker, reachable as app.state.broker.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Game Hub",
        description="Turns GitHub issue events into games and pushes them to live subscribers",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.broker = NotificationBroker.from_settings(settings)

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    configure_cors(app, settings)
    register_middlewares(app)

    app.include_router(webhook_router)
    app.include_router(games_router)
    app.include_router(subscriptions_router)

    @app.get("/api/health", response_model=HealthResponse)
    def health_check() -> HealthResponse:
        """Liveness check with subscription statistics."""
        return HealthResponse(
            status="healthy",
            service="game-hub",
            version=VERSION,
            environment=settings.environment,
            subscriptions=app.state.broker.get_stats(),
        )

    return app


app = create_app()
