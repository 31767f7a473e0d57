"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tokendesk import __version__
from tokendesk.config import get_settings
from tokendesk.ledger.database import close_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    The schema is applied by the bootstrap before the server starts, so
    startup has nothing to do here.
    """
    yield
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="tokendesk API",
        description="ERC-20 token admin and transfer ledger",
        version=__version__,
        lifespan=lifespan,
        debug=not settings.is_production,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from tokendesk.api.routers import admin
    from tokendesk.api.routes import health, tokens, transactions, wallet

    app.include_router(health.router, tags=["Health"])
    app.include_router(tokens.router, tags=["Tokens"])
    app.include_router(transactions.router, tags=["Transactions"])
    app.include_router(wallet.router, tags=["Wallet"])
    app.include_router(admin.router, tags=["Admin"])

    return app


# Default app instance
app = create_app()
