import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel
from src.api.error import ClientError, client_error_handler
from src.api.routes import credits, scheduled_tasks
from src.depends import credit_service, engine

logger = logging.getLogger(__name__)


def create_app(config) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(config, "CREATE_TABLES_ON_STARTUP", False):
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables ensured")
        yield
        await engine.dispose()

    app = FastAPI(
        title="Credit Metering Service",
        description="Per-user credit ledger and request gating for AI features",
        lifespan=lifespan,
    )
    app.state.credit_service = credit_service

    if config.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.CORS_ORIGINS,
            allow_credentials=config.CORS_ALLOW_CREDENTIALS,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["x-credits-required", "x-credits-remaining"],
        )

    app.add_exception_handler(ClientError, client_error_handler)

    app.include_router(credits.router, prefix=config.API_PREFIX)
    app.include_router(scheduled_tasks.router, prefix=config.API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app
