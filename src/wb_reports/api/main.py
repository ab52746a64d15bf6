"""
FastAPI application entry point for WB Reports.
"""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wb_reports import __version__
from wb_reports.api.middleware import register_error_handlers
from wb_reports.api.routes import cost_prices, health, reports, tokens
from wb_reports.database.connection import init_db
from wb_reports.utils.logger import get_logger

load_dotenv(encoding="utf-8")

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("🚀 Starting WB Reports API...")
    init_db()
    logger.info("✅ API started successfully")

    yield

    logger.info("🛑 Shutting down WB Reports API...")


def create_app() -> FastAPI:
    app = FastAPI(
        title="WB Reports API",
        description="Wildberries seller report downloads",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(tokens.router, prefix="/api/tokens", tags=["Tokens"])
    app.include_router(cost_prices.router, prefix="/api/cost-prices", tags=["Cost Prices"])
    app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])
    app.include_router(health.router, tags=["Health"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "wb_reports.api.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", 8000)),
        reload=os.getenv("DEBUG", "false").lower() == "true"
    )
