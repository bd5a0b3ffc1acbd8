"""
Token Metadata API
FastAPI application serving ERC-20 metadata (name, symbol, decimals)

Run with any ASGI server, e.g.:
    uvicorn main:app --port 3000
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.infrastructure_router import router as infrastructure_router
from api.tokens_router import router as tokens_router
from infrastructure.config import TokenApiConfig
from infrastructure.errors import ErrorTracker, register_exception_handlers
from security.validation import HealthResponse
from sentry_config import init_sentry
from services.token_metadata import TokenMetadataService, create_token_service

logger = logging.getLogger("TokenAPI")


def configure_logging(level: str = "INFO"):
    """Root logging setup; component loggers are named per module"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_app(
    service: Optional[TokenMetadataService] = None,
    config: Optional[TokenApiConfig] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        service: resolution service to expose (built from config when omitted)
        config: configuration (read from the environment when omitted)
    """
    config = config or TokenApiConfig.from_env()

    app = FastAPI(
        title=config.api.title,
        version=config.api.version,
        description="API for fetching ERC-20 token metadata from EVM networks",
    )

    app.state.config = config
    app.state.error_tracker = ErrorTracker()
    app.state.token_service = service or create_token_service(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Basic health check - returns 200 if the API is running"""
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/")
    async def api_description():
        """Short API description"""
        return {
            "title": config.api.title,
            "version": config.api.version,
            "description": "API for fetching token metadata from Ethereum networks",
            "endpoints": {
                "GET /tokens/{network}/{address}": "Get token metadata by address",
                "GET /tokens/{network}/symbol/{symbol}": "Get previously fetched token metadata by symbol",
                "GET /tokens/networks": "List supported networks",
                "GET /health": "Health check endpoint",
            },
        }

    app.include_router(tokens_router)
    app.include_router(infrastructure_router)

    return app


def build_app_from_env() -> FastAPI:
    """Entry point used by the ASGI server: .env, logging, Sentry, app"""
    load_dotenv()
    config = TokenApiConfig.from_env()
    configure_logging(config.monitoring.log_level)
    init_sentry(config.monitoring.sentry_dsn, environment=config.environment.value)
    logger.info(f"Starting {config.api.title} ({config.environment.value})")
    return create_app(config=config)


app = build_app_from_env()
