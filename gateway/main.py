import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import evm, health, network
from .chains.registry import ConnectorRegistry
from .chains.wallet import WalletStore
from .config import Settings, settings
from .core.errors import GatewayError
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_settings: Settings = app.state.settings
    wallets = WalletStore(app_settings.wallet_private_keys)
    app.state.registries = {
        chain: ConnectorRegistry(chain, app_settings, wallets)
        for chain in app_settings.chains
    }
    logger.info("Gateway started for chain(s): %s", ", ".join(app_settings.chains))
    try:
        yield
    finally:
        for registry in app.state.registries.values():
            await registry.close_all()
        logger.info("Gateway stopped")


def create_app(app_settings: Settings = settings) -> FastAPI:
    app = FastAPI(
        title="EVM Gateway",
        description="Gas pricing, transaction polling and cancellation for EVM networks",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        body = exc.to_response()
        request.state.error_code = body.get("errorCode")
        if exc.http_status >= 500:
            logger.error(
                "%s %s failed: %s (code %s, reason: %s)",
                request.method,
                request.url.path,
                exc.message,
                exc.code,
                exc.reason,
            )
        return JSONResponse(status_code=exc.http_status, content=body)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Gateway clients expect invalid parameters to answer 404
        errors = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(
            status_code=404,
            content={"message": errors or "Invalid parameters", "httpErrorCode": 404},
        )

    app.include_router(health.router, tags=["Health"])
    app.include_router(network.router, tags=["Network"])
    app.include_router(evm.router, tags=["EVM"])

    @app.get("/")
    async def root():
        """Root endpoint with basic info"""
        return {
            "name": "EVM Gateway",
            "version": "0.1.0",
            "chains": list(app_settings.chains),
            "docs": "/docs",
            "health": "/healthz",
        }

    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "gateway.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )
