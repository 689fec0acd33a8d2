"""
Ledger API Application Factory
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from .. import __version__
from ..config import LedgerConfig, get_config
from ..errors import LedgerError, ValidationError
from ..logging_config import setup_logging, get_logger
from .auth import LedgerSystem
from .accounts import router as accounts_router
from .transfers import router as transfers_router


logger = get_logger("ledger.api")

HTTP_ERROR_KINDS = {
    404: "not_found",
    405: "method_not_allowed",
    503: "unavailable",
}


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as an {"error", "kind"} envelope"""

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = ValidationError(_validation_message(exc))
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": str(exc.detail),
                "kind": HTTP_ERROR_KINDS.get(exc.status_code, "http_error")
            },
            headers=getattr(exc, "headers", None)
        )


def create_app(system: Optional[LedgerSystem] = None,
               config: Optional[LedgerConfig] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Pre-built ledger system (tests); built at startup when omitted
        config: Configuration used when building the system at startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "ledger_system", None) is None:
            cfg = config or get_config()
            if cfg.uses_default_secret:
                logger.warning("Using the default token secret; set LEDGER_JWT_SECRET")
            try:
                owned = LedgerSystem(cfg)
            except LedgerError:
                # Startup storage failures are fatal
                logger.exception("Failed to initialize storage")
                raise
            app.state.ledger_system = owned
            logger.info("Ledger system initialized")

        yield

        if owned is not None:
            owned.close()
            app.state.ledger_system = None
            logger.info("Ledger storage closed")

    cfg = config or get_config()
    setup_logging(cfg.log_level, cfg.log_format)

    app = FastAPI(
        title="Ledger Service API",
        description="Account registration, token authentication and atomic transfers",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.ledger_system = system

    register_exception_handlers(app)

    app.include_router(accounts_router, tags=["Accounts"])
    app.include_router(transfers_router, tags=["Transfers"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "ledger_service",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


# Create the app instance for uvicorn
app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8000, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "ledger_service.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )


def main():
    """Console entry point"""
    cfg = get_config()
    run_server(host=cfg.api_host, port=cfg.api_port)
