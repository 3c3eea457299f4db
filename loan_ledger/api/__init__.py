"""
Loan Ledger API Application Factory
"""

from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .system import LedgerSystem, get_ledger_system
from .calculations import router as calculations_router
from .contracts import router as contracts_router
from .payments import router as payments_router
from .cron import router as cron_router
from .reports import router as reports_router
from .notifications import router as notifications_router
from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging


def create_app(system: Optional[LedgerSystem] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Pre-built ledger system; one is built from configuration if omitted
    """
    app = FastAPI(
        title="Loan Ledger API",
        description="Amortization schedules, payment reconciliation and contract lifecycle for consumer loans",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.ledger_system = system or LedgerSystem()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(calculations_router, tags=["Calculations"])
    app.include_router(contracts_router, prefix="/contracts", tags=["Contracts"])
    app.include_router(payments_router, tags=["Payments"])
    app.include_router(cron_router, prefix="/cron", tags=["Cron"])
    app.include_router(reports_router, prefix="/reports", tags=["Reports"])
    app.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "loan_ledger_api",
            "version": __version__
        }

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the API with uvicorn using configured logging"""
    import uvicorn

    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    uvicorn.run(create_app(), host=host or config.api_host, port=port or config.api_port)


__all__ = ["create_app", "run_server", "LedgerSystem", "get_ledger_system"]
