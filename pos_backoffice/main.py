"""
POS Back Office - Main Application Entry Point
Multi-tenant order lifecycle and invoice sequencing engine
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
import logging
import structlog

from pos_backoffice.core.config import get_settings
from pos_backoffice.core.events import event_bus
from pos_backoffice.core.exceptions import EngineError, InternalError
from pos_backoffice.api import invoices, orders, stock, tables
from pos_backoffice.services.loyalty import register_loyalty_notifier
from pos_backoffice.services.rendering import get_document_dispatcher

settings = get_settings()

logging.basicConfig(format="%(message)s", level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Initializing POS back office")
    # Tables are created by Alembic migrations, not auto-generated
    loyalty_client = register_loyalty_notifier(event_bus)

    yield

    # Shutdown
    logger.info("Shutting down POS back office")
    if loyalty_client is not None:
        event_bus.unsubscribe("OrderPaid", loyalty_client.notify)
        loyalty_client.close()
    get_document_dispatcher().shutdown()


app = FastAPI(
    title="POS Back Office API",
    description="Orders, stock, dining tables and sequential invoices for multi-tenant retail/hospitality",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    if exc.status_code >= 500:
        logger.error("engine_error", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("storage_error", path=request.url.path, error=str(exc), exc_info=True)
    error = InternalError("Unexpected storage failure")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Include routers
app.include_router(orders.router, prefix=f"{settings.API_V1_PREFIX}/orders", tags=["orders"])
app.include_router(tables.router, prefix=f"{settings.API_V1_PREFIX}/tables", tags=["tables"])
app.include_router(invoices.router, prefix=f"{settings.API_V1_PREFIX}/invoices", tags=["invoices"])
app.include_router(stock.router, prefix=f"{settings.API_V1_PREFIX}/stock", tags=["stock"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "pos-backoffice-api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pos_backoffice.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
