"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from acb_ledger.api.dependencies import get_request_id
from acb_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from acb_ledger.api.v1 import credit, history, loans, nft, pool, users
from acb_ledger.domain.exceptions import DomainException
from acb_ledger.infrastructure.database.session import SessionLocal
from acb_ledger.infrastructure.observability.logging import log_rejection, setup_logging
from acb_ledger.services.pool_service import PoolService
from acb_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)

# Error kind -> HTTP status
ERROR_STATUS = {
    "InvalidAmount": 422,
    "InsufficientPosition": 422,
    "ExceedsLimit": 422,
    "NotFound": 404,
    "InsufficientLiquidity": 409,
    "AlreadySettled": 409,
    "NotDue": 409,
    "Contention": 409,
    "AlreadyMinted": 409,
    "VerificationReused": 409,
    "VerificationRequired": 403,
    "VerificationProviderError": 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: make sure the singleton pool row exists
    db = SessionLocal()
    try:
        PoolService(db).ensure_pool()
        db.commit()
    except Exception as e:
        db.rollback()
        logging.exception(f"Pool bootstrap failed: {e}")
    finally:
        db.close()
    yield


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Report rejected operations with their error kind and offending values"""
    status_code = ERROR_STATUS.get(exc.kind, 400)
    log_rejection(request.url.path, None, exc.kind, exc.message)
    headers = {"Retry-After": "1"} if exc.kind == "Contention" else None
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.kind, "detail": exc.message, **exc.details},
        headers=headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logging.error(f"Unexpected error: {exc}", exc_info=exc, extra={"request_id": get_request_id(request)})
    return JSONResponse(status_code=500, content={"error": "InternalError", "detail": "Internal server error"})


def create_app(bootstrap_pool: bool = True) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="ACB Protocol Ledger",
        description="Off-chain ledger for credit scores, pool liquidity and unsecured loans",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if bootstrap_pool else None,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(users.router, prefix="/v1", tags=["users"])
    app.include_router(credit.router, prefix="/v1", tags=["credit"])
    app.include_router(pool.router, prefix="/v1", tags=["pool"])
    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(history.router, prefix="/v1", tags=["transactions"])
    app.include_router(nft.router, prefix="/v1", tags=["nft"])

    return app


app = create_app()
