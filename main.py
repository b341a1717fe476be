from fastapi import FastAPI, HTTPException, Request, Depends, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from typing import List
import structlog
import time
from contextlib import asynccontextmanager

from models import TransactionRecord, ApplyResponse, ClientRecord, ErrorResponse, HealthResponse
from services import TransactionEngine, get_transaction_engine
from repositories import get_account_repository, get_adjustment_repository
from errors import TransactionRejected
from config import get_settings
from logging_config import configure_logging

settings = get_settings()
configure_logging(settings)

logger = structlog.get_logger()

# Rate limiting
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Payments Ledger API")
    yield
    logger.info("Shutting down Payments Ledger API")

app = FastAPI(
    title=settings.app_name,
    description="Applies deposits, withdrawals, disputes, resolves and chargebacks to client accounts",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=round(process_time, 4)
    )

    return response

# Dependency injection
def get_engine(
    account_repo=Depends(get_account_repository),
    adjustment_repo=Depends(get_adjustment_repository)
) -> TransactionEngine:
    return get_transaction_engine(account_repo, adjustment_repo)

@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check API health and get ledger statistics"
)
async def health_check(
    account_repo=Depends(get_account_repository),
    adjustment_repo=Depends(get_adjustment_repository)
):
    return HealthResponse(
        status="healthy",
        accounts_count=account_repo.count(),
        transactions_recorded=adjustment_repo.count()
    )

# Main transaction endpoint. apply() never awaits, so requests are
# applied strictly one after another on the event loop.
@app.post(
    "/transactions",
    response_model=ApplyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Apply Transaction",
    description="Apply a deposit, withdrawal, dispute, resolve or chargeback",
    responses={
        201: {"description": "Transaction applied"},
        409: {"model": ErrorResponse, "description": "Transaction rejected; ledger unchanged"},
        422: {"description": "Malformed transaction record"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Internal server error"}
    }
)
@limiter.limit(lambda: f"{get_settings().rate_limit_per_minute}/minute")
async def apply_transaction(
    request: Request,
    record: TransactionRecord,
    engine: TransactionEngine = Depends(get_engine)
):
    logger.info(
        "Transaction request received",
        tx=record.tx,
        client=record.client,
        type=record.type.value
    )

    engine.apply(record)

    return ApplyResponse(
        status="applied",
        tx=record.tx,
        account=engine.client(record.client)
    )

@app.get(
    "/clients",
    response_model=List[ClientRecord],
    summary="List Clients",
    description="Current available, held, total and locked state of every client"
)
async def list_clients(engine: TransactionEngine = Depends(get_engine)):
    return engine.clients()

@app.get(
    "/clients/{client_id}",
    response_model=ClientRecord,
    summary="Get Client",
    responses={404: {"model": ErrorResponse, "description": "Client not found"}}
)
async def get_client(client_id: int, engine: TransactionEngine = Depends(get_engine)):
    client = engine.client(client_id)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return client

@app.exception_handler(TransactionRejected)
async def transaction_rejected_handler(request: Request, exc: TransactionRejected):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=ErrorResponse(
            detail=exc.detail,
            error_code=exc.code
        ).model_dump(mode="json")
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            detail=exc.detail,
            error_code=f"HTTP_{exc.status_code}"
        ).model_dump(mode="json")
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error",
            error_code="INTERNAL_ERROR"
        ).model_dump(mode="json")
    )

@app.get("/", include_in_schema=False)
async def root():
    return {"message": settings.app_name, "docs": "/docs"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
