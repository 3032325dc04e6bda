"""
Main FastAPI application for the payments ledger API.
Serves health, auth, payments, gold payments, seller info and metrics.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import auth, gold_payments, health, payments, seller_info
from app.core.config import settings
from app.core.exceptions import LedgerError
from app.core.logging import configure_logging
from app.services.ledger import build_ledger
from app.storage.sheets import GoogleSheetsStore
from app.utils.metrics import router as metrics_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if getattr(app.state, "ledger", None) is None:
        app.state.ledger = build_ledger(GoogleSheetsStore())
    logger.info("ledger_started", extra={"collection": settings.payments_sheet})
    try:
        yield
    finally:
        await app.state.ledger.aclose()


app = FastAPI(
    title="Payments Ledger API",
    description="Payment tracking for the Discord shop, backed by Google Sheets",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            extra={"path": request.url.path, "method": request.method, "error": exc.message},
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid {field}: {first.get('msg', 'invalid value')}" if field else "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message})


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router)
app.include_router(payments.router)
app.include_router(gold_payments.router)
app.include_router(seller_info.router)
app.include_router(metrics_router)
