import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from rental_escrow.core.config import settings
from rental_escrow.core.errors import EscrowError
from rental_escrow.core.logging import configure_logging
from rental_escrow.api.bookings import router as bookings_router
from rental_escrow.api.deps import get_notifier
from rental_escrow.api.escrow import router as escrow_router
from rental_escrow.api.notifications import router as notifications_router
from rental_escrow.api.wallet import router as wallet_router
from rental_escrow.db.session import SessionLocal, init_db
from rental_escrow.jobs.expiry_sweeper import build_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()

    scheduler = None
    if settings.EXPIRY_SWEEP_ENABLED:
        scheduler = build_scheduler(SessionLocal, get_notifier(), settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
        scheduler.start()
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)
        logger.info("Expiry sweep scheduler stopped")


app = FastAPI(title="Rental Escrow API", version="1.0.0", lifespan=lifespan)

@app.exception_handler(EscrowError)
async def escrow_error_handler(request: Request, exc: EscrowError):
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.detail},
    )

@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    # likely a racing duplicate insert (unique booking id or ledger reference)
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={"error": "conflict", "detail": "Conflicting concurrent update"},
    )

app.include_router(bookings_router, tags=["bookings"])
app.include_router(escrow_router, tags=["escrow"])
app.include_router(wallet_router, tags=["wallet"])
app.include_router(notifications_router, tags=["notifications"])

@app.get("/health")
def health():
    return {"status": "ok"}
