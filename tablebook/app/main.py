from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tablebook.app.core.config import settings
from tablebook.app.core.errors import BookingError
from tablebook.app.core.logging_setup import configure_logging
from tablebook.app.core.redis_client import close_redis, init_redis
from tablebook.app.db.session import close_store, init_store
import tablebook.app.routers.availability as availability
import tablebook.app.routers.health as health
import tablebook.app.routers.reservations as reservations


configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_store()
    await init_redis()
    logger.info("Starting reservation webhooks", store=settings.STORE_BACKEND)
    try:
        yield
    finally:
        await close_redis()
        await close_store()


app = FastAPI(
    title="Table Reservation Webhooks",
    lifespan=lifespan,
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log("Request rejected", path=request.url.path, error=exc.code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


app.include_router(health.router, prefix=settings.API_PREFIX)
app.include_router(availability.router, prefix=settings.API_PREFIX)
app.include_router(reservations.router, prefix=settings.API_PREFIX)
