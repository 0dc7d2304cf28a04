import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from .config import settings
from .database import init_db
from .errors import AvailabilityError
from .redis_client import redis_client
from .routers import availability_exceptions, schedules, slots, time_slots

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"Agenda API started (environment={settings.environment})")
    yield


app = FastAPI(title="Agenda API (SQLite)", lifespan=lifespan)


@app.exception_handler(AvailabilityError)
async def availability_error_handler(request: Request, exc: AvailabilityError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(schedules.router)
app.include_router(availability_exceptions.router)
app.include_router(time_slots.router)
app.include_router(slots.router)


@app.get("/health")
def health():
    if redis_client is None:
        return {"status": "ok", "redis": None}
    try:
        return {"status": "ok", "redis": redis_client.ping()}
    except RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return {"status": "ok", "redis": False}
