import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from .config import settings
from .database import SessionLocal, engine as db_engine, init_db
from .redis_client import redis_client
from .routers import appointments, recurring, services, slots
from .services.cleanup import cleanup_checker_loop
from .services.engine import BookingEngine, make_cache
from .services.events import ChangeFeed, RedisChangeBridge, RedisEventNotifier
from .services.slots import get_booking_config
from .services.storage import AppointmentStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()

    config = get_booking_config()
    feed = ChangeFeed()
    engine = BookingEngine(
        AppointmentStore(SessionLocal),
        cache=make_cache(settings.cache_backend, config, redis_client),
        feed=feed,
        notifier=RedisEventNotifier(redis_client),
        config=config,
    )
    app.state.engine = engine

    tasks = [
        asyncio.create_task(cleanup_checker_loop(
            engine,
            interval_seconds=settings.cleanup_interval_seconds,
            retention_days=settings.cleanup_retention_days,
        )),
    ]
    if settings.change_bridge_enabled:
        bridge = RedisChangeBridge(redis_client, feed)
        feed.subscribe(bridge.forward)
        tasks.append(asyncio.create_task(bridge.listen_loop()))

    logger.info(f"Booking API started (cache={settings.cache_backend})")
    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        engine.close()
        await redis_client.aclose()
        await db_engine.dispose()


app = FastAPI(title="Barbershop Booking API", lifespan=lifespan)

app.include_router(services.router)
app.include_router(slots.router)
app.include_router(appointments.router)
app.include_router(recurring.router)


@app.get("/health")
async def health():
    result = {}
    try:
        async with db_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        result["database"] = True
    except Exception as e:
        logger.error(f"Health check: database unreachable: {e}")
        result["database"] = False
    try:
        result["redis"] = bool(await redis_client.ping())
    except Exception as e:
        logger.error(f"Health check: redis unreachable: {e}")
        result["redis"] = False
    return result
