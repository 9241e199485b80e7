import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from stridesync.api.activities import router as activities_router
from stridesync.api.plans import router as plans_router
from stridesync.api.sync import router as sync_router
from stridesync.core.logger import setup_logger
from stridesync.db.session import init_db

setup_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Create missing tables on startup.

    Note: FastAPI requires async for lifespan context manager,
    even if no await operations are used.
    """
    logger.info("Ensuring database tables exist")
    init_db()

    await asyncio.sleep(0)
    yield


app = FastAPI(title="StrideSync", lifespan=lifespan)

app.include_router(sync_router)
app.include_router(activities_router)
app.include_router(plans_router)


@app.get("/health")
def health():
    return {"status": "ok"}
