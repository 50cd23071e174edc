"""Liveness and readiness endpoints."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from pms.api.deps import SessionDep
from pms.tasks.queue import queue

logger = logging.getLogger(__name__)

router = APIRouter()


async def _database_status(session: AsyncSession) -> str:
    try:
        await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database check failed: {e!r}")
        return "disconnected"
    return "connected"


async def _redis_status() -> str:
    redis = getattr(queue, "redis", None)
    if redis is None:
        return "not_initialized"
    try:
        await redis.ping()
    except Exception as e:
        logger.error(f"Redis check failed: {e!r}")
        return "disconnected"
    return "connected"


@router.get("")
async def health_check():
    """The process is up."""
    return {"status": "ok"}


@router.get("/db")
async def health_check_db(session: SessionDep):
    database = await _database_status(session)
    if database != "connected":
        return JSONResponse(status_code=503, content={"status": "error", "database": database})
    return {"status": "ok", "database": database}


@router.get("/redis")
async def health_check_redis():
    redis = await _redis_status()
    if redis != "connected":
        return JSONResponse(status_code=503, content={"status": "error", "redis": redis})
    return {"status": "ok", "redis": redis}


@router.get("/ready")
async def readiness_check(session: SessionDep):
    """Ready as long as the database answers.

    Registration and verification work without Redis; only the expired
    token sweep stops, so a Redis outage reports "degraded" with 200.
    """
    body = {"database": await _database_status(session), "redis": await _redis_status()}
    if body["database"] != "connected":
        return JSONResponse(status_code=503, content={"status": "error", **body})
    return {"status": "ok" if body["redis"] == "connected" else "degraded", **body}
