# backend/questionnaire_ai/router/health.py
from __future__ import annotations
import logging
import time

from fastapi import APIRouter, HTTPException

from questionnaire_ai.db.session import DatabasePool, ping_db

router = APIRouter(tags=["health"])
logger = logging.getLogger("qa.health")

startup_time = time.time()
# Set by main.py once the container is built
ready = False


@router.get("/health")
async def health_check():
    """Basic health check - service is running"""
    return {"status": "ok" if ready else "starting", "uptime_seconds": round(time.time() - startup_time, 1)}


@router.get("/health/ready")
async def readiness_check():
    """Readiness check - container built and services wired"""
    if not ready:
        raise HTTPException(status_code=503, detail="Service starting up")
    return {"status": "ready", "database_pool": DatabasePool.pool is not None}


@router.get("/db-ping")
def db_ping():
    """Simple DB connectivity test."""
    ok, message = ping_db()
    return {"ok": ok, "message": message}
