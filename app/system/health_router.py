import logging
from datetime import datetime
from fastapi import APIRouter
from app.config import VERSION
from app.database import db
from app.attendance.attendance_cron import scheduler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


async def check_database() -> dict:
    try:
        start = datetime.utcnow()
        await db.command("ping")
        return {"status": "UP", "latency_ms": round((datetime.utcnow() - start).total_seconds() * 1000, 2)}
    except Exception as e:
        logger.error("Database ping failed: %s", e)
        return {"status": "DOWN", "error": str(e)}


@router.get("/health")
async def health():
    """
    Liveness plus database and scheduler state
    """
    database = await check_database()
    return {
        "status": "ok" if database["status"] == "UP" else "degraded",
        "version": VERSION,
        "timestamp": datetime.utcnow().isoformat(),
        "database": database,
        "scheduler": {
            "running": scheduler.running,
            "jobs": [job.id for job in scheduler.get_jobs()] if scheduler.running else [],
        },
    }
