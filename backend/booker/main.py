"""FastAPI main application."""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from booker.config import settings
from booker.database import AsyncSessionLocal, get_db, init_db
from booker.job_store import (
    activate_job,
    deactivate_job,
    get_or_create_job,
    recent_attempts,
    update_job,
)
from booker.notifier import EmailNotifier
from booker.runner import (
    BookingScheduler,
    RunInProgressError,
    build_booking_service,
    run_exclusive,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Appointment Booker", version="1.0.0")

# Shared by scheduled and manual runs
run_lock = asyncio.Lock()
scheduler: Optional[BookingScheduler] = None


class JobUpdate(BaseModel):
    # Unknown fields reach update_job, which rejects them with a 400
    model_config = ConfigDict(extra="allow")

    booking_url: Optional[str] = None
    preferences: Optional[List[str]] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


def _job_summary(job) -> dict:
    return {
        "active": job.active,
        "booking_url": job.booking_url,
        "preferences": job.preferences or [],
        "email": job.email,
        "first_name": job.first_name,
        "last_name": job.last_name,
        "phone": job.phone,
        "consecutive_failures": job.consecutive_failures,
        "last_run_at": job.last_run_at.isoformat() if job.last_run_at else None,
        "last_result": job.last_result,
    }


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global scheduler

    await init_db()
    scheduler = BookingScheduler(AsyncSessionLocal, settings, lock=run_lock)
    scheduler.start()
    logger.info("Application started")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    global scheduler

    if scheduler:
        scheduler.stop()
        scheduler = None

    logger.info("Application stopped")


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Appointment Booker API", "status": "running"}


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/api/status")
async def get_status(session: AsyncSession = Depends(get_db)):
    """Current job configuration and run state."""
    job = await get_or_create_job(session)
    next_run = scheduler.next_run_time if scheduler else None
    return {
        "success": True,
        "job": _job_summary(job),
        "run_at": settings.run_at,
        "next_run_at": next_run.isoformat() if next_run else None,
    }


@app.post("/api/job/activate")
async def activate(session: AsyncSession = Depends(get_db)):
    job = await activate_job(session)
    if not job.booking_url or not job.preferences:
        logger.warning("Job activated without booking URL or preferences")
    return {"success": True, "job": _job_summary(job)}


@app.post("/api/job/deactivate")
async def deactivate(session: AsyncSession = Depends(get_db)):
    job = await deactivate_job(session)
    return {"success": True, "job": _job_summary(job)}


@app.put("/api/job")
async def put_job(request: JobUpdate, session: AsyncSession = Depends(get_db)):
    """Update the booking URL, preferences or identity fields."""
    try:
        job = await update_job(session, **request.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "job": _job_summary(job)}


@app.post("/api/run")
async def run_now(force: bool = True):
    """Run the booking job immediately."""
    try:
        return await run_exclusive(
            run_lock,
            AsyncSessionLocal,
            build_booking_service(settings),
            EmailNotifier(settings),
            force=force,
            notify_every=settings.notify_every,
        )
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Run error: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/attempts")
async def get_attempts(limit: int = 50, session: AsyncSession = Depends(get_db)):
    """Recent booking attempts, newest first."""
    attempts = await recent_attempts(session, limit=limit)
    return {
        "success": True,
        "count": len(attempts),
        "attempts": [
            {
                "id": a.id,
                "outcome": a.outcome,
                "slot": a.slot_text,
                "available_slots": a.available_slots or [],
                "error": a.error,
                "success": a.success,
                "dry_run": a.dry_run,
                "created_at": a.created_at.isoformat() if a.created_at else None,
            }
            for a in attempts
        ]
    }
