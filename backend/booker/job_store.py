"""Persistence helpers for the booking job and its attempts."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booker.config import Settings, settings as default_settings
from booker.database import BookingAttempt, BookingJob
from booker.models import BookingOutcome, UserInfo

logger = logging.getLogger(__name__)

JOB_FIELDS = ('booking_url', 'preferences', 'email', 'first_name', 'last_name', 'phone')


async def get_or_create_job(session: AsyncSession, config: Optional[Settings] = None) -> BookingJob:
    """Return the booking job, seeding it from settings on first use."""
    result = await session.execute(select(BookingJob).order_by(BookingJob.id).limit(1))
    job = result.scalar_one_or_none()
    if job:
        return job

    config = config or default_settings
    job = BookingJob(
        booking_url=config.booking_url,
        preferences=list(config.preferences),
        email=config.email,
        first_name=config.first_name,
        last_name=config.last_name,
        phone=config.phone,
        active=False,
        consecutive_failures=0,
    )
    session.add(job)
    await session.commit()
    logger.info("Created booking job from settings")
    return job


async def activate_job(session: AsyncSession) -> BookingJob:
    job = await get_or_create_job(session)
    job.active = True
    job.consecutive_failures = 0
    await session.commit()
    logger.info("Booking job activated")
    return job


async def deactivate_job(session: AsyncSession) -> BookingJob:
    job = await get_or_create_job(session)
    job.active = False
    await session.commit()
    logger.info("Booking job deactivated")
    return job


async def update_job(session: AsyncSession, **changes) -> BookingJob:
    """Update job fields; unknown names raise ValueError."""
    unknown = set(changes) - set(JOB_FIELDS)
    if unknown:
        raise ValueError(f"Unknown job fields: {', '.join(sorted(unknown))}")
    job = await get_or_create_job(session)
    for name, value in changes.items():
        if value is not None:
            setattr(job, name, list(value) if name == 'preferences' else value)
    await session.commit()
    return job


def user_info_for(job: BookingJob) -> UserInfo:
    return UserInfo(
        first_name=job.first_name or '',
        last_name=job.last_name or '',
        email=job.email or '',
        phone=job.phone or None,
    )


async def record_attempt(
        session: AsyncSession,
        job: BookingJob,
        outcome: Optional[BookingOutcome] = None,
        error: Optional[str] = None) -> BookingAttempt:
    """Store one run and update the job's failure counter.

    A successful outcome resets the counter; anything else (including an
    error) increments it.
    """
    success = bool(outcome and outcome.success)
    if success:
        job.consecutive_failures = 0
    else:
        job.consecutive_failures = (job.consecutive_failures or 0) + 1

    job.last_run_at = datetime.utcnow()
    job.last_result = outcome.kind.value if outcome else "error"

    attempt = BookingAttempt(
        job_id=job.id,
        outcome=job.last_result,
        slot_text=outcome.slot.display_text if outcome and outcome.slot else None,
        available_slots=outcome.available_slots if outcome else [],
        error=error,
        success=success,
        dry_run=bool(outcome and outcome.dry_run),
    )
    session.add(attempt)
    await session.commit()
    return attempt


async def recent_attempts(session: AsyncSession, limit: int = 50) -> List[BookingAttempt]:
    stmt = select(BookingAttempt).order_by(BookingAttempt.created_at.desc()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
