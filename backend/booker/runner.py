"""Scheduled execution of the booking job."""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from booker.booking_handler import BookingHandler
from booker.booking_service import BookingService
from booker.browser_session import BrowserSession
from booker.calendar_navigator import CalendarNavigator
from booker.config import Settings, settings as default_settings
from booker.diagnostics import DebugSnapshotObserver, SearchObserver
from booker.job_store import get_or_create_job, record_attempt, user_info_for
from booker.notifier import EmailNotifier, should_notify_failure
from booker.search_handler import SearchHandler
from booker.slot_extractor import SlotExtractor

logger = logging.getLogger(__name__)


class RunInProgressError(RuntimeError):
    """Another booking run holds the run lock."""


def _timezone(name: Optional[str]):
    return ZoneInfo(name) if name else None


def build_booking_service(config: Optional[Settings] = None) -> BookingService:
    """Wire a BookingService from settings."""
    config = config or default_settings
    observer = DebugSnapshotObserver(config.debug_dir) if config.debug_snapshots else SearchObserver()
    search_handler = SearchHandler(
        slot_extractor=SlotExtractor(tz=_timezone(config.calendar_timezone)),
        navigator=CalendarNavigator(
            settle_ms=config.navigation_settle_ms,
            load_timeout=config.load_timeout,
        ),
        observer=observer,
    )
    booking_handler = BookingHandler(
        form_settle_ms=config.form_settle_ms,
        confirmation_settle_ms=config.confirmation_settle_ms,
        observer=observer,
    )
    return BookingService(
        session_factory=lambda: BrowserSession(config),
        search_handler=search_handler,
        booking_handler=booking_handler,
        horizon=config.search_horizon,
        dry_run=config.dry_run,
    )


async def run_booking_job(
        session_factory,
        service: BookingService,
        notifier: Optional[EmailNotifier] = None,
        force: bool = False,
        notify_every: int = 3) -> Dict:
    """Run the booking job once and record the result.

    Args:
        session_factory: Async SQLAlchemy session factory
        service: BookingService used for the attempt
        notifier: Sends an email on every Nth consecutive failure
        force: Run even when the job is inactive
        notify_every: Failure notification interval

    Returns:
        Summary dictionary with 'ran', 'success', 'reason' and the outcome
    """
    notifier = notifier or EmailNotifier()

    async with session_factory() as session:
        job = await get_or_create_job(session)
        if not job.active and not force:
            logger.info("Booking job is not active - skipping run")
            return {"ran": False, "success": False, "reason": "inactive"}

        if not job.booking_url or not job.preferences:
            logger.warning("Booking job has no URL or preferences - skipping run")
            return {"ran": False, "success": False, "reason": "not_configured"}

        outcome = None
        error = None
        try:
            outcome = await service.attempt_booking(
                job.booking_url, job.preferences, user_info_for(job)
            )
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"Booking run failed: {error}")

        await record_attempt(session, job, outcome=outcome, error=error)

        reason = error if error else outcome.reason
        if outcome and outcome.success:
            logger.info(f"Booked {outcome.slot.display_text}" + (" (dry run)" if outcome.dry_run else ""))
        elif should_notify_failure(job.consecutive_failures, notify_every) and job.email:
            await notifier.send_booking_failure(
                job.email,
                reason,
                job.consecutive_failures,
                outcome.available_slots if outcome else [],
            )

        return {
            "ran": True,
            "success": bool(outcome and outcome.success),
            "reason": reason,
            "consecutive_failures": job.consecutive_failures,
            "outcome": outcome.to_dict() if outcome else None,
        }


async def run_exclusive(
        lock: asyncio.Lock,
        session_factory,
        service: BookingService,
        notifier: Optional[EmailNotifier] = None,
        **kwargs) -> Dict:
    """Run the booking job while holding ``lock``.

    Raises:
        RunInProgressError: Another run already holds the lock
    """
    if lock.locked():
        raise RunInProgressError("A booking run is already in progress")
    async with lock:
        return await run_booking_job(session_factory, service, notifier, **kwargs)


def parse_run_at(run_at: str) -> Tuple[int, int]:
    """Split a daily HH:MM run time into hour and minute."""
    try:
        hour, minute = (int(part) for part in run_at.split(":", 1))
    except ValueError:
        raise ValueError(f"run_at must look like HH:MM, got {run_at!r}")
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"run_at out of range: {run_at!r}")
    return hour, minute


class BookingScheduler:
    """Runs the booking job once a day at the configured time."""

    JOB_ID = "daily_booking"

    def __init__(
            self,
            session_factory,
            config: Optional[Settings] = None,
            lock: Optional[asyncio.Lock] = None,
            service_factory: Callable[[Settings], BookingService] = build_booking_service):
        """
        Initialize BookingScheduler.

        Args:
            session_factory: Async SQLAlchemy session factory
            config: Settings with run_at, calendar_timezone and notify_every
            lock: Lock shared with manual runs so only one run owns the browser
            service_factory: Builds the BookingService for each run
        """
        self.session_factory = session_factory
        self.config = config or default_settings
        self.lock = lock or asyncio.Lock()
        self.service_factory = service_factory
        self.scheduler: Optional[AsyncIOScheduler] = None

    def start(self):
        """Start the scheduler; must be called from a running event loop."""
        if self.scheduler is not None:
            logger.warning("Booking scheduler already running")
            return

        hour, minute = parse_run_at(self.config.run_at)
        # None falls back to the host timezone
        tz = self.config.calendar_timezone
        self.scheduler = AsyncIOScheduler(timezone=tz)
        self.scheduler.add_job(
            self.run_once,
            trigger=CronTrigger(hour=hour, minute=minute, timezone=tz),
            id=self.JOB_ID,
            name="Daily booking run",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"Booking scheduler started - daily run at {self.config.run_at} ({tz or 'local time'})")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("Booking scheduler stopped")

    @property
    def next_run_time(self) -> Optional[datetime]:
        if self.scheduler is None:
            return None
        job = self.scheduler.get_job(self.JOB_ID)
        return job.next_run_time if job else None

    async def run_once(self) -> Optional[Dict]:
        """Scheduled job body; skipped while a manual run holds the lock."""
        try:
            return await run_exclusive(
                self.lock,
                self.session_factory,
                self.service_factory(self.config),
                EmailNotifier(self.config),
                notify_every=self.config.notify_every,
            )
        except RunInProgressError:
            logger.info("Skipping scheduled run - another run is in progress")
        except Exception as e:
            logger.error(f"Scheduled booking run crashed: {e}", exc_info=True)
        return None
