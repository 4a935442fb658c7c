"""Database setup and models."""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, Text
from datetime import datetime
from booker.config import settings
import logging

logger = logging.getLogger(__name__)


def make_engine(database_url: str):
    """Create an async engine, upgrading plain sqlite URLs to aiosqlite."""
    if database_url.startswith("sqlite://"):
        database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return create_async_engine(database_url, echo=False, future=True)


def make_session_factory(bind) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


# Create async engine
engine = make_engine(settings.database_url)

AsyncSessionLocal = make_session_factory(engine)

Base = declarative_base()


class BookingJob(Base):
    """The recurring booking job and its run state."""
    __tablename__ = "booking_jobs"

    id = Column(Integer, primary_key=True, index=True)
    booking_url = Column(String, default="")
    preferences = Column(JSON, default=list)  # Ranked, most preferred first
    email = Column(String, default="")
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    phone = Column(String, nullable=True)
    active = Column(Boolean, default=False)
    consecutive_failures = Column(Integer, default=0)
    last_run_at = Column(DateTime, nullable=True)
    last_result = Column(String, nullable=True)  # OutcomeKind value or "error"
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class BookingAttempt(Base):
    """Log of booking runs."""
    __tablename__ = "booking_attempts"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, index=True)
    outcome = Column(String, index=True)  # matched_and_booked, no_match, ..., error
    slot_text = Column(String, nullable=True)
    available_slots = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    success = Column(Boolean, default=False)
    dry_run = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


async def init_db(bind=None):
    """Initialize database tables."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """Get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
