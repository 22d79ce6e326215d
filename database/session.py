# database/session.py

import logging
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from config import settings


# ============= Models =============

logger = logging.getLogger(settings.LOGGER_NAME)

# Setup SQLAlchemy async engine and session maker
async_engine = create_async_engine(settings.DATABASE_URL, echo=False)
AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False)
Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

# --- SQLAlchemy Models ---

class ChunkEntity(Base):
    __tablename__ = "vector_chunks"
    id = Column(String, primary_key=True)  # "<source_id>-chunk-<n>"
    source_id = Column(String, nullable=False, index=True)
    source_name = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    chunk_index = Column(Integer, nullable=False, default=0)
    total_chunks = Column(Integer, nullable=False, default=1)
    meta = Column(JSON, nullable=False, default=dict)
    embedding = Column(JSON, nullable=True)  # list[float]
    timestamp = Column(DateTime(timezone=True), default=_utcnow)

class SourceEntity(Base):
    __tablename__ = "sources"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    status = Column(String, nullable=False, index=True)  # SourceStatus value
    chunk_count = Column(Integer, nullable=False, default=0)
    error = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


async def create_tables(engine=async_engine) -> None:
    """Create missing tables; existing tables and rows are left untouched."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")
