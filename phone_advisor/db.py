"""Database engine and session management utilities."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from .config import settings
from . import models  # noqa: F401 - ensure models are imported for metadata

engine = create_async_engine(settings.async_database_url, future=True)

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


__all__ = ["AsyncSessionLocal", "engine"]
