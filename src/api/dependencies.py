"""FastAPI dependency injection helpers."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.infrastructure.database import async_session_factory
from src.infrastructure.events import NotificationSink, RedisEventPublisher, get_redis
from src.services.authorization import GlobalAllotmentAuthorizer, SharedSecretAuthorizer

logger = logging.getLogger(__name__)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            try:
                await session.rollback()
            except SQLAlchemyError:
                logger.warning("Request rollback failed", exc_info=True)
            raise


async def get_notifier() -> NotificationSink:
    return RedisEventPublisher(await get_redis())


def get_authorizer() -> GlobalAllotmentAuthorizer:
    return SharedSecretAuthorizer(settings.allotment_secret)
