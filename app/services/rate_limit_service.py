"""
services/rate_limit_service.py
------------------------------
Fixed-window rate limiting backed by the shared database.

Counters live in rate_limit_counters rather than process memory, so a limit
holds across every worker and instance. Each hit runs in its own short
session and commits immediately: a request that later fails still counts.

Store failures fail open (logged, request allowed). Throttling must never
be the reason a customer's review is lost.
"""

import time
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import RateLimitError
from app.core.logging import get_logger
from app.db.session import AsyncSessionLocal
from app.models.rate_limit import RateLimitCounter

logger = get_logger(__name__)


class RateLimiter:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def hit(
        self,
        key: str,
        limit: int,
        window_seconds: int,
        now: Optional[float] = None,
    ) -> int:
        """
        Count one request against `key` in the current window.

        Returns:
            The request count in the current window.

        Raises:
            RateLimitError: the count exceeds `limit`.
        """
        now_s = int(time.time() if now is None else now)
        window_start = now_s - now_s % window_seconds
        expires_at = window_start + window_seconds

        try:
            async with self._session_factory() as session:
                count = await self._increment(session, key, window_start, expires_at)
                await session.execute(
                    delete(RateLimitCounter).where(RateLimitCounter.expires_at <= now_s)
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Rate limit store unavailable, allowing request", key=key, error=str(exc))
            return 0

        if count > limit:
            logger.warning("Rate limit exceeded", key=key, count=count, limit=limit)
            raise RateLimitError()
        return count

    @staticmethod
    async def _bump(session: AsyncSession, key: str, window_start: int) -> int:
        result = await session.execute(
            update(RateLimitCounter)
            .where(
                RateLimitCounter.key == key,
                RateLimitCounter.window_start == window_start,
            )
            .values(count=RateLimitCounter.count + 1)
        )
        return result.rowcount

    @staticmethod
    async def _increment(
        session: AsyncSession, key: str, window_start: int, expires_at: int
    ) -> int:
        if await RateLimiter._bump(session, key, window_start) == 0:
            try:
                async with session.begin_nested():
                    session.add(
                        RateLimitCounter(
                            key=key,
                            window_start=window_start,
                            count=1,
                            expires_at=expires_at,
                        )
                    )
                return 1
            except IntegrityError:
                # Another instance opened the window first.
                await RateLimiter._bump(session, key, window_start)

        result = await session.execute(
            select(RateLimitCounter.count).where(
                RateLimitCounter.key == key,
                RateLimitCounter.window_start == window_start,
            )
        )
        return result.scalar_one()


def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency."""
    return RateLimiter(AsyncSessionLocal)
