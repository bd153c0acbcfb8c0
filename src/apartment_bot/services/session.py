"""Lazily refreshed portal session cookies."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from ..models.listing import SessionToken

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 30 * 60  # seconds


class SessionManager:
    """
    Own one portal session and renew it when it goes stale.

    The token is Fresh while its age is below the refresh interval and Stale
    otherwise (or when there is none yet). get_token() refreshes a stale token
    through the supplied coroutine and otherwise returns the cached value with
    no network call. Concurrent callers share a single in-flight refresh.

    Refresh errors propagate to the caller; the previous token is discarded.
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[str]],
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        name: str = "session",
    ):
        self._refresh = refresh
        self.refresh_interval = refresh_interval
        self._clock = clock
        self.name = name
        self._token: Optional[SessionToken] = None
        self._lock = asyncio.Lock()

    @property
    def is_fresh(self) -> bool:
        return self._token is not None and self._token.age(self._clock()) < self.refresh_interval

    async def get_token(self) -> str:
        if self.is_fresh:
            return self._token.cookie_string

        async with self._lock:
            # Another caller may have refreshed while we waited
            if self.is_fresh:
                return self._token.cookie_string

            logger.info(f"{self.name} expired or not initialized, refreshing")
            self._token = None
            cookie_string = await self._refresh()
            self._token = SessionToken(cookie_string=cookie_string, issued_at=self._clock())
            logger.info(f"{self.name} refreshed")
            return cookie_string

    def invalidate(self) -> None:
        """Force the next get_token() call to refresh."""
        self._token = None
