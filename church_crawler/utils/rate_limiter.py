"""
Fixed-delay rate limiter for sequential crawling.

The crawl keeps one fetch in flight at a time, so the only back-pressure is
a pause between consecutive requests. The first request is never delayed.

Usage:
    limiter = RateLimiter(delay=0.5)

    for url in urls:
        await limiter.wait()
        result = await fetcher.fetch(url)
"""

import asyncio
import time


class RateLimiter:
    """Await-able pause of at least `delay` seconds between requests."""

    def __init__(self, delay: float):
        self.delay = max(0.0, delay)
        self._last_request = 0.0
        self.total_waited = 0.0

    async def wait(self) -> float:
        """
        Sleep until `delay` seconds have passed since the previous call.

        Returns:
            Actual time waited (0 if no wait needed)
        """
        now = time.monotonic()
        wait_time = 0.0
        if self._last_request and self.delay:
            elapsed = now - self._last_request
            if elapsed < self.delay:
                wait_time = self.delay - elapsed
                await asyncio.sleep(wait_time)
        self._last_request = time.monotonic()
        self.total_waited += wait_time
        return wait_time

    def reset(self):
        """Forget the previous request time."""
        self._last_request = 0.0
