from __future__ import annotations
"""
AskCPA — Notification Dispatcher
=================================
Runs notification sends as background asyncio tasks once a state transition
has committed. Each send is retried with exponential backoff; the outcome is
only ever logged and never reaches the caller of the mutation.
"""
import asyncio
import logging
from typing import Callable

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from askcpa.errors import NotificationError

logger = logging.getLogger(__name__)

# (to, template, data) -> success
Sender = Callable[[str, str, dict], bool]


def _log_retry(retry_state) -> None:
    to, template, _ = retry_state.args
    logger.warning(
        f"[notify] {template} to {to} failed (attempt {retry_state.attempt_number}), "
        f"retrying in {retry_state.next_action.sleep:.1f}s"
    )


class NotificationDispatcher:

    def __init__(self, send: Sender, max_attempts: int = 3, backoff_seconds: float = 2.0):
        self._send = send
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, to: str, template: str, data: dict) -> asyncio.Task:
        """Schedule a send on the running loop and return immediately."""
        task = asyncio.create_task(self._deliver_logged(to, template, data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _send_once(self, to: str, template: str, data: dict) -> bool:
        try:
            # The SMTP client blocks; keep it off the event loop.
            return await asyncio.to_thread(self._send, to, template, data)
        except Exception as e:
            logger.error(f"[notify] {template} to {to} raised: {e}")
            return False

    async def deliver(self, to: str, template: str, data: dict) -> bool:
        """Send with retries. Raises NotificationError once attempts run out."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds),
            retry=retry_if_result(lambda ok: not ok),
            before_sleep=_log_retry,
        )
        try:
            return await retrying(self._send_once, to, template, data)
        except RetryError as e:
            raise NotificationError(to, template, self.max_attempts) from e

    async def _deliver_logged(self, to: str, template: str, data: dict) -> bool:
        try:
            return await self.deliver(to, template, data)
        except NotificationError as e:
            logger.error(f"[notify] Giving up: {e}")
            return False

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight notifications (shutdown, tests).

        Whatever is still running when ``timeout`` expires is cancelled.
        """
        if not self._tasks:
            return
        done, still_pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_pending:
            logger.warning(f"[notify] Cancelling {len(still_pending)} notification(s) still pending after drain")
            for task in still_pending:
                task.cancel()
            await asyncio.gather(*still_pending, return_exceptions=True)
