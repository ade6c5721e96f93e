"""
Candidate Poller

Fixed-interval polling of remote ICE candidates with bounded empty polls.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from tools.logger import log_info, log_debug, log_error, log_warning
from use_cases.signaling import NotFound, SessionTerminated, SignalingError


class CandidatePoller:
    """
    Cancellable repeating poll task.

    Polling stops by itself after max_empty_polls consecutive polls that
    returned nothing; any non-empty poll resets the counter. A failed poll
    delivers nothing and counts as empty. Once stop() returns no further
    poll fires.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[List[dict]]],
        apply: Callable[[List[dict]], Awaitable[None]],
        interval: float,
        max_empty_polls: int,
        name: str = "candidate poller",
    ):
        self._fetch = fetch
        self._apply = apply
        self.interval = interval
        self.max_empty_polls = max_empty_polls
        self.name = name
        self.poll_count = 0
        self.empty_polls = 0
        self._stopped = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            log_warning(f"{self.name} already running")
            return
        self._stopped = False
        self.empty_polls = 0
        self._task = asyncio.create_task(self._run())

    async def _run(self):
        while not self._stopped:
            await asyncio.sleep(self.interval)
            if self._stopped:
                break

            self.poll_count += 1
            try:
                candidates = await self._fetch()
            except (NotFound, SessionTerminated) as e:
                log_warning(f"{self.name} stopping: {e}")
                break
            except SignalingError as e:
                log_warning(f"{self.name} poll failed: {e}")
                candidates = []

            if candidates:
                self.empty_polls = 0
                log_debug(f"{self.name} received {len(candidates)} candidates")
                try:
                    await self._apply(candidates)
                except Exception as e:
                    log_error(f"{self.name} failed to apply candidates: {e}")
                continue

            self.empty_polls += 1
            if self.empty_polls >= self.max_empty_polls:
                log_info(f"{self.name} stopping after {self.empty_polls} consecutive empty polls")
                break

    async def wait(self) -> None:
        """Wait until polling ends on its own."""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def stop(self) -> None:
        """Cancel polling; no poll fires after this returns."""
        self._stopped = True
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # Called from an apply callback: the loop exits on its next check.
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
