"""
Periodic Tasks

A small pausable repeating worker used for cluster-level timers: the
leader's heartbeat broadcast and the split-vote follower timeout poller.
Pausing freezes the countdown to the next run instead of discarding it, so
a paused and resumed task fires as if the pause never happened.
"""

import time
import logging
import threading
from typing import Callable, Optional


class PeriodicTask:
    """Run ``action`` every ``interval`` seconds on a daemon thread"""

    def __init__(self, name: str, interval: float, action: Callable[[], None],
                 poll_interval: float = 0.05):
        if interval <= 0:
            raise ValueError("Interval must be positive")

        self.name = name
        self.interval = interval
        self.action = action
        self.poll_interval = min(poll_interval, interval)
        self.runs = 0

        self._active = threading.Event()
        self._active.set()
        self._stopped = threading.Event()
        self.thread: Optional[threading.Thread] = None

        self.logger = logging.getLogger("raft_election.scheduler")

    def start(self) -> None:
        """Start the task thread; a stopped task stays stopped"""
        if self._stopped.is_set() or self.thread is not None:
            return

        self.thread = threading.Thread(target=self._run, name=f"task-{self.name}", daemon=True)
        self.thread.start()
        self.logger.debug(f"Task {self.name} started (every {self.interval:.3f}s)")

    def _run(self) -> None:
        remaining = self.interval
        last = time.monotonic()

        while not self._stopped.is_set():
            if not self._active.is_set():
                self._active.wait()
                last = time.monotonic()
                continue

            if self._stopped.wait(min(remaining, self.poll_interval)):
                break

            now = time.monotonic()
            if self._active.is_set():
                remaining -= now - last
            last = now

            if remaining <= 0:
                remaining = self.interval
                try:
                    self.action()
                    self.runs += 1
                except Exception as e:
                    self.logger.error(f"Error in task {self.name}: {e}")

    def pause(self) -> None:
        self._active.clear()

    def resume(self) -> None:
        self._active.set()

    def is_paused(self) -> bool:
        return not self._active.is_set()

    def stop(self) -> None:
        """Stop the task; safe to call more than once"""
        if self._stopped.is_set():
            return

        self._stopped.set()
        self._active.set()  # wake a paused thread so it can exit
        if self.thread is not None and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        self.logger.debug(f"Task {self.name} stopped after {self.runs} runs")
