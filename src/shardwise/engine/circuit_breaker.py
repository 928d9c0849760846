"""CircuitBreaker: shared failure gate protecting the downstream dependency.

State machine::

    CLOSED --(consecutive failures >= threshold)--> OPEN
    OPEN --(cooldown elapsed, on next admission)--> HALF_OPEN
    HALF_OPEN --(success)--> CLOSED
    HALF_OPEN --(failure)--> OPEN

One instance is shared by every shard of a run and is only touched from the
event loop that owns the run.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from shardwise.core.logging import get_logger
from shardwise.models.shard import BreakerState, CircuitBreakerState

logger = get_logger(__name__)


class CircuitBreaker:
    """IAdmissionGate implementation with a single half-open trial."""

    def __init__(
        self,
        threshold: int = 5,
        cooldown_ms: int = 60_000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.threshold = threshold
        self.cooldown_ms = cooldown_ms
        self.state = BreakerState.CLOSED
        self.consecutive_failures = 0
        self._sleep = sleep
        self._cooldown_lock = asyncio.Lock()
        self._settled = asyncio.Event()
        self._settled.set()
        self._trial_pending = False

    def is_open(self) -> bool:
        return self.state is BreakerState.OPEN

    def _transition(self, new_state: BreakerState) -> None:
        if new_state is self.state:
            return
        logger.info(
            "breaker.transition",
            from_state=str(self.state),
            to_state=str(new_state),
            consecutive_failures=self.consecutive_failures,
        )
        self.state = new_state
        if new_state is BreakerState.HALF_OPEN:
            self._settled.clear()
        else:
            self._trial_pending = False
            self._settled.set()

    def half_open(self) -> None:
        if self.state is BreakerState.OPEN:
            self._transition(BreakerState.HALF_OPEN)

    def record_success(self) -> None:
        self.consecutive_failures = 0
        if self.state is BreakerState.HALF_OPEN:
            self._transition(BreakerState.CLOSED)

    def record_failure(self) -> None:
        self.consecutive_failures += 1
        if self.state is BreakerState.HALF_OPEN or self.consecutive_failures >= self.threshold:
            self._transition(BreakerState.OPEN)

    async def acquire(self) -> None:
        """Wait until an item attempt may proceed.

        When OPEN, the first caller sleeps out the cooldown, moves the breaker
        to HALF_OPEN and is admitted as the trial. Everyone else waits for the
        trial outcome before re-checking.
        """
        while True:
            if self.state is BreakerState.CLOSED:
                return
            if self.state is BreakerState.OPEN:
                async with self._cooldown_lock:
                    if self.state is BreakerState.OPEN:
                        logger.warning("breaker.cooldown", cooldown_ms=self.cooldown_ms)
                        await self._sleep(self.cooldown_ms / 1000)
                        self.half_open()
                        self._trial_pending = True
                        return
                continue
            if not self._trial_pending:
                self._trial_pending = True
                return
            await self._settled.wait()

    def snapshot(self) -> CircuitBreakerState:
        return CircuitBreakerState(
            consecutive_failures=self.consecutive_failures,
            threshold=self.threshold,
            state=self.state,
            cooldown_ms=self.cooldown_ms,
        )
