"""
Adaptive Throttle Module

Maps the monitor's current severity to the operational knobs used by the
orchestrator: delay between rounds, batch size and concurrency ceiling.
Knobs are recomputed on every call so a severity change applies to the very
next admission decision.
"""

import random
from dataclasses import dataclass

from adstats.config import config
from adstats.monitor.blocking_monitor import BlockingMonitor
from adstats.monitor.events import Severity


@dataclass(frozen=True)
class ThrottleKnobs:
    """Operational limits for one severity level."""

    base_delay: float  # seconds
    batch_size: int
    concurrency: int


SEVERITY_KNOBS = {
    Severity.LOW: ThrottleKnobs(base_delay=2.0, batch_size=50, concurrency=10),
    Severity.MEDIUM: ThrottleKnobs(base_delay=10.0, batch_size=25, concurrency=5),
    Severity.HIGH: ThrottleKnobs(base_delay=60.0, batch_size=10, concurrency=2),
    Severity.CRITICAL: ThrottleKnobs(base_delay=300.0, batch_size=5, concurrency=1),
}


def compute_knobs(severity: Severity | str) -> ThrottleKnobs:
    """Look up the knobs for a severity level."""
    return SEVERITY_KNOBS[Severity(severity)]


def jittered_delay(base: float, ratio: float | None = None) -> float:
    """
    Add multiplicative jitter to a base delay.

    Args:
        base: Base delay in seconds
        ratio: Upper bound of the jitter as a share of base (default from config)

    Returns:
        base + uniform(0, base * ratio)
    """
    if ratio is None:
        ratio = config.monitor.jitter_ratio
    return base + random.uniform(0, base * ratio)


class ThrottleController:
    """
    Severity-driven throttle.

    Example:
        throttle = ThrottleController(monitor)
        concurrency = await throttle.recommended_concurrency()
        await asyncio.sleep(await throttle.recommended_delay())
    """

    def __init__(self, monitor: BlockingMonitor, jitter_ratio: float | None = None):
        """
        Initialize the controller.

        Args:
            monitor: Source of the current severity
            jitter_ratio: Delay jitter ratio (default from config)
        """
        self._monitor = monitor
        self._jitter_ratio = jitter_ratio

    async def current_knobs(self) -> ThrottleKnobs:
        """Knobs for the severity as of now."""
        return compute_knobs(await self._monitor.current_severity())

    async def recommended_delay(self) -> float:
        """Delay in seconds with jitter applied."""
        knobs = await self.current_knobs()
        return jittered_delay(knobs.base_delay, self._jitter_ratio)

    async def recommended_batch_size(self) -> int:
        knobs = await self.current_knobs()
        return knobs.batch_size

    async def recommended_concurrency(self) -> int:
        knobs = await self.current_knobs()
        return knobs.concurrency
