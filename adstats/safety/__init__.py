"""Safety module - throttle knobs, concurrency slots and blocking detection."""

from .throttle import ThrottleController, ThrottleKnobs, compute_knobs, jittered_delay
from .slots import AdaptiveSlots
from .detector import BlockingSignal, classify_failure

__all__ = [
    "ThrottleController",
    "ThrottleKnobs",
    "compute_knobs",
    "jittered_delay",
    "AdaptiveSlots",
    "BlockingSignal",
    "classify_failure",
]
