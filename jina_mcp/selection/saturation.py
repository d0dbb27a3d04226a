"""
Saturation Detector

Chooses the subset size automatically when the caller does not give one.

The detector walks the lazy greedy picks in order and keeps them until
picking more stops being worthwhile. A pick is rejected, and the walk ends,
when its marginal gain falls below either

- ``ratio * max_gain``, where ``max_gain`` is the largest gain seen so far
  (the first one, since greedy gains never increase), or
- ``floor``, a small absolute gain.

The first pick is always kept, so a non-empty pool yields between 1 and n
indices. Because picks are generated lazily, nothing past the rejected pick
is ever computed.
"""

import dataclasses

import chz
import numpy as np
import structlog

from .lazy_greedy import SelectionStep, lazy_greedy_steps

logger = structlog.stdlib.get_logger(component=__name__)


@chz.chz(typecheck=True)
class SaturationRule:
    """
    Diminishing-returns thresholds for automatic subset sizing.

    Gains are in units of "items covered": a pick that adds nothing but
    itself to an otherwise uncovered pool gains 1.0.
    """
    ratio: float = chz.field(
        doc="Stop when a gain drops below this fraction of the largest gain",
        default=0.2,
    )
    floor: float = chz.field(
        doc="Stop when a gain drops below this absolute value",
        default=1e-3,
    )

    @chz.validate
    def _check_bounds(self):
        if not 0.0 <= self.ratio <= 1.0:
            raise ValueError(f"Saturation ratio must be in [0, 1], got {self.ratio}")
        if self.floor < 0.0:
            raise ValueError(f"Saturation floor must be non-negative, got {self.floor}")

    def threshold(self, max_gain: float) -> float:
        return max(self.ratio * max_gain, self.floor)


@dataclasses.dataclass(frozen=True)
class SaturationResult:
    """
    Attributes:
        steps: Kept picks in selection order
        stop_gain: Gain of the first rejected pick, or None if the pool ran
            out before the rule triggered
    """
    steps: list[SelectionStep]
    stop_gain: float | None


def detect_saturation(sims: np.ndarray, rule: SaturationRule) -> SaturationResult:
    """
    Run lazy greedy selection until returns diminish.

    Args:
        sims: (n, n) similarity matrix
        rule: Thresholds deciding where to stop

    Returns:
        SaturationResult with the kept picks and the gain that stopped the walk
    """
    kept: list[SelectionStep] = []
    max_gain = 0.0
    stop_gain = None
    for step in lazy_greedy_steps(sims):
        if kept and step.gain < rule.threshold(max_gain):
            stop_gain = step.gain
            break
        kept.append(step)
        max_gain = max(max_gain, step.gain)

    logger.debug(
        "saturation detected",
        n=sims.shape[0],
        kept=len(kept),
        max_gain=max_gain,
        stop_gain=stop_gain,
    )
    return SaturationResult(steps=kept, stop_gain=stop_gain)
