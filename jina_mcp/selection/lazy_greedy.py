"""
Lazy Greedy Selector

Greedy maximization of the facility-location objective using Minoux's lazy
evaluation.

Algorithm:
----------
1. Every candidate goes into one max-heap keyed by its gain against the empty
   set, stamped with freshness 0.
2. Pop the top entry.
   - If its stamp equals the number of selections made so far, its gain is
     exact: select it.
   - Otherwise the gain was measured against a smaller selected set. Recompute
     it against the current coverage, re-stamp it and push it back.
3. Stop after ``k`` selections or when the heap is empty.

Why stale entries are safe:
---------------------------
Submodularity means a candidate's marginal gain can only shrink as the
selected set grows, so a stale gain is an upper bound on the true one. When a
freshly recomputed entry is still on top, no other candidate can beat it and
nobody else has to be recomputed.

Heap keys are ``(-gain, index)``: Python's heap is a min-heap, and equal gains
resolve to the lower original index, which keeps the output deterministic.
"""

import dataclasses
import heapq
import math
from typing import Iterator

import numpy as np
import structlog

from .coverage import CoverageAccumulator
from .errors import ComputationError, InvalidInput, InvalidK

logger = structlog.stdlib.get_logger(component=__name__)

# Relative slack allowed when checking that recomputed gains never grow
GAIN_TOLERANCE = 1e-9


@dataclasses.dataclass(frozen=True)
class SelectionStep:
    """
    One greedy pick.

    Attributes:
        index: Original position of the selected vector
        gain: Marginal gain of this pick against the previously selected set
        value: Cumulative objective value after this pick
        evaluations: Exact gain computations performed so far, initial
            singleton gains excluded
    """
    index: int
    gain: float
    value: float
    evaluations: int


def _check_gain(index: int, gain: float, upper_bound: float) -> None:
    if not math.isfinite(gain) or gain < 0.0:
        raise ComputationError(f"Invalid marginal gain {gain!r} for candidate {index}")
    if gain > upper_bound + GAIN_TOLERANCE * max(1.0, abs(upper_bound)):
        raise ComputationError(
            f"Marginal gain of candidate {index} grew from {upper_bound!r} to {gain!r}; "
            "similarity is not monotone submodular"
        )


def lazy_greedy_steps(sims: np.ndarray) -> Iterator[SelectionStep]:
    """
    Yield greedy picks over the whole pool, best first.

    The generator owns its coverage state; consuming it lazily lets callers
    stop as soon as they have seen enough picks.

    Args:
        sims: (n, n) similarity matrix with values in ``[0, 1]``

    Yields:
        SelectionStep for each pick, until every candidate has been selected

    Raises:
        InvalidInput: If the pool is empty
        ComputationError: If a gain violates monotone submodularity
    """
    n = sims.shape[0]
    if n == 0:
        raise InvalidInput("Cannot select from an empty pool")

    coverage = CoverageAccumulator(sims)
    heap = []
    for index, gain in enumerate(coverage.singleton_gains()):
        gain = float(gain)
        if not math.isfinite(gain) or gain < 0.0:
            raise ComputationError(f"Invalid singleton gain {gain!r} for candidate {index}")
        heap.append((-gain, index, 0))
    heapq.heapify(heap)

    selected = 0
    evaluations = 0
    while heap:
        neg_gain, index, stamp = heapq.heappop(heap)
        if stamp == selected:
            value = coverage.add(index)
            selected += 1
            yield SelectionStep(
                index=index, gain=-neg_gain, value=value, evaluations=evaluations
            )
            continue

        gain = coverage.gain(index)
        evaluations += 1
        _check_gain(index, gain, -neg_gain)
        heapq.heappush(heap, (-gain, index, selected))


def lazy_greedy_select(sims: np.ndarray, k: int) -> list[SelectionStep]:
    """
    Run the lazy greedy selector for exactly ``k`` picks.

    Args:
        sims: (n, n) similarity matrix
        k: Number of picks, ``1 <= k <= n``

    Returns:
        The ``k`` picks in the order they were made

    Raises:
        InvalidInput: If the pool is empty
        InvalidK: If ``k`` is outside ``[1, n]``
    """
    n = sims.shape[0]
    if n == 0:
        raise InvalidInput("Cannot select from an empty pool")
    if k <= 0 or k > n:
        raise InvalidK(f"k must be between 1 and {n}, got {k}")

    steps = []
    for step in lazy_greedy_steps(sims):
        steps.append(step)
        if len(steps) == k:
            break

    logger.debug(
        "lazy greedy finished",
        n=n,
        k=k,
        evaluations=steps[-1].evaluations,
        value=steps[-1].value,
    )
    return steps
