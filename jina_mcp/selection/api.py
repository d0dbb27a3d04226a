"""
Selection API

The two entry points the deduplication tools call once they have embeddings:

- select_fixed(embeddings, k): the k most informative items, in pick order
- select_auto(embeddings): as many items as it takes to saturate coverage

Both are pure functions of their arguments. All working state (similarity
matrix, coverage vector, heap) is created inside the call and dropped on
return, so concurrent calls never interfere.
"""

import dataclasses
from typing import Sequence

import numpy as np
import structlog

from .errors import InvalidInput, InvalidK
from .lazy_greedy import SelectionStep, lazy_greedy_select
from .saturation import SaturationRule, detect_saturation
from .similarity import similarity_matrix

logger = structlog.stdlib.get_logger(component=__name__)


@dataclasses.dataclass(frozen=True)
class SelectionResult:
    """
    Ordered outcome of a selection.

    The order of ``indices`` is the order in which items were picked, most
    informative first. It is not sorted by index.

    Attributes:
        indices: Selected positions in the input, in pick order
        gains: Marginal gain of each pick
        values: Cumulative objective value after each pick
        stop_gain: For automatic sizing, the gain of the first rejected pick
    """
    indices: list[int]
    gains: list[float]
    values: list[float]
    stop_gain: float | None = None

    def __len__(self) -> int:
        return len(self.indices)

    @classmethod
    def from_steps(
        cls, steps: Sequence[SelectionStep], stop_gain: float | None = None
    ) -> "SelectionResult":
        return cls(
            indices=[step.index for step in steps],
            gains=[step.gain for step in steps],
            values=[step.value for step in steps],
            stop_gain=stop_gain,
        )


def validate_embeddings(embeddings) -> np.ndarray:
    """
    Convert embeddings to a float64 matrix, rejecting anything unusable.

    Args:
        embeddings: Sequence of equal-length numeric vectors, or a 2-D array

    Returns:
        Array of shape (n, D) with n >= 1 and D >= 1

    Raises:
        InvalidInput: Empty pool, ragged or zero-length vectors, non-numeric
            or non-finite components
    """
    if embeddings is None:
        raise InvalidInput("Embeddings are required")
    if not isinstance(embeddings, np.ndarray):
        embeddings = list(embeddings)
        if not embeddings:
            raise InvalidInput("Cannot select from an empty pool")
        try:
            dims = {len(vector) for vector in embeddings}
        except TypeError as e:
            raise InvalidInput("Each embedding must be a sequence of numbers") from e
        if len(dims) > 1:
            raise InvalidInput(f"Embedding dimensions differ: {sorted(dims)}")

    try:
        raw = np.asarray(embeddings)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Embeddings must be numeric vectors: {e}") from e
    # real numbers only: casting would drop imaginary parts and parse strings
    if raw.dtype.kind not in "biuf":
        raise InvalidInput(f"Embeddings must be real numeric vectors, got dtype {raw.dtype}")
    matrix = raw.astype(np.float64)

    if matrix.ndim != 2:
        raise InvalidInput(f"Embeddings must be a 2-D array, got {matrix.ndim} dimension(s)")
    if matrix.shape[0] == 0:
        raise InvalidInput("Cannot select from an empty pool")
    if matrix.shape[1] == 0:
        raise InvalidInput("Embedding vectors must not be empty")
    if not np.all(np.isfinite(matrix)):
        bad = sorted({int(i) for i in np.argwhere(~np.isfinite(matrix))[:, 0]})
        raise InvalidInput(f"Embeddings contain non-finite values at indices {bad}")
    return matrix


def validate_k(k, n: int) -> int:
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
        raise InvalidK(f"k must be an integer, got {k!r}")
    if k <= 0 or k > n:
        raise InvalidK(f"k must be between 1 and {n}, got {k}")
    return int(k)


def select_fixed(embeddings, k: int) -> SelectionResult:
    """
    Select the ``k`` items that best cover the pool while avoiding redundancy.

    Args:
        embeddings: n vectors of dimension D
        k: Subset size, ``1 <= k <= n``. Not clamped; callers that want
            "everything" must pass n.

    Returns:
        SelectionResult with exactly ``k`` distinct indices in pick order

    Raises:
        InvalidInput: If the embeddings are unusable
        InvalidK: If ``k`` is not an integer in ``[1, n]``
        ComputationError: If an internal invariant breaks
    """
    matrix = validate_embeddings(embeddings)
    k = validate_k(k, matrix.shape[0])
    steps = lazy_greedy_select(similarity_matrix(matrix), k)
    logger.info("selected fixed subset", n=matrix.shape[0], k=k)
    return SelectionResult.from_steps(steps)


def select_auto(embeddings, rule: SaturationRule | None = None) -> SelectionResult:
    """
    Select items until additional picks stop adding coverage.

    Args:
        embeddings: n vectors of dimension D
        rule: Saturation thresholds, defaults to ``SaturationRule()``

    Returns:
        SelectionResult with 1..n indices, their gains and cumulative values,
        and the gain that triggered the stop (None if every item was kept)

    Raises:
        InvalidInput: If the embeddings are unusable
        ComputationError: If an internal invariant breaks
    """
    matrix = validate_embeddings(embeddings)
    if rule is None:
        rule = SaturationRule()
    saturation = detect_saturation(similarity_matrix(matrix), rule)
    logger.info(
        "selected saturated subset",
        n=matrix.shape[0],
        k=len(saturation.steps),
        stop_gain=saturation.stop_gain,
    )
    return SelectionResult.from_steps(saturation.steps, saturation.stop_gain)
