"""
Coverage Accumulator

Incremental state for the facility-location objective

    f(S) = sum_i max_{j in S} sim(i, j)

i.e. the total benefit every input item receives from its best-matching
selected representative. ``f`` is monotone non-decreasing and submodular,
which is what the lazy greedy selector relies on.

The accumulator keeps ``best_sim[i]``, the best similarity item ``i`` has
against the selected set so far. With that vector a marginal gain is one
O(n) reduction and adding a representative is one O(n) update.
"""

import numpy as np


class CoverageAccumulator:
    """
    Facility-location coverage over a precomputed similarity matrix.

    Attributes:
        sims: (n, n) similarity matrix with values in ``[0, 1]``
        best_sim: per-item best similarity to the selected set
        value: current objective value ``f(S)``
    """

    def __init__(self, sims: np.ndarray):
        self.sims = sims
        self.best_sim = np.zeros(sims.shape[0], dtype=np.float64)
        self.value = 0.0

    def __len__(self) -> int:
        return self.sims.shape[0]

    def singleton_gains(self) -> np.ndarray:
        """Gain of every candidate against the empty set, ``sum_j sim(c, j)``."""
        return self.sims.sum(axis=0)

    def gain(self, candidate: int) -> float:
        """
        Marginal gain of adding ``candidate`` to the current selection.

        Each term ``max(0, sim(i, c) - best_sim[i])`` can only shrink as
        ``best_sim`` grows, so a gain computed earlier is an upper bound on
        the gain now.
        """
        column = self.sims[:, candidate]
        return float(np.maximum(column - self.best_sim, 0.0).sum())

    def add(self, candidate: int) -> float:
        """
        Select ``candidate`` and return the new objective value.
        """
        np.maximum(self.best_sim, self.sims[:, candidate], out=self.best_sim)
        self.value = float(self.best_sim.sum())
        return self.value
