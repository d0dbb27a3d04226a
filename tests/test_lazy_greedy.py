import numpy as np
import pytest

from jina_mcp.selection.coverage import CoverageAccumulator
from jina_mcp.selection.errors import ComputationError, InvalidInput, InvalidK
from jina_mcp.selection.lazy_greedy import lazy_greedy_select, lazy_greedy_steps
from jina_mcp.selection.similarity import similarity_matrix


def plain_greedy(sims: np.ndarray, k: int) -> list[int]:
    """Recompute every gain at every step."""
    coverage = CoverageAccumulator(sims)
    chosen: list[int] = []
    for _ in range(k):
        best, best_gain = None, -1.0
        for c in range(len(coverage)):
            if c in chosen:
                continue
            gain = coverage.gain(c)
            if gain > best_gain:
                best, best_gain = c, gain
        chosen.append(best)
        coverage.add(best)
    return chosen


@pytest.mark.parametrize("k", [1, 5, 12, 40])
def test_matches_plain_greedy(random_embeddings, k):
    sims = similarity_matrix(random_embeddings)
    steps = lazy_greedy_select(sims, k)
    assert [step.index for step in steps] == plain_greedy(sims, k)


def test_values_grow_and_gains_shrink(random_embeddings):
    steps = list(lazy_greedy_steps(similarity_matrix(random_embeddings)))
    assert len(steps) == len(random_embeddings)
    values = [step.value for step in steps]
    gains = [step.gain for step in steps]
    assert all(b >= a for a, b in zip(values, values[1:]))
    assert all(b <= a + 1e-9 for a, b in zip(gains, gains[1:]))
    assert all(gain >= 0.0 for gain in gains)
    assert values[-1] == pytest.approx(sum(gains))


def test_lazy_evaluation_skips_recomputation():
    # three tight clusters: after one pick per cluster most gains stay stale
    rng = np.random.default_rng(7)
    centers = np.eye(3) * 10.0
    points = np.vstack([center + rng.normal(scale=0.1, size=(10, 3)) for center in centers])
    steps = lazy_greedy_select(similarity_matrix(points), 3)
    assert len({step.index // 10 for step in steps}) == 3
    n = len(points)
    assert steps[-1].evaluations < n * 2


def test_identical_vectors_resolve_ties_by_index():
    sims = similarity_matrix(np.ones((5, 3)))
    steps = lazy_greedy_select(sims, 5)
    assert [step.index for step in steps] == [0, 1, 2, 3, 4]
    assert steps[0].gain == pytest.approx(5.0)
    assert [step.gain for step in steps[1:]] == pytest.approx([0.0] * 4, abs=1e-12)


def test_zero_vectors_terminate():
    sims = similarity_matrix(np.zeros((4, 2)))
    steps = lazy_greedy_select(sims, 4)
    assert [step.index for step in steps] == [0, 1, 2, 3]
    assert all(step.value == 0.0 for step in steps)


@pytest.mark.parametrize("k", [0, -1, 4])
def test_invalid_k(k):
    with pytest.raises(InvalidK):
        lazy_greedy_select(np.eye(3), k)


def test_empty_pool():
    with pytest.raises(InvalidInput):
        lazy_greedy_select(np.zeros((0, 0)), 1)
    with pytest.raises(InvalidInput):
        next(lazy_greedy_steps(np.zeros((0, 0))))


def test_non_finite_similarity_is_a_computation_error():
    sims = np.array([[1.0, np.nan], [np.nan, 1.0]])
    with pytest.raises(ComputationError):
        lazy_greedy_select(sims, 1)


def test_growing_gain_is_a_computation_error(monkeypatch):
    from jina_mcp.selection import lazy_greedy

    class Broken(CoverageAccumulator):
        def gain(self, candidate):
            return 100.0

    monkeypatch.setattr(lazy_greedy, "CoverageAccumulator", Broken)
    with pytest.raises(ComputationError):
        lazy_greedy_select(np.eye(3), 2)
