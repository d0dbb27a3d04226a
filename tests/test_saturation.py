import numpy as np
import pytest

from jina_mcp.selection.saturation import SaturationRule, detect_saturation
from jina_mcp.selection.similarity import similarity_matrix


def test_hub_saturates_after_first_pick(hub):
    result = detect_saturation(similarity_matrix(hub), SaturationRule())
    assert [step.index for step in result.steps] == [4]
    assert result.steps[0].gain == pytest.approx(3.0)
    assert result.stop_gain == pytest.approx(0.5)


def test_lower_ratio_keeps_leaves(hub):
    result = detect_saturation(similarity_matrix(hub), SaturationRule(ratio=0.1))
    assert [step.index for step in result.steps] == [4, 0, 1, 2, 3]
    assert result.stop_gain is None


def test_near_duplicate_is_rejected(near_duplicates):
    result = detect_saturation(similarity_matrix(near_duplicates), SaturationRule())
    assert [step.index for step in result.steps] == [0, 2, 3, 4]
    assert result.stop_gain == pytest.approx(1.0 - 1.0 / np.sqrt(1.0025))


def test_orthogonal_pool_keeps_everything():
    result = detect_saturation(similarity_matrix(np.eye(6)), SaturationRule())
    assert len(result.steps) == 6
    assert result.stop_gain is None


def test_floor_stops_identical_items():
    sims = similarity_matrix(np.ones((4, 2)))
    result = detect_saturation(sims, SaturationRule(ratio=0.0, floor=1e-3))
    assert [step.index for step in result.steps] == [0]
    assert result.stop_gain == pytest.approx(0.0, abs=1e-12)


def test_first_pick_is_always_kept():
    sims = similarity_matrix(np.zeros((3, 2)))
    result = detect_saturation(sims, SaturationRule())
    assert [step.index for step in result.steps] == [0]


def test_disabled_rule_keeps_everything(near_duplicates):
    rule = SaturationRule(ratio=0.0, floor=0.0)
    result = detect_saturation(similarity_matrix(near_duplicates), rule)
    assert len(result.steps) == 5


@pytest.mark.parametrize(
    "kwargs",
    [{"ratio": 1.5}, {"ratio": -0.1}, {"floor": -1.0}],
)
def test_invalid_rule_rejected_at_construction(kwargs):
    with pytest.raises(ValueError):
        SaturationRule(**kwargs)


@pytest.mark.parametrize("kwargs", [{"ratio": 0.0}, {"ratio": 1.0}, {"floor": 0.0}])
def test_boundary_rule_accepted(kwargs):
    rule = SaturationRule(**kwargs)
    assert len(detect_saturation(np.eye(2), rule).steps) >= 1
