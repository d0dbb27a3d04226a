import numpy as np
import pytest


@pytest.fixture
def near_duplicates() -> np.ndarray:
    # 0 and 1 are near-identical (cosine ~0.9988), 2, 3, 4 are orthogonal to everything
    return np.array(
        [
            [1.0, 0.0, 0.0, 0.0, 0.0],
            [1.0, 0.05, 0.0, 0.0, 0.0],
            [0.0, 0.0, 1.0, 0.0, 0.0],
            [0.0, 0.0, 0.0, 1.0, 0.0],
            [0.0, 0.0, 0.0, 0.0, 1.0],
        ]
    )


@pytest.fixture
def hub() -> np.ndarray:
    # four orthogonal leaves and, last, a hub with cosine 0.5 to each of them
    leaves = np.eye(4)
    hub_vector = np.ones((1, 4)) / 2.0
    return np.vstack([leaves, hub_vector])


@pytest.fixture
def random_embeddings() -> np.ndarray:
    rng = np.random.default_rng(1234)
    return rng.normal(size=(40, 16))
