"""
Diverse-subset selection for deduplication.

Given one embedding per input item, pick an ordered subset that covers the
pool semantically while avoiding near-duplicates.

Components:
-----------
1. similarity.py: clipped cosine similarity (the Similarity Oracle)
2. coverage.py: facility-location coverage state and marginal gains
3. lazy_greedy.py: Minoux lazy greedy maximization
4. saturation.py: diminishing-returns stopping rule for automatic sizing
5. api.py: select_fixed() and select_auto(), with input validation

Example Usage:
--------------
    result = select_fixed(embeddings, k=3)
    kept = [items[i] for i in result.indices]

    result = select_auto(embeddings)
    print(result.indices, result.values)
"""

from .api import SelectionResult, select_auto, select_fixed
from .errors import ComputationError, InvalidInput, InvalidK, SelectionError
from .saturation import SaturationRule

__all__ = [
    "SelectionResult",
    "select_auto",
    "select_fixed",
    "SaturationRule",
    "SelectionError",
    "InvalidInput",
    "InvalidK",
    "ComputationError",
]
