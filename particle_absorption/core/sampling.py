"""
Random sampling utilities for Monte Carlo integration.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np


def resolve_generator(
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
) -> np.random.Generator:
    """Return ``rng`` when given, otherwise a fresh generator seeded with ``seed``."""
    if rng is not None and seed is not None:
        raise ValueError("Pass either rng or seed, not both")
    if rng is not None:
        return rng
    return np.random.default_rng(seed)


def spawn_generators(
    n_streams: int,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
) -> List[np.random.Generator]:
    """Create ``n_streams`` statistically independent generators.

    With a seed the streams are children of one ``SeedSequence`` so the
    result is reproducible. With an explicit generator the child seeds are
    drawn from it, which advances its state.
    """
    if n_streams < 1:
        raise ValueError(f"Need at least one random stream, got {n_streams}")
    if rng is not None:
        if seed is not None:
            raise ValueError("Pass either rng or seed, not both")
        if n_streams == 1:
            return [rng]
        entropy = rng.integers(0, 2 ** 63, size=4, dtype=np.uint64)
        sequence = np.random.SeedSequence([int(x) for x in entropy])
    else:
        sequence = np.random.SeedSequence(seed)
    return [np.random.default_rng(child) for child in sequence.spawn(n_streams)]


def sample_uniform_in_box(
    rng: np.random.Generator,
    lower: np.ndarray,
    upper: np.ndarray,
    n_points: int,
) -> np.ndarray:
    """Draw ``n_points`` points uniformly in the box, independently per axis.

    Returns
    -------
    np.ndarray, shape (n_points, dimension)
    """
    lower = np.asarray(lower, dtype=float)
    upper = np.asarray(upper, dtype=float)
    return lower + (upper - lower) * rng.random((n_points, lower.shape[0]))


def split_budget(n_draws: int, n_parts: int) -> List[int]:
    """Split a draw budget into ``n_parts`` near-equal shares that sum to ``n_draws``."""
    base, extra = divmod(int(n_draws), int(n_parts))
    return [base + (1 if i < extra else 0) for i in range(n_parts)]
