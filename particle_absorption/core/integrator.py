"""
Generic Monte Carlo integration over an arbitrary region inside a box.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from .constants import DEBUG
from .data_classes import BoundingBox
from .sampling import sample_uniform_in_box, spawn_generators, split_budget

DEFAULT_BATCH_SIZE = 16384

InsidePredicate = Callable[[np.ndarray], np.ndarray]
VectorFunction = Callable[[np.ndarray], np.ndarray]


class MonteCarloIntegrator:
    """Accumulate a vector-valued function over the points of a box that lie inside a region.

    Every draw is a point uniform in ``[lower, upper]``. Draws rejected by
    ``inside`` are discarded and never retried: ``n_iterations`` is a draw
    budget, so the number of accepted points depends on the region. The
    raw sum over accepted points is returned; callers pick the reduction.

    Parameters
    ----------
    lower, upper : sequence of float
        Box corners.
    inside : callable
        ``inside(points) -> bool[m]`` for points of shape (m, d).
    function : callable
        ``function(points) -> array (k, n_outputs)`` evaluated only at
        accepted points.
    n_outputs : int
        Length of the accumulated vector.
    batch_size : int
        Number of draws evaluated per vectorised step.
    """

    def __init__(
        self,
        lower: Sequence[float],
        upper: Sequence[float],
        inside: InsidePredicate,
        function: VectorFunction,
        n_outputs: int,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        box = BoundingBox(lower, upper)
        self.lower = box.lower
        self.upper = box.upper
        self.inside = inside
        self.function = function
        if n_outputs < 1:
            raise ValueError(f"n_outputs must be at least 1, got {n_outputs}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.n_outputs = int(n_outputs)
        self.batch_size = int(batch_size)
        self.draws_completed = 0
        self.accepted = 0

    def _run_stream(
        self,
        rng: np.random.Generator,
        n_draws: int,
        deadline: Optional[float],
        progress_bar: Optional[tqdm],
    ) -> Tuple[np.ndarray, int, int]:
        total = np.zeros(self.n_outputs)
        done = 0
        accepted = 0
        while done < n_draws:
            if deadline is not None and time.monotonic() >= deadline:
                break
            batch = min(self.batch_size, n_draws - done)
            points = sample_uniform_in_box(rng, self.lower, self.upper, batch)
            mask = np.asarray(self.inside(points), dtype=bool)
            if mask.shape != (batch,):
                raise ValueError(f"Inside predicate returned shape {mask.shape}, expected ({batch},)")
            n_in = int(np.count_nonzero(mask))
            if n_in:
                values = np.asarray(self.function(points[mask]), dtype=float)
                if values.shape != (n_in, self.n_outputs):
                    raise ValueError(
                        f"Integrand returned shape {values.shape}, expected ({n_in}, {self.n_outputs})"
                    )
                total += values.sum(axis=0)
                accepted += n_in
            done += batch
            if progress_bar is not None:
                progress_bar.update(batch)
        return total, done, accepted

    def compute(
        self,
        n_iterations: int,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        n_workers: int = 1,
        time_limit: Optional[float] = None,
        progress: bool = False,
    ) -> np.ndarray:
        """Run ``n_iterations`` draws and return the summed output vector.

        Parameters
        ----------
        rng : numpy.random.Generator, optional
            Random source. Mutually exclusive with ``seed``.
        seed : int, optional
            Seed for reproducible runs.
        n_workers : int
            Number of worker threads. Each worker gets an independent random
            stream and its own share of the budget; partial sums are merged
            once all workers finish.
        time_limit : float, optional
            Wall-clock seconds after which no new batch is started. The
            number of draws actually made is left in ``draws_completed``.
        progress : bool
            Show a tqdm progress bar.
        """
        n_iterations = int(n_iterations)
        if n_iterations < 0:
            raise ValueError(f"Number of iterations must be non-negative, got {n_iterations}")
        if n_workers < 1:
            raise ValueError(f"n_workers must be at least 1, got {n_workers}")

        generators = spawn_generators(n_workers, rng=rng, seed=seed)
        budgets = split_budget(n_iterations, n_workers)
        deadline = time.monotonic() + time_limit if time_limit is not None else None

        progress_bar = tqdm(total=n_iterations, desc="Monte Carlo draws", unit="draw") if progress else None
        try:
            if n_workers == 1:
                partials = [self._run_stream(generators[0], budgets[0], deadline, progress_bar)]
            else:
                with ThreadPoolExecutor(max_workers=n_workers) as pool:
                    futures = [
                        pool.submit(self._run_stream, gen, budget, deadline, progress_bar)
                        for gen, budget in zip(generators, budgets)
                    ]
                    partials = [future.result() for future in futures]
        finally:
            if progress_bar is not None:
                progress_bar.close()

        total = np.zeros(self.n_outputs)
        for partial, _, _ in partials:
            total += partial
        self.draws_completed = sum(done for _, done, _ in partials)
        self.accepted = sum(acc for _, _, acc in partials)

        if DEBUG:
            print(f"[debug] {self.draws_completed}/{n_iterations} draws, {self.accepted} accepted "
                  f"on {n_workers} worker(s)")
        return total


def integrate(
    box: BoundingBox,
    inside: InsidePredicate,
    function: VectorFunction,
    n_iterations: int,
    n_outputs: int,
    **kwargs,
) -> np.ndarray:
    """One-shot wrapper around :class:`MonteCarloIntegrator`.

    Keyword arguments are passed to :meth:`MonteCarloIntegrator.compute`,
    except ``batch_size`` which configures the integrator.
    """
    batch_size = kwargs.pop('batch_size', DEFAULT_BATCH_SIZE)
    integrator = MonteCarloIntegrator(box.lower, box.upper, inside, function, n_outputs, batch_size)
    return integrator.compute(n_iterations, **kwargs)
