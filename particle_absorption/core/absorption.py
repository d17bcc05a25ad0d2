"""
Absorption-weighted X-ray generation at points inside the specimen.
"""

from __future__ import annotations

import warnings
from typing import Callable, Tuple

import numpy as np

from .constants import DEBUG, record_escape_path_stats, to_cm
from .data_classes import AttenuationContext
from .errors import NumericalWarning
from .geometry import PlacedSolid

DepthFunction = Callable[[np.ndarray], np.ndarray]


class AbsorptionWeightedSampler:
    """Integrand pairing attenuated and raw generation for accepted points.

    For each point the segment towards the detector is traced through the
    placed solid. The fraction ``f`` of the segment inside the solid gives
    the escape path ``f * |detector - point|``; the generation at the point's
    mass depth is then attenuated by ``exp(-(μ/ρ)·ρ·path)``.

    Parameters
    ----------
    solid : PlacedSolid
        Oriented specimen geometry. Only read, never modified.
    context : AttenuationContext
        Attenuation coefficient, density, detector position and the
        beam-axis coordinate where mass depth is zero.
    depth_function : callable
        ``depth_function(rho_z) -> generation`` with ``rho_z`` an array of
        mass depths in kg/m².
    """

    n_outputs = 2

    def __init__(self, solid: PlacedSolid, context: AttenuationContext, depth_function: DepthFunction):
        self.solid = solid
        self.context = context
        self.depth_function = depth_function
        self._mu_per_cm = context.linear_attenuation_per_cm

    def escape_fraction(self, points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Return the in-solid fraction of each point's detector segment and the segment length (m)."""
        detector = self.context.detector_position
        fraction = np.asarray(self.solid.first_intersection(points, detector), dtype=float).reshape(-1)
        distance = np.linalg.norm(detector - points, axis=1)

        non_finite = ~np.isfinite(fraction)
        fraction = np.where(non_finite, 0.0, fraction)
        zero_path = (fraction * distance == 0.0) & (distance > 0.0)

        n_zero = int(np.count_nonzero(zero_path))
        n_bad = int(np.count_nonzero(non_finite))
        record_escape_path_stats(points.shape[0], n_zero, n_bad)
        if n_zero:
            warnings.warn(
                f"{n_zero} point(s) had a zero-length escape path despite a non-zero "
                f"distance to the detector; treated as unattenuated",
                NumericalWarning,
                stacklevel=3,
            )
            if DEBUG:
                print(f"[debug] zero escape paths at {points[zero_path][:5]}")
        return fraction, distance

    def generation(self, points: np.ndarray) -> np.ndarray:
        rho_z = self.context.density * (points[:, 2] - self.context.surface_z)
        values = np.asarray(self.depth_function(rho_z), dtype=float)
        if values.shape != rho_z.shape:
            values = np.broadcast_to(values, rho_z.shape).astype(float)
        if not np.all(np.isfinite(values)):
            raise ValueError("Depth-generation function returned non-finite values")
        return values

    def evaluate(self, points: np.ndarray) -> np.ndarray:
        """Return an array of shape (n, 2) of (attenuated generation, raw generation)."""
        points = np.atleast_2d(np.asarray(points, dtype=float))
        fraction, distance = self.escape_fraction(points)
        path_cm = to_cm(fraction * distance)
        raw = self.generation(points)
        weighted = raw * np.exp(-self._mu_per_cm * path_cm)
        return np.column_stack([weighted, raw])

    __call__ = evaluate

    def evaluate_point(self, point: np.ndarray) -> Tuple[float, float]:
        weighted, raw = self.evaluate(np.asarray(point, dtype=float).reshape(1, 3))[0]
        return float(weighted), float(raw)


def with_ratio_moments(pairs: np.ndarray) -> np.ndarray:
    """Extend (a, g) pairs to (a, g, 1, a², g², a·g).

    Summing these gives the accepted count and the second moments needed
    for the standard error of the ratio Σa / Σg.
    """
    a = pairs[:, 0]
    g = pairs[:, 1]
    return np.column_stack([a, g, np.ones_like(a), a * a, g * g, a * g])


def ratio_standard_error(sums: np.ndarray) -> float:
    """Delta-method standard error of Σa/Σg from the sums built by :func:`with_ratio_moments`."""
    sum_a, sum_g, n, sum_aa, sum_gg, sum_ag = (float(x) for x in sums)
    if n < 2 or sum_g == 0.0:
        return float('nan')
    ratio = sum_a / sum_g
    mean_g = sum_g / n
    # Sample variance of the residuals a - ratio * g
    residual_ss = sum_aa - 2.0 * ratio * sum_ag + ratio * ratio * sum_gg
    variance = max(residual_ss, 0.0) / (n - 1)
    return float(np.sqrt(variance / n) / abs(mean_g))
