"""
Data classes for the particle absorption correction.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .constants import MM_TO_M, to_g_per_cc
from .errors import PreconditionViolation


def _as_vector(values: Sequence[float]) -> np.ndarray:
    vector = np.array(values, dtype=float)
    vector.setflags(write=False)
    return vector


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned sampling domain defined by its minimum and maximum corners (m)."""

    lower: np.ndarray
    upper: np.ndarray

    def __post_init__(self):
        lower = _as_vector(self.lower)
        upper = _as_vector(self.upper)
        if lower.shape != upper.shape or lower.ndim != 1:
            raise ValueError("Bounding box corners must be vectors of equal length")
        if np.any(upper < lower):
            raise ValueError(f"Bounding box upper corner {upper} lies below lower corner {lower}")
        object.__setattr__(self, 'lower', lower)
        object.__setattr__(self, 'upper', upper)

    @classmethod
    def from_bounds(cls, bounds: Sequence[float]) -> "BoundingBox":
        """Build a 3D box from ``[xmin, ymin, zmin, xmax, ymax, zmax]``."""
        bounds = np.asarray(bounds, dtype=float)
        if bounds.shape != (6,):
            raise ValueError("Expected six bounds [xmin, ymin, zmin, xmax, ymax, zmax]")
        return cls(bounds[:3], bounds[3:])

    @property
    def dimension(self) -> int:
        return int(self.lower.shape[0])

    @property
    def extent(self) -> np.ndarray:
        return self.upper - self.lower

    @property
    def depth(self) -> float:
        """Extent along the beam axis (z)."""
        return float(self.upper[2] - self.lower[2])

    @property
    def volume(self) -> float:
        return float(np.prod(self.extent))

    @property
    def corners(self) -> np.ndarray:
        """All 2**n corners of the box, shape (2**n, n)."""
        n = self.dimension
        selectors = (np.arange(2 ** n)[:, np.newaxis] >> np.arange(n)) & 1
        return np.where(selectors == 1, self.upper, self.lower)

    def translated(self, offset: Sequence[float]) -> "BoundingBox":
        offset = np.asarray(offset, dtype=float)
        return BoundingBox(self.lower + offset, self.upper + offset)

    def clipped_depth(self, limit: float) -> "BoundingBox":
        """Return a copy whose depth does not exceed ``limit`` below the entry surface."""
        if self.depth <= limit:
            return self
        upper = self.upper.copy()
        upper[2] = self.lower[2] + limit
        return BoundingBox(self.lower, upper)

    def contains(self, points: np.ndarray) -> np.ndarray:
        points = np.atleast_2d(points)
        return np.all((points >= self.lower) & (points <= self.upper), axis=1)


@dataclass(frozen=True)
class AttenuationContext:
    """Per-transition attenuation inputs.

    Attributes
    ----------
    mac_cm2_per_g : float
        Mass-attenuation coefficient μ/ρ in cm²/g.
    density : float
        Material density in kg/m³.
    detector_position : np.ndarray
        Detector position (m).
    surface_z : float
        Beam-axis coordinate of the sample surface, used as the origin of
        the mass-depth coordinate (m).
    """

    mac_cm2_per_g: float
    density: float
    detector_position: np.ndarray
    surface_z: float = 0.0

    def __post_init__(self):
        mac = float(self.mac_cm2_per_g)
        density = float(self.density)
        if not math.isfinite(mac) or mac < 0.0:
            raise PreconditionViolation(
                f"Mass-attenuation coefficient must be finite and non-negative, got {mac}"
            )
        if not math.isfinite(density) or density <= 0.0:
            raise PreconditionViolation(f"Density must be finite and positive, got {density} kg/m³")
        detector = _as_vector(self.detector_position)
        if detector.shape != (3,) or not np.all(np.isfinite(detector)):
            raise PreconditionViolation(f"Detector position must be a finite 3-vector, got {detector}")
        object.__setattr__(self, 'mac_cm2_per_g', mac)
        object.__setattr__(self, 'density', density)
        object.__setattr__(self, 'detector_position', detector)
        object.__setattr__(self, 'surface_z', float(self.surface_z))

    @property
    def density_g_cc(self) -> float:
        return to_g_per_cc(self.density)

    @property
    def linear_attenuation_per_cm(self) -> float:
        """μ = (μ/ρ)·ρ in 1/cm."""
        return self.mac_cm2_per_g * self.density_g_cc


@dataclass(frozen=True)
class SpectrumGeometry:
    """Read-only beam, sample and detector placement (SI units).

    The beam travels along +z. The sample surface sits at ``sample_position``
    and the specimen occupies the half-space below it (larger z).
    """

    detector_position: np.ndarray
    sample_position: np.ndarray
    beam_energy: float  # J

    def __post_init__(self):
        object.__setattr__(self, 'detector_position', _as_vector(self.detector_position))
        object.__setattr__(self, 'sample_position', _as_vector(self.sample_position))
        if self.detector_position.shape != (3,) or self.sample_position.shape != (3,):
            raise ValueError("Detector and sample positions must be 3-vectors")
        if not self.beam_energy > 0.0:
            raise ValueError(f"Beam energy must be positive, got {self.beam_energy} J")

    @classmethod
    def from_angles(
        cls,
        beam_energy: float,
        elevation_deg: float = 40.0,
        azimuth_deg: float = 0.0,
        distance_mm: float = 60.0,
        optimal_wd_mm: float = 20.0,
        working_distance_mm: Optional[float] = None,
    ) -> "SpectrumGeometry":
        """Place the detector from its elevation, azimuth and distance.

        The detector looks at the point ``optimal_wd_mm`` down the beam axis
        from ``distance_mm`` away, raised ``elevation_deg`` above the plane
        perpendicular to the beam. The sample sits at ``working_distance_mm``
        (defaults to the optimal working distance).
        """
        if distance_mm <= 0.0:
            raise ValueError("Detector distance must be positive")
        elevation = math.radians(elevation_deg)
        azimuth = math.radians(azimuth_deg)
        orientation = np.array([
            -math.cos(elevation) * math.cos(azimuth),
            -math.cos(elevation) * math.sin(azimuth),
            math.sin(elevation),
        ])
        optimal_wd = optimal_wd_mm * MM_TO_M
        detector = np.array([0.0, 0.0, optimal_wd]) - distance_mm * MM_TO_M * orientation
        if working_distance_mm is None:
            working_distance_mm = optimal_wd_mm
        sample = np.array([0.0, 0.0, working_distance_mm * MM_TO_M])
        return cls(detector_position=detector, sample_position=sample, beam_energy=beam_energy)

    @property
    def detector_axis(self) -> np.ndarray:
        """Unit vector pointing from the sample towards the detector."""
        axis = self.detector_position - self.sample_position
        norm = np.linalg.norm(axis)
        if norm == 0.0:
            raise ValueError("Detector and sample positions coincide")
        return axis / norm

    @property
    def take_off_angle(self) -> float:
        """Angle (rad) between the detector axis and the plane normal to the beam."""
        axis = self.detector_axis
        return math.asin(float(np.clip(-axis[2], -1.0, 1.0)))


@dataclass
class MeshGeometry:
    """Precomputed triangle data for ray-mesh intersection queries."""

    vertices0: np.ndarray
    edge1: np.ndarray
    edge2: np.ndarray
    normals: np.ndarray
    lower: np.ndarray
    upper: np.ndarray

    @property
    def n_triangles(self) -> int:
        return int(self.vertices0.shape[0])

    @property
    def scale(self) -> float:
        """Characteristic squared length used to make determinant tolerances unit-free."""
        return float(np.max(self.upper - self.lower)) ** 2


@dataclass
class SampleDraw:
    """A single Monte Carlo trial."""

    point: np.ndarray
    inside: bool
    weighted_generation: Optional[float] = None
    raw_generation: Optional[float] = None


@dataclass
class CorrectionResult:
    """Outcome of one absorption-correction integration.

    ``factor`` is the ratio of the attenuated-generation sum to the
    raw-generation sum over all accepted draws.
    """

    factor: float
    weighted_sum: float
    raw_sum: float
    n_draws: int
    n_accepted: int
    standard_error: float
    transition: Optional[str] = None

    @property
    def acceptance(self) -> float:
        return self.n_accepted / self.n_draws if self.n_draws > 0 else 0.0

    def __float__(self) -> float:
        return float(self.factor)
