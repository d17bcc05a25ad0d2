"""
Solid primitives answering vectorised containment and ray-intersection queries.

Every solid works on arrays of points of shape (n, 3):

* ``contains(points)`` returns a boolean array, True for points inside the
  closed volume.
* ``first_intersection(starts, ends)`` returns the raw parameter ``t >= 0`` of
  the first boundary crossing along ``start + t * (end - start)``, or ``inf``
  where the line never crosses the boundary ahead of ``start``. Values larger
  than 1 mean the crossing lies beyond ``end``.

Solids are immutable; placement in the laboratory frame is handled by
:class:`~particle_absorption.core.geometry.PlacedSolid`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np

from .data_classes import BoundingBox
from .geometry import euler_rotation_matrix, prepare_mesh_geometry, segment_mesh_intersections

# Parametric step used to probe just past a candidate crossing
PROBE_STEP = 1.0e-12
# Bias applied to the subtracted solid so ties resolve towards the primary
DIFFERENCE_BIAS = 1.0e-10


def _unit(vector: Sequence[float]) -> np.ndarray:
    vector = np.asarray(vector, dtype=float)
    norm = np.linalg.norm(vector)
    if norm == 0.0:
        raise ValueError("Zero-length direction vector")
    return vector / norm


class Solid(ABC):
    """Base class for closed volumes."""

    @abstractmethod
    def contains(self, points: np.ndarray) -> np.ndarray:
        ...

    @abstractmethod
    def first_intersection(self, starts: np.ndarray, ends: np.ndarray) -> np.ndarray:
        ...


class Plane(Solid):
    """Half-space on the side opposite to ``normal``."""

    def __init__(self, normal: Sequence[float], point: Sequence[float]):
        self.normal = _unit(normal)
        self.point = np.asarray(point, dtype=float).copy()

    def contains(self, points: np.ndarray) -> np.ndarray:
        return (points - self.point) @ self.normal <= 0.0

    def first_intersection(self, starts: np.ndarray, ends: np.ndarray) -> np.ndarray:
        den = (ends - starts) @ self.normal
        num = (self.point - starts) @ self.normal
        with np.errstate(divide='ignore', invalid='ignore'):
            t = num / den
        return np.where((den != 0.0) & (t >= 0.0), t, np.inf)

    def __repr__(self) -> str:
        return f"Plane(normal={self.normal.tolist()}, point={self.point.tolist()})"


class MultiPlaneSolid(Solid):
    """Convex solid formed by the intersection of half-spaces."""

    def __init__(self, planes: Sequence[Plane]):
        if len(planes) == 0:
            raise ValueError("MultiPlaneSolid needs at least one plane")
        self.planes = list(planes)
        self._normals = np.array([p.normal for p in self.planes])
        self._offsets = np.einsum("ij,ij->i", self._normals, np.array([p.point for p in self.planes]))

    @classmethod
    def substrate(cls, normal: Sequence[float], point: Sequence[float]) -> "MultiPlaneSolid":
        """Half-space behind the surface through ``point`` facing ``normal``."""
        return cls([Plane(normal, point)])

    @classmethod
    def film(cls, normal: Sequence[float], point: Sequence[float], thickness: float) -> "MultiPlaneSolid":
        """Slab of ``thickness`` behind the surface through ``point`` facing ``normal``."""
        if thickness <= 0.0:
            raise ValueError(f"Film thickness must be positive, got {thickness}")
        n = _unit(normal)
        point = np.asarray(point, dtype=float)
        return cls([Plane(n, point), Plane(-n, point - thickness * n)])

    @classmethod
    def block(
        cls,
        dims: Sequence[float],
        center: Sequence[float],
        phi: float = 0.0,
        theta: float = 0.0,
        psi: float = 0.0,
    ) -> "MultiPlaneSolid":
        """Rectangular block with edge lengths ``dims`` along the rotated x, y and z axes."""
        dims = np.asarray(dims, dtype=float)
        if dims.shape != (3,) or np.any(dims <= 0.0):
            raise ValueError(f"Block dimensions must be three positive lengths, got {dims}")
        center = np.asarray(center, dtype=float)
        axes = euler_rotation_matrix(phi, theta, psi).T
        planes = []
        for half, axis in zip(dims / 2.0, axes):
            planes.append(Plane(axis, center + half * axis))
            planes.append(Plane(-axis, center - half * axis))
        return cls(planes)

    def _signed_distances(self, points: np.ndarray) -> np.ndarray:
        return points @ self._normals.T - self._offsets

    def contains(self, points: np.ndarray) -> np.ndarray:
        return np.all(self._signed_distances(points) <= 0.0, axis=1)

    def first_intersection(self, starts: np.ndarray, ends: np.ndarray) -> np.ndarray:
        directions = ends - starts
        den = directions @ self._normals.T
        num = self._offsets - starts @ self._normals.T
        with np.errstate(divide='ignore', invalid='ignore'):
            t = num / den
        t = np.where((den != 0.0) & (t >= 0.0), t, np.inf)

        result = np.min(t, axis=1)
        outside = ~self.contains(starts)
        if np.any(outside):
            # From outside, only a crossing that lands inside every other plane counts
            t_out = t[outside]
            s_out = starts[outside]
            d_out = directions[outside]
            best = np.full(t_out.shape[0], np.inf)
            for j in range(t_out.shape[1]):
                candidate = t_out[:, j]
                finite = np.isfinite(candidate)
                probe = s_out + np.where(finite, candidate + PROBE_STEP, 0.0)[:, np.newaxis] * d_out
                valid = finite & (candidate < best) & self.contains(probe)
                best = np.where(valid, candidate, best)
            result[outside] = best
        return result

    def __repr__(self) -> str:
        return f"MultiPlaneSolid({len(self.planes)} planes)"


class SphereSolid(Solid):

    def __init__(self, center: Sequence[float], radius: float):
        if radius <= 0.0:
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        self.center = np.asarray(center, dtype=float).copy()
        self.radius = float(radius)

    def contains(self, points: np.ndarray) -> np.ndarray:
        offset = points - self.center
        return np.einsum("ij,ij->i", offset, offset) <= self.radius ** 2

    def first_intersection(self, starts: np.ndarray, ends: np.ndarray) -> np.ndarray:
        d = ends - starts
        m = starts - self.center
        a = np.einsum("ij,ij->i", d, d)
        b = 2.0 * np.einsum("ij,ij->i", m, d)
        c = np.einsum("ij,ij->i", m, m) - self.radius ** 2
        disc = b * b - 4.0 * a * c
        hit = (disc >= 0.0) & (a > 0.0)
        root = np.sqrt(np.where(hit, disc, 0.0))
        denom = np.where(hit, 2.0 * a, 1.0)
        t_near = (-b - root) / denom
        t_far = (-b + root) / denom
        t_near = np.where(hit & (t_near >= 0.0), t_near, np.inf)
        t_far = np.where(hit & (t_far >= 0.0), t_far, np.inf)
        return np.minimum(t_near, t_far)

    def __repr__(self) -> str:
        return f"SphereSolid(center={self.center.tolist()}, radius={self.radius})"


class CylinderSolid(Solid):
    """Right circular cylinder between two end-cap centres."""

    def __init__(self, end0: Sequence[float], end1: Sequence[float], radius: float):
        self.end0 = np.asarray(end0, dtype=float).copy()
        self.end1 = np.asarray(end1, dtype=float).copy()
        self.radius = float(radius)
        self.axis = self.end1 - self.end0
        self._axis2 = float(self.axis @ self.axis)
        if self.radius ** 2 < 1.0e-30:
            raise ValueError("The cylinder radius is unrealistically small")
        if self._axis2 < 1.0e-30:
            raise ValueError("The cylinder length is unrealistically small")

    @property
    def length(self) -> float:
        return float(np.sqrt(self._axis2))

    def contains(self, points: np.ndarray) -> np.ndarray:
        rel = points - self.end0
        u = rel @ self.axis / self._axis2
        radial = rel - u[:, np.newaxis] * self.axis
        return (u >= 0.0) & (u <= 1.0) & (np.einsum("ij,ij->i", radial, radial) <= self.radius ** 2)

    def _cap_hits(self, starts, n, nd, cap):
        with np.errstate(divide='ignore', invalid='ignore'):
            t = ((cap - starts) @ self.axis) / nd
        ok = (nd != 0.0) & (t > 0.0)
        pt = starts + np.where(ok, t, 0.0)[:, np.newaxis] * n - cap
        ok &= np.einsum("ij,ij->i", pt, pt) < self.radius ** 2
        return np.where(ok, t, np.inf)

    def first_intersection(self, starts: np.ndarray, ends: np.ndarray) -> np.ndarray:
        n = ends - starts
        nd = n @ self.axis
        t0 = self._cap_hits(starts, n, nd, self.end0)
        t1 = self._cap_hits(starts, n, nd, self.end1)

        m = starts - self.end0
        md = m @ self.axis
        a = self._axis2 * np.einsum("ij,ij->i", n, n) - nd * nd
        b = self._axis2 * np.einsum("ij,ij->i", m, n) - nd * md
        c = self._axis2 * (np.einsum("ij,ij->i", m, m) - self.radius ** 2) - md * md
        disc = b * b - a * c
        hit = (np.abs(a) > 1.0e-40) & (disc >= 0.0)
        root = np.sqrt(np.where(hit, disc, 0.0))
        safe_a = np.where(hit, a, 1.0)
        tm = (-b - root) / safe_a
        tp = (-b + root) / safe_a
        tc = np.minimum(np.where(hit & (tm > 0.0), tm, np.inf), np.where(hit & (tp > 0.0), tp, np.inf))
        along = md + np.where(np.isfinite(tc), tc, 0.0) * nd
        tc = np.where(np.isfinite(tc) & (along >= 0.0) & (along <= self._axis2), tc, np.inf)

        return np.minimum(np.minimum(t0, t1), tc)

    def __repr__(self) -> str:
        return f"CylinderSolid(end0={self.end0.tolist()}, end1={self.end1.tolist()}, radius={self.radius})"


class DifferenceSolid(Solid):
    """Points inside ``primary`` but not inside ``delta``."""

    def __init__(self, primary: Solid, delta: Solid):
        self.primary = primary
        self.delta = delta

    def contains(self, points: np.ndarray) -> np.ndarray:
        return self.primary.contains(points) & ~self.delta.contains(points)

    def _continue_from(self, t: np.ndarray, starts: np.ndarray, ends: np.ndarray) -> np.ndarray:
        """Restart the query just past ``t`` and map the answer back onto the full segment."""
        result = np.full(t.shape[0], np.inf)
        step = t + PROBE_STEP
        live = np.isfinite(t) & (t <= 1.0) & (step < 1.0)
        if not np.any(live):
            return result
        s = starts[live]
        e = ends[live]
        step_live = step[live]
        restart = s + step_live[:, np.newaxis] * (e - s)
        remainder = self.first_intersection(restart, e)
        combined = step_live + remainder * (1.0 - step_live)
        result[live] = np.where(combined > 1.0, np.inf, combined)
        return result

    def first_intersection(self, starts: np.ndarray, ends: np.ndarray) -> np.ndarray:
        in1 = self.primary.contains(starts)
        in2 = self.delta.contains(starts)
        u1 = self.primary.first_intersection(starts, ends)
        u2 = self.delta.first_intersection(starts, ends) + DIFFERENCE_BIAS
        first = np.minimum(u1, u2)

        result = np.where(u1 < u2, u1, u2)
        # Inside the primary and inside the hole: leaving the primary first keeps us outside
        recurse = in1 & in2 & (u1 < u2)
        # Outside the primary but inside the hole: whichever boundary comes first, we are still outside
        recurse |= ~in1 & in2
        # Outside both: entering the hole first keeps us outside
        recurse |= ~in1 & ~in2 & ~(u1 < u2)
        if np.any(recurse):
            restart_at = np.where(~in1 & in2, first, np.where(in1, u1, u2))
            idx = np.flatnonzero(recurse)
            result[idx] = self._continue_from(restart_at[idx], starts[idx], ends[idx])
        return result

    def __repr__(self) -> str:
        return f"DifferenceSolid({self.primary!r}, {self.delta!r})"


class MeshSolid(Solid):
    """Closed triangle mesh.

    Containment uses the parity of crossings along a fixed, deliberately
    skewed direction; the first crossing uses the Möller–Trumbore test.
    """

    PARITY_DIRECTION = _unit([0.2672612419, 0.5345224838, 0.8017837257])

    def __init__(self, mesh: np.ndarray, chunk_elements: int = 2_000_000):
        self.mesh = np.asarray(mesh, dtype=float)
        self.geometry = prepare_mesh_geometry(self.mesh)
        if self.geometry.n_triangles < 4:
            raise ValueError("A closed mesh needs at least four triangles")
        self.chunk_elements = int(chunk_elements)

    @property
    def bounding_box(self) -> BoundingBox:
        return BoundingBox(self.geometry.lower, self.geometry.upper)

    def _chunks(self, n_points: int):
        step = max(1, self.chunk_elements // self.geometry.n_triangles)
        for begin in range(0, n_points, step):
            yield slice(begin, min(begin + step, n_points))

    def contains(self, points: np.ndarray) -> np.ndarray:
        inside = np.zeros(points.shape[0], dtype=bool)
        candidates = np.flatnonzero(self.bounding_box.contains(points))
        if candidates.size == 0:
            return inside
        reach = 2.0 * float(np.linalg.norm(self.geometry.upper - self.geometry.lower)) + 1.0e-9
        ray = self.PARITY_DIRECTION * reach
        for chunk in self._chunks(candidates.size):
            idx = candidates[chunk]
            starts = points[idx]
            t = segment_mesh_intersections(starts, np.broadcast_to(ray, starts.shape), self.geometry)
            crossings = np.count_nonzero(t <= 1.0, axis=1)
            inside[idx] = (crossings % 2) == 1
        return inside

    def first_intersection(self, starts: np.ndarray, ends: np.ndarray) -> np.ndarray:
        result = np.empty(starts.shape[0])
        directions = ends - starts
        for chunk in self._chunks(starts.shape[0]):
            t = segment_mesh_intersections(starts[chunk], directions[chunk], self.geometry)
            result[chunk] = np.min(t, axis=1)
        return result

    def __repr__(self) -> str:
        return f"MeshSolid({self.geometry.n_triangles} triangles)"
