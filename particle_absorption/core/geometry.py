"""
Rigid transforms, placed solids and ray-mesh intersection utilities.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence, Union

import numpy as np

from .data_classes import BoundingBox, MeshGeometry

if TYPE_CHECKING:
    from .shapes import Solid


ORIGIN_3D = np.zeros(3)
Z_AXIS = np.array([0.0, 0.0, 1.0])


def euler_rotation_matrix(phi: float, theta: float, psi: float) -> np.ndarray:
    """Rotation by ``phi`` about z, then ``theta`` about y, then ``psi`` about z."""
    c_phi, s_phi = math.cos(phi), math.sin(phi)
    c_th, s_th = math.cos(theta), math.sin(theta)
    c_psi, s_psi = math.cos(psi), math.sin(psi)
    return np.array([
        [c_phi * c_th * c_psi - s_phi * s_psi, -s_phi * c_th * c_psi - c_phi * s_psi, s_th * c_psi],
        [s_phi * c_psi + c_phi * c_th * s_psi, -s_phi * c_th * s_psi + c_phi * c_psi, s_th * s_psi],
        [-c_phi * s_th, s_th * s_phi, c_th],
    ])


@dataclass(frozen=True)
class RigidTransform:
    """``x -> rotation @ x + translation``."""

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        rotation = np.array(self.rotation, dtype=float)
        translation = np.array(self.translation, dtype=float)
        if rotation.shape != (3, 3) or translation.shape != (3,):
            raise ValueError("Rigid transform needs a 3x3 rotation and a 3-vector translation")
        if not np.allclose(rotation @ rotation.T, np.eye(3), atol=1e-9):
            raise ValueError("Rotation matrix must be orthonormal")
        rotation.setflags(write=False)
        translation.setflags(write=False)
        object.__setattr__(self, 'rotation', rotation)
        object.__setattr__(self, 'translation', translation)

    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls()

    def then_rotate(self, pivot: Sequence[float], phi: float, theta: float, psi: float) -> "RigidTransform":
        """Compose a rotation about ``pivot`` after this transform."""
        pivot = np.asarray(pivot, dtype=float)
        r = euler_rotation_matrix(phi, theta, psi)
        return RigidTransform(
            rotation=r @ self.rotation,
            translation=r @ (self.translation - pivot) + pivot,
        )

    def then_translate(self, offset: Sequence[float]) -> "RigidTransform":
        return RigidTransform(self.rotation, self.translation + np.asarray(offset, dtype=float))

    def apply(self, points: np.ndarray) -> np.ndarray:
        return points @ self.rotation.T + self.translation

    def apply_inverse(self, points: np.ndarray) -> np.ndarray:
        return (points - self.translation) @ self.rotation


def transform_bounding_box(box: BoundingBox, transform: RigidTransform) -> BoundingBox:
    """Axis-aligned hull of ``box`` after ``transform``."""
    corners = transform.apply(box.corners)
    lower = corners.min(axis=0)
    upper = corners.max(axis=0)
    # Exact pass-through on axes the rotation leaves alone
    r = transform.rotation
    for axis in range(3):
        if r[axis, axis] == 1.0:
            lower[axis] = box.lower[axis] + transform.translation[axis]
            upper[axis] = box.upper[axis] + transform.translation[axis]
    return BoundingBox(lower, upper)


def _as_points(points: np.ndarray) -> np.ndarray:
    points = np.asarray(points, dtype=float)
    if points.shape[-1] != 3:
        raise ValueError(f"Expected 3D points, got array of shape {points.shape}")
    return points.reshape(-1, 3)


@dataclass(frozen=True)
class PlacedSolid:
    """An immutable solid placed in the laboratory frame.

    The base solid is defined in its own frame. Queries are mapped into that
    frame through the inverse of ``transform``, so rotating or translating a
    placement never touches the base solid and the same solid can be shared
    between any number of placements.
    """

    solid: "Solid"
    transform: RigidTransform = field(default_factory=RigidTransform.identity)

    def rotated(self, pivot: Sequence[float], phi: float, theta: float = 0.0, psi: float = 0.0) -> "PlacedSolid":
        return PlacedSolid(self.solid, self.transform.then_rotate(pivot, phi, theta, psi))

    def translated(self, offset: Sequence[float]) -> "PlacedSolid":
        return PlacedSolid(self.solid, self.transform.then_translate(offset))

    def contains(self, points: np.ndarray) -> Union[bool, np.ndarray]:
        """True for each point inside the closed solid."""
        single = np.ndim(points) == 1
        local = self.transform.apply_inverse(_as_points(points))
        inside = self.solid.contains(local)
        return bool(inside[0]) if single else inside

    def first_intersection(self, start: np.ndarray, end: Sequence[float]) -> Union[float, np.ndarray]:
        """Fraction in [0, 1] of ``start -> end`` travelled before the first boundary crossing.

        Returns 1.0 when the segment reaches ``end`` without crossing the
        boundary. Non-finite raw results other than "no crossing" come back
        as NaN so callers can treat them as degenerate.
        """
        single = np.ndim(start) == 1
        starts = self.transform.apply_inverse(_as_points(start))
        ends = self.transform.apply_inverse(_as_points(end))
        if ends.shape[0] == 1:
            ends = np.broadcast_to(ends[0], starts.shape)
        raw = self.solid.first_intersection(starts, ends)
        fraction = np.where(np.isposinf(raw), 1.0, np.clip(raw, 0.0, 1.0))
        return float(fraction[0]) if single else fraction


def prepare_mesh_geometry(mesh: np.ndarray) -> MeshGeometry:
    """Precompute edge vectors and normals for an STL mesh.

    Parameters
    ----------
    mesh : np.ndarray
        Mesh data with shape (n_facets, 4, 3) where each facet contains
        [normal, v0, v1, v2], or (n_facets, 3, 3) with just vertices.
    """
    triangles = np.asarray(mesh, dtype=float)
    if triangles.ndim != 3 or triangles.shape[1] not in (3, 4) or triangles.shape[2] != 3:
        raise ValueError(f"Expected mesh of shape (n, 3, 3) or (n, 4, 3), got {triangles.shape}")

    if triangles.shape[1] == 4:
        v0 = triangles[:, 1, :]
        v1 = triangles[:, 2, :]
        v2 = triangles[:, 3, :]
    else:
        v0 = triangles[:, 0, :]
        v1 = triangles[:, 1, :]
        v2 = triangles[:, 2, :]

    edge1 = v1 - v0
    edge2 = v2 - v0
    normals = np.cross(edge1, edge2)
    norms = np.linalg.norm(normals, axis=1, keepdims=True)
    norms = np.where(norms > 0, norms, 1.0)
    normals = normals / norms

    vertices = np.concatenate([v0, v1, v2], axis=0)
    return MeshGeometry(
        vertices0=v0,
        edge1=edge1,
        edge2=edge2,
        normals=normals,
        lower=vertices.min(axis=0),
        upper=vertices.max(axis=0),
    )


def segment_mesh_intersections(
    starts: np.ndarray,
    directions: np.ndarray,
    geometry: MeshGeometry,
    epsilon: float = 1e-12,
) -> np.ndarray:
    """Möller–Trumbore test of many segments against every mesh triangle.

    Parameters
    ----------
    starts : np.ndarray, shape (m, 3)
        Segment start points.
    directions : np.ndarray, shape (m, 3)
        Segment vectors (end - start); the returned parameter is a fraction
        of this vector.

    Returns
    -------
    np.ndarray, shape (m, n_triangles)
        Segment parameter of each hit, ``inf`` where the ray misses the
        triangle or hits it behind the start point.
    """
    v0 = geometry.vertices0[np.newaxis, :, :]
    edge1 = geometry.edge1[np.newaxis, :, :]
    edge2 = geometry.edge2[np.newaxis, :, :]
    d = directions[:, np.newaxis, :]

    pvec = np.cross(d, edge2)
    det = np.einsum("mnk,mnk->mn", np.broadcast_to(edge1, pvec.shape), pvec)
    scale = np.linalg.norm(directions, axis=1)[:, np.newaxis] * geometry.scale
    mask = np.abs(det) > epsilon * np.maximum(scale, np.finfo(float).tiny)
    inv_det = np.divide(1.0, det, out=np.zeros_like(det), where=mask)

    tvec = starts[:, np.newaxis, :] - v0
    u = np.einsum("mnk,mnk->mn", tvec, pvec) * inv_det
    mask &= (u >= 0.0) & (u <= 1.0)

    qvec = np.cross(tvec, np.broadcast_to(edge1, tvec.shape))
    v = np.einsum("mnk,mnk->mn", qvec, np.broadcast_to(d, qvec.shape)) * inv_det
    mask &= (v >= 0.0) & (u + v <= 1.0)

    t = np.einsum("mnk,mnk->mn", np.broadcast_to(edge2, qvec.shape), qvec) * inv_det
    mask &= t > epsilon
    return np.where(mask, t, np.inf)


def mesh_distance_statistics(mesh: np.ndarray) -> tuple:
    """Return mean and maximum distance of mesh vertices from the origin."""
    triangles = np.asarray(mesh, dtype=float)

    if triangles.shape[1] == 4:
        vertices = triangles[:, 1:4, :].reshape(-1, 3)
    else:
        vertices = triangles.reshape(-1, 3)

    if vertices.size == 0:
        raise ValueError("Mesh does not contain any vertices - cannot compute distances")
    radii = np.linalg.norm(vertices, axis=1)
    return float(np.mean(radii)), float(np.max(radii))
