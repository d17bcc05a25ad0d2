"""
Catalog of specimen shapes.

Every shape is described in its own frame: the beam enters the specimen at
the origin travelling along +z, and the detector is assumed to lie towards
+x. :func:`~particle_absorption.core.correction.setup_particle_geometry`
rotates and translates the frame into the laboratory.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple, Union

import numpy as np

from .data_classes import BoundingBox
from .shapes import CylinderSolid, DifferenceSolid, MeshSolid, MultiPlaneSolid, Plane, Solid, SphereSolid
from .stl_utils import load_stl_mesh

MINUS_Z = (0.0, 0.0, -1.0)
BULK_HALF_WIDTH = 1.0e-3  # m
BULK_DEPTH = 2.0e-3  # m


def _normalise(normal) -> Tuple[float, float, float]:
    vector = np.asarray(normal, dtype=float)
    norm = np.linalg.norm(vector)
    if vector.shape != (3,) or norm == 0.0:
        raise ValueError(f"Surface normal must be a non-zero 3-vector, got {normal}")
    return tuple(float(v) for v in vector / norm)


def _positive(name: str, value: float) -> None:
    if not value > 0.0:
        raise ValueError(f"{name} must be positive, got {value}")


def _um(value: float) -> str:
    return f"{value * 1e6:.1f} µm"


class SampleShape(ABC):
    """A specimen shape that can build its solid and its native bounding box."""

    name: str = "shape"

    @abstractmethod
    def solid(self) -> Solid:
        ...

    @abstractmethod
    def bounding_box(self) -> BoundingBox:
        ...

    @property
    @abstractmethod
    def volume(self) -> float:
        ...

    @property
    @abstractmethod
    def area(self) -> float:
        """Area presented to the beam (m²)."""

    def describe(self) -> str:
        return self.name


@dataclass(frozen=True)
class Bulk(SampleShape):
    """Semi-infinite flat specimen."""

    normal: Tuple[float, float, float] = MINUS_Z
    name = "bulk"

    def __post_init__(self):
        object.__setattr__(self, 'normal', _normalise(self.normal))

    def solid(self) -> Solid:
        return MultiPlaneSolid.substrate(self.normal, (0.0, 0.0, 0.0))

    def bounding_box(self) -> BoundingBox:
        h = BULK_HALF_WIDTH
        return BoundingBox.from_bounds([-h, -h, 0.0, h, h, BULK_DEPTH])

    @property
    def volume(self) -> float:
        return (2.0 * BULK_HALF_WIDTH) ** 3

    @property
    def area(self) -> float:
        return (2.0 * BULK_HALF_WIDTH) ** 2

    def describe(self) -> str:
        if np.allclose(self.normal, MINUS_Z, atol=1e-6):
            return "Bulk"
        return f"Bulk[normal=({self.normal[0]:.3f}, {self.normal[1]:.3f}, {self.normal[2]:.3f})]"


@dataclass(frozen=True)
class ThinFilm(SampleShape):
    """Unsupported film of uniform thickness."""

    thickness: float
    normal: Tuple[float, float, float] = MINUS_Z
    name = "thin film"

    def __post_init__(self):
        _positive("Film thickness", self.thickness)
        object.__setattr__(self, 'normal', _normalise(self.normal))

    def solid(self) -> Solid:
        return MultiPlaneSolid.film(self.normal, (0.0, 0.0, 0.0), self.thickness)

    def bounding_box(self) -> BoundingBox:
        h = BULK_HALF_WIDTH
        return BoundingBox.from_bounds([-h, -h, 0.0, h, h, self.thickness])

    @property
    def volume(self) -> float:
        return (2.0 * BULK_HALF_WIDTH) ** 2 * self.thickness

    @property
    def area(self) -> float:
        return (2.0 * BULK_HALF_WIDTH) ** 2

    def describe(self) -> str:
        return f"Thin film[t={_um(self.thickness)}]"


@dataclass(frozen=True)
class RightRectangularPrism(SampleShape):
    """Block with ``depth`` along x, ``width`` along y and ``height`` along the beam."""

    height: float
    depth: float
    width: float
    name = "right rectangular prism"

    def __post_init__(self):
        for label in ("height", "depth", "width"):
            _positive(label.capitalize(), getattr(self, label))

    def solid(self) -> Solid:
        return MultiPlaneSolid.block((self.depth, self.width, self.height), (0.0, 0.0, 0.5 * self.height))

    def bounding_box(self) -> BoundingBox:
        return BoundingBox.from_bounds(
            [-0.5 * self.depth, -0.5 * self.width, 0.0, 0.5 * self.depth, 0.5 * self.width, self.height]
        )

    @property
    def volume(self) -> float:
        return self.depth * self.width * self.height

    @property
    def area(self) -> float:
        return self.depth * self.width

    def describe(self) -> str:
        return f"Right rectangular prism[{_um(self.depth)} x {_um(self.width)} x {_um(self.height)}]"


@dataclass(frozen=True)
class TetragonalPrism(SampleShape):
    """Square prism whose top face is turned 45° so a diagonal faces the detector."""

    diagonal: float
    height: float
    name = "tetragonal prism"

    def __post_init__(self):
        _positive("Diagonal", self.diagonal)
        _positive("Height", self.height)

    def solid(self) -> Solid:
        side = self.diagonal / math.sqrt(2.0)
        return MultiPlaneSolid.block((side, side, self.height), (0.0, 0.0, 0.5 * self.height), 0.25 * math.pi)

    def bounding_box(self) -> BoundingBox:
        h = 0.5 * self.diagonal
        return BoundingBox.from_bounds([-h, -h, 0.0, h, h, self.height])

    @property
    def volume(self) -> float:
        return 0.5 * self.diagonal ** 2 * self.height

    @property
    def area(self) -> float:
        return 0.5 * self.diagonal ** 2

    def describe(self) -> str:
        return f"Tetragonal prism[diagonal={_um(self.diagonal)}, height={_um(self.height)}]"


@dataclass(frozen=True)
class TriangularPrism(SampleShape):
    """Right-angled ridge lying along y with its edge towards the beam."""

    height: float
    length: float
    name = "triangular prism"

    def __post_init__(self):
        _positive("Height", self.height)
        _positive("Length", self.length)

    def solid(self) -> Solid:
        s = 1.0 / math.sqrt(2.0)
        origin = (0.0, 0.0, 0.0)
        return MultiPlaneSolid([
            Plane((0.0, 0.0, 1.0), (0.0, 0.0, self.height)),
            Plane((s, 0.0, -s), origin),
            Plane((-s, 0.0, -s), origin),
            Plane((0.0, 1.0, 0.0), (0.0, 0.5 * self.length, 0.0)),
            Plane((0.0, -1.0, 0.0), (0.0, -0.5 * self.length, 0.0)),
        ])

    def bounding_box(self) -> BoundingBox:
        # The 45° faces reach x = ±height at the base
        return BoundingBox.from_bounds(
            [-self.height, -0.5 * self.length, 0.0, self.height, 0.5 * self.length, self.height]
        )

    @property
    def volume(self) -> float:
        return self.height ** 2 * self.length

    @property
    def area(self) -> float:
        return 2.0 * self.height * self.length

    def describe(self) -> str:
        return f"Triangular prism[height={_um(self.height)}]"


@dataclass(frozen=True)
class SquarePyramid(SampleShape):
    """Pyramid with its apex towards the beam and 45° faces."""

    base: float
    name = "square pyramid"

    def __post_init__(self):
        _positive("Base length", self.base)

    @property
    def height(self) -> float:
        return 0.5 * self.base

    def solid(self) -> Solid:
        s = 1.0 / math.sqrt(2.0)
        origin = (0.0, 0.0, 0.0)
        planes = [Plane(n, origin) for n in ((s, 0.0, -s), (0.0, s, -s), (-s, 0.0, -s), (0.0, -s, -s))]
        planes.append(Plane((0.0, 0.0, 1.0), (0.0, 0.0, self.height)))
        return MultiPlaneSolid(planes)

    def bounding_box(self) -> BoundingBox:
        h = 0.5 * self.base
        return BoundingBox.from_bounds([-h, -h, 0.0, h, h, h])

    @property
    def volume(self) -> float:
        return self.base ** 2 * self.height / 3.0

    @property
    def area(self) -> float:
        return self.base ** 2

    def describe(self) -> str:
        return f"Square pyramid[height={_um(self.height)}]"


@dataclass(frozen=True)
class Cylinder(SampleShape):
    """Upright cylinder with a flat end facing the beam."""

    radius: float
    height: float
    name = "cylinder"

    def __post_init__(self):
        _positive("Radius", self.radius)
        _positive("Height", self.height)

    def solid(self) -> Solid:
        return CylinderSolid((0.0, 0.0, 0.0), (0.0, 0.0, self.height), self.radius)

    def bounding_box(self) -> BoundingBox:
        r = self.radius
        return BoundingBox.from_bounds([-r, -r, 0.0, r, r, self.height])

    @property
    def volume(self) -> float:
        return math.pi * self.radius ** 2 * self.height

    @property
    def area(self) -> float:
        return math.pi * self.radius ** 2

    def describe(self) -> str:
        return f"Cylinder[h={_um(self.height)}, r={_um(self.radius)}]"


@dataclass(frozen=True)
class Fiber(SampleShape):
    """Cylinder lying along y, touching the beam entry point with its side."""

    radius: float
    length: float
    name = "fiber"

    def __post_init__(self):
        _positive("Radius", self.radius)
        _positive("Length", self.length)

    def solid(self) -> Solid:
        r = self.radius
        return CylinderSolid((0.0, 0.5 * self.length, r), (0.0, -0.5 * self.length, r), r)

    def bounding_box(self) -> BoundingBox:
        r = self.radius
        return BoundingBox.from_bounds([-r, -0.5 * self.length, 0.0, r, 0.5 * self.length, 2.0 * r])

    @property
    def volume(self) -> float:
        return math.pi * self.radius ** 2 * self.length

    @property
    def area(self) -> float:
        return 2.0 * self.radius * self.length

    def describe(self) -> str:
        return f"Fiber[l={_um(self.length)}, r={_um(self.radius)}]"


@dataclass(frozen=True)
class Hemisphere(SampleShape):
    """Half sphere with its dome towards the beam."""

    radius: float
    name = "hemisphere"

    def __post_init__(self):
        _positive("Radius", self.radius)

    def solid(self) -> Solid:
        center = (0.0, 0.0, self.radius)
        return DifferenceSolid(SphereSolid(center, self.radius), MultiPlaneSolid.substrate(MINUS_Z, center))

    def bounding_box(self) -> BoundingBox:
        r = self.radius
        return BoundingBox.from_bounds([-r, -r, 0.0, r, r, r])

    @property
    def volume(self) -> float:
        return 2.0 / 3.0 * math.pi * self.radius ** 3

    @property
    def area(self) -> float:
        return math.pi * self.radius ** 2

    def describe(self) -> str:
        return f"Hemisphere[D={_um(2.0 * self.radius)}]"


@dataclass(frozen=True)
class Sphere(SampleShape):

    radius: float
    name = "sphere"

    def __post_init__(self):
        _positive("Radius", self.radius)

    def solid(self) -> Solid:
        return SphereSolid((0.0, 0.0, self.radius), self.radius)

    def bounding_box(self) -> BoundingBox:
        r = self.radius
        return BoundingBox.from_bounds([-r, -r, 0.0, r, r, 2.0 * r])

    @property
    def volume(self) -> float:
        return 4.0 / 3.0 * math.pi * self.radius ** 3

    @property
    def area(self) -> float:
        return math.pi * self.radius ** 2

    def describe(self) -> str:
        return f"Sphere[r={_um(self.radius)}]"


@dataclass(frozen=True, eq=False)
class MeshShape(SampleShape):
    """User-supplied closed triangle mesh (STL facet layout, metres).

    The mesh must already be expressed in the shape frame: the beam enters
    at the origin and the material lies at z >= 0.
    """

    mesh: np.ndarray
    label: str = "mesh"
    _solid: MeshSolid = field(init=False, repr=False)
    name = "mesh"

    def __post_init__(self):
        mesh = np.array(self.mesh, dtype=float)
        mesh.setflags(write=False)
        object.__setattr__(self, 'mesh', mesh)
        object.__setattr__(self, '_solid', MeshSolid(mesh))

    @classmethod
    def from_stl(cls, path: Union[str, Path], scale: float = 1.0, centred: bool = True) -> "MeshShape":
        """Load an STL file.

        Parameters
        ----------
        scale : float
            Multiplier converting file units into metres (1e-6 for µm files).
        centred : bool
            Shift the mesh so its bounding box is centred on the beam axis
            and its top face touches z = 0.
        """
        mesh = load_stl_mesh(path) * scale
        if centred:
            vertices = mesh[:, 1:4, :].reshape(-1, 3)
            lower = vertices.min(axis=0)
            upper = vertices.max(axis=0)
            shift = np.array([-(lower[0] + upper[0]) / 2.0, -(lower[1] + upper[1]) / 2.0, -lower[2]])
            mesh[:, 1:4, :] += shift
        return cls(mesh, label=Path(path).stem)

    def solid(self) -> Solid:
        return self._solid

    def bounding_box(self) -> BoundingBox:
        return self._solid.bounding_box

    @property
    def volume(self) -> float:
        g = self._solid.geometry
        v1 = g.vertices0 + g.edge1
        v2 = g.vertices0 + g.edge2
        return float(abs(np.einsum("ij,ij->i", g.vertices0, np.cross(v1, v2)).sum()) / 6.0)

    @property
    def area(self) -> float:
        # A closed surface covers its projection twice
        g = self._solid.geometry
        cross_z = np.cross(g.edge1, g.edge2)[:, 2]
        return float(np.abs(cross_z).sum() / 4.0)

    def describe(self) -> str:
        return f"Mesh[{self.label}, {self._solid.geometry.n_triangles} triangles]"
