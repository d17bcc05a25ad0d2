"""
STL reading and writing for mesh-defined specimens.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

# 50-byte binary facet record: normal, three vertices, attribute byte count
_BINARY_FACET = np.dtype([
    ('normal', '<f4', (3,)),
    ('vertices', '<f4', (3, 3)),
    ('attribute', '<u2'),
])


def _facet_normals(vertices: np.ndarray) -> np.ndarray:
    normals = np.cross(vertices[:, 1] - vertices[:, 0], vertices[:, 2] - vertices[:, 0])
    norms = np.linalg.norm(normals, axis=1, keepdims=True)
    fallback = np.array([0.0, 0.0, 1.0])
    return np.where(norms > 0, normals / np.where(norms > 0, norms, 1.0), fallback)


def load_stl_mesh(file_path: Union[str, Path]) -> np.ndarray:
    """Load a triangle mesh from an ASCII or binary STL file.

    Returns
    -------
    np.ndarray, shape (n_facets, 4, 3)
        Each facet is stored as [normal, v0, v1, v2] in file units.
    """
    file_path = os.fspath(file_path)
    if not os.path.isfile(file_path):
        raise FileNotFoundError(f"STL file '{file_path}' does not exist")

    file_size = os.path.getsize(file_path)
    with open(file_path, 'rb') as f:
        header = f.read(80)
        count_bytes = f.read(4)
    triangle_count = int.from_bytes(count_bytes, byteorder='little') if len(count_bytes) == 4 else 0
    is_binary = triangle_count > 0 and 84 + triangle_count * _BINARY_FACET.itemsize == file_size

    def _load_binary() -> Optional[np.ndarray]:
        records = np.fromfile(file_path, dtype=_BINARY_FACET, count=triangle_count, offset=84)
        if records.shape[0] != triangle_count:
            return None
        facets = np.empty((triangle_count, 4, 3))
        facets[:, 0, :] = records['normal']
        facets[:, 1:, :] = records['vertices']
        return facets

    def _load_ascii() -> Optional[np.ndarray]:
        vertices: List[List[float]] = []
        with open(file_path, 'r', encoding='utf-8', errors='ignore') as af:
            for line in af:
                tokens = line.split()
                if len(tokens) >= 4 and tokens[0].lower() == 'vertex':
                    vertices.append([float(tok) for tok in tokens[1:4]])
        if len(vertices) < 3:
            return None
        if len(vertices) % 3 != 0:
            raise ValueError(f"'{file_path}' lists {len(vertices)} vertices, not a whole number of facets")
        tri = np.asarray(vertices, dtype=float).reshape(-1, 3, 3)
        facets = np.empty((tri.shape[0], 4, 3))
        facets[:, 0, :] = _facet_normals(tri)
        facets[:, 1:, :] = tri
        return facets

    # Some exporters write binary files whose header starts with "solid"
    loaders = (_load_binary, _load_ascii) if is_binary else (_load_ascii,)
    if not is_binary and not header.lstrip().lower().startswith(b'solid'):
        raise ValueError(f"'{file_path}' is neither a valid binary nor an ASCII STL file")

    for loader in loaders:
        facets = loader()
        if facets is not None:
            return facets
    raise ValueError(f"No facets were found in '{file_path}' - the file may be corrupt")


def save_stl_mesh(mesh: np.ndarray, file_path: Union[str, Path], solid_name: str = "sample") -> Path:
    """Write facets of shape (n, 4, 3) or (n, 3, 3) as an ASCII STL file."""
    mesh = np.asarray(mesh, dtype=float)
    if mesh.ndim != 3 or mesh.shape[1] not in (3, 4) or mesh.shape[2] != 3:
        raise ValueError(f"Expected mesh of shape (n, 3, 3) or (n, 4, 3), got {mesh.shape}")
    tri = mesh[:, 1:, :] if mesh.shape[1] == 4 else mesh
    normals = _facet_normals(tri)

    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(f"solid {solid_name}\n")
        for normal, facet in zip(normals, tri):
            f.write(f"  facet normal {normal[0]:.9e} {normal[1]:.9e} {normal[2]:.9e}\n")
            f.write("    outer loop\n")
            for vertex in facet:
                f.write(f"      vertex {vertex[0]:.9e} {vertex[1]:.9e} {vertex[2]:.9e}\n")
            f.write("    endloop\n")
            f.write("  endfacet\n")
        f.write(f"endsolid {solid_name}\n")
    return path
