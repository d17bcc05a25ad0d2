"""
样品形状目录的单元测试
"""

import math

import numpy as np
import pytest

from particle_absorption.core import (
    Bulk,
    Cylinder,
    Fiber,
    Hemisphere,
    MeshShape,
    RightRectangularPrism,
    Sphere,
    SquarePyramid,
    TetragonalPrism,
    ThinFilm,
    TriangularPrism,
    save_stl_mesh,
)
from particle_absorption.testing import create_simple_box

UM = 1.0e-6
EPS = 1.0e-9

CATALOG = [
    Bulk(),
    ThinFilm(0.5 * UM),
    RightRectangularPrism(height=2 * UM, depth=1 * UM, width=1.5 * UM),
    TetragonalPrism(diagonal=2 * UM, height=3 * UM),
    TriangularPrism(height=1 * UM, length=5 * UM),
    SquarePyramid(2 * UM),
    Cylinder(radius=1 * UM, height=2 * UM),
    Fiber(radius=0.5 * UM, length=10 * UM),
    Hemisphere(1 * UM),
    Sphere(1 * UM),
    MeshShape(create_simple_box(center=(0.0, 0.0, 0.5 * UM), size=(UM, UM, UM))),
]


class TestEntryPoint:
    """测试每种形状的入射点都在原点"""

    @pytest.mark.parametrize("shape", CATALOG, ids=lambda s: s.name)
    def test_surface_at_origin(self, shape):
        """测试原点下方在内、上方在外"""
        solid = shape.solid()
        probes = np.array([[0.0, 0.0, EPS], [0.0, 0.0, -EPS]])
        np.testing.assert_array_equal(solid.contains(probes), [True, False])

    @pytest.mark.parametrize("shape", CATALOG, ids=lambda s: s.name)
    def test_bounding_box_starts_at_surface(self, shape):
        """测试包围盒从 z = 0 开始并包含入射点"""
        box = shape.bounding_box()
        assert box.lower[2] == pytest.approx(0.0, abs=1e-15)
        assert box.contains(np.array([0.0, 0.0, EPS]))[0]

    @pytest.mark.parametrize("shape", CATALOG[2:], ids=lambda s: s.name)
    def test_bounding_box_covers_solid(self, shape):
        """测试包围盒外没有属于几何体的点"""
        box = shape.bounding_box()
        rng = np.random.default_rng(5)
        points = box.lower - 0.5 * box.extent + 2.0 * box.extent * rng.random((4000, 3))
        inside = shape.solid().contains(points)
        assert np.all(box.contains(points[inside]))


class TestVolumes:
    """测试体积与投影面积"""

    def test_sphere(self):
        shape = Sphere(2 * UM)
        assert shape.volume == pytest.approx(4.0 / 3.0 * math.pi * (2 * UM) ** 3)
        assert shape.area == pytest.approx(math.pi * (2 * UM) ** 2)

    def test_hemisphere(self):
        assert Hemisphere(UM).volume == pytest.approx(2.0 / 3.0 * math.pi * UM ** 3)

    def test_square_pyramid(self):
        """测试四棱锥体积 b³/6"""
        shape = SquarePyramid(3 * UM)
        assert shape.height == pytest.approx(1.5 * UM)
        assert shape.volume == pytest.approx((3 * UM) ** 3 / 6.0)

    def test_triangular_prism(self):
        """测试三棱柱体积与投影面积"""
        shape = TriangularPrism(height=2 * UM, length=5 * UM)
        assert shape.volume == pytest.approx((2 * UM) ** 2 * 5 * UM)
        assert shape.area == pytest.approx(2 * (2 * UM) * 5 * UM)

    def test_tetragonal_prism(self):
        shape = TetragonalPrism(diagonal=2 * UM, height=3 * UM)
        assert shape.volume == pytest.approx(0.5 * (2 * UM) ** 2 * 3 * UM)

    def test_triangular_prism_volume_by_sampling(self):
        """测试三棱柱体积与蒙特卡罗估计一致"""
        shape = TriangularPrism(height=1 * UM, length=2 * UM)
        box = shape.bounding_box()
        rng = np.random.default_rng(9)
        points = box.lower + box.extent * rng.random((200000, 3))
        fraction = np.mean(shape.solid().contains(points))
        assert fraction * box.volume == pytest.approx(shape.volume, rel=0.02)

    def test_mesh_volume_and_area(self):
        """测试网格体积与投影面积"""
        shape = CATALOG[-1]
        assert shape.volume == pytest.approx(UM ** 3)
        assert shape.area == pytest.approx(UM ** 2)


class TestValidation:
    """测试参数校验与描述"""

    @pytest.mark.parametrize("factory", [
        lambda: Sphere(-UM),
        lambda: ThinFilm(0.0),
        lambda: Cylinder(radius=UM, height=0.0),
        lambda: Bulk(normal=(0.0, 0.0, 0.0)),
    ])
    def test_invalid_dimensions(self, factory):
        with pytest.raises(ValueError):
            factory()

    def test_normal_is_normalised(self):
        """测试表面法向量被归一化"""
        assert np.linalg.norm(Bulk(normal=(0.0, 0.0, -3.0)).normal) == pytest.approx(1.0)

    def test_describe(self):
        assert Bulk().describe() == "Bulk"
        assert "Thin film" in ThinFilm(UM).describe()
        assert "12 triangles" in CATALOG[-1].describe()

    def test_shapes_are_immutable(self):
        """测试形状不可修改"""
        shape = Sphere(UM)
        with pytest.raises(AttributeError):
            shape.radius = 2 * UM


class TestMeshShapeFromSTL:
    """测试从 STL 文件创建网格形状"""

    def test_centred_on_beam_axis(self, tmp_path):
        """测试加载后居中且顶面位于 z = 0"""
        mesh = create_simple_box(center=(5.0, -3.0, 7.0), size=(2.0, 2.0, 1.0))
        path = save_stl_mesh(mesh, tmp_path / "particle.stl")
        shape = MeshShape.from_stl(path, scale=UM)
        box = shape.bounding_box()
        np.testing.assert_allclose(box.lower, [-UM, -UM, 0.0], atol=1e-15)
        np.testing.assert_allclose(box.upper, [UM, UM, UM], atol=1e-15)
        assert shape.label == "particle"

    def test_not_centred(self, tmp_path):
        """测试不居中时保留原始坐标"""
        mesh = create_simple_box(center=(0.0, 0.0, 3.0), size=(1.0, 1.0, 1.0))
        path = save_stl_mesh(mesh, tmp_path / "offset.stl")
        shape = MeshShape.from_stl(path, scale=UM, centred=False)
        assert shape.bounding_box().lower[2] == pytest.approx(2.5 * UM)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
