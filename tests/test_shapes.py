"""
基本几何体的单元测试
"""

import math

import numpy as np
import pytest

from particle_absorption.core import (
    CylinderSolid,
    DifferenceSolid,
    MeshSolid,
    MultiPlaneSolid,
    Plane,
    SphereSolid,
)
from particle_absorption.testing import create_simple_box


def _pts(*rows):
    return np.array(rows, dtype=float)


class TestPlane:
    """测试半空间"""

    def test_contains_behind_normal(self):
        """测试法向量背面的点在内部"""
        plane = Plane((0, 0, -1), (0, 0, 0))
        np.testing.assert_array_equal(plane.contains(_pts([0, 0, 1], [0, 0, -1], [5, 5, 0])), [True, False, True])

    def test_crossing_parameter(self):
        """测试穿越参数"""
        plane = Plane((0, 0, -1), (0, 0, 0))
        t = plane.first_intersection(_pts([0, 0, 2], [0, 0, 2]), _pts([0, 0, -2], [1, 0, 2]))
        assert t[0] == pytest.approx(0.5)
        assert np.isinf(t[1])


class TestMultiPlaneSolid:
    """测试多平面凸体"""

    def setup_method(self):
        self.block = MultiPlaneSolid.block((1.0, 1.0, 1.0), (0.0, 0.0, 0.0))

    def test_block_contains(self):
        """测试长方体包含判断"""
        inside = self.block.contains(_pts([0, 0, 0], [0.49, -0.49, 0.2], [0.6, 0, 0]))
        np.testing.assert_array_equal(inside, [True, True, False])

    def test_exit_from_inside(self):
        """测试从内部射出"""
        t = self.block.first_intersection(_pts([0, 0, 0]), _pts([2, 0, 0]))
        assert t[0] == pytest.approx(0.25)

    def test_entry_from_outside(self):
        """测试从外部射入时只计入真实的入射面"""
        t = self.block.first_intersection(_pts([-2, 0, 0]), _pts([2, 0, 0]))
        assert t[0] == pytest.approx(0.375)

    def test_miss_from_outside(self):
        """测试从外部未命中"""
        t = self.block.first_intersection(_pts([-2, 3, 0]), _pts([2, 3, 0]))
        assert np.isinf(t[0])

    def test_rotated_block(self):
        """测试绕 z 轴旋转 45° 的长方体"""
        block = MultiPlaneSolid.block((1.0, 1.0, 1.0), (0.0, 0.0, 0.0), math.pi / 4)
        # 对角线方向延伸到 sqrt(2)/2
        np.testing.assert_array_equal(block.contains(_pts([0.7, 0, 0], [0.72, 0, 0])), [True, False])

    def test_film(self):
        """测试薄膜"""
        film = MultiPlaneSolid.film((0, 0, -1), (0, 0, 0), 2.0)
        np.testing.assert_array_equal(film.contains(_pts([0, 0, 1], [0, 0, 2.5], [0, 0, -0.1])), [True, False, False])

    def test_invalid_block(self):
        """测试非法尺寸"""
        with pytest.raises(ValueError):
            MultiPlaneSolid.block((1.0, 0.0, 1.0), (0, 0, 0))


class TestSphereSolid:
    """测试球体"""

    def test_entry_and_exit(self):
        """测试入射与出射参数"""
        sphere = SphereSolid((0, 0, 0), 1.0)
        t = sphere.first_intersection(_pts([-3, 0, 0], [0, 0, 0]), _pts([3, 0, 0], [0, 0, 4]))
        assert t[0] == pytest.approx(1.0 / 3.0)
        assert t[1] == pytest.approx(0.25)

    def test_invalid_radius(self):
        """测试非正半径"""
        with pytest.raises(ValueError):
            SphereSolid((0, 0, 0), -1.0)


class TestCylinderSolid:
    """测试圆柱体"""

    def setup_method(self):
        self.cylinder = CylinderSolid((0, 0, 0), (0, 0, 2), 1.0)

    def test_contains(self):
        """测试包含判断"""
        inside = self.cylinder.contains(_pts([0.5, 0, 1], [0, 0, 2.5], [1.5, 0, 1], [0, 0, -0.1]))
        np.testing.assert_array_equal(inside, [True, False, False, False])

    def test_mantle_exit(self):
        """测试从侧面射出"""
        t = self.cylinder.first_intersection(_pts([0, 0, 1]), _pts([4, 0, 1]))
        assert t[0] == pytest.approx(0.25)

    def test_cap_exit(self):
        """测试从端面射出"""
        t = self.cylinder.first_intersection(_pts([0, 0, 1]), _pts([0, 0, 5]))
        assert t[0] == pytest.approx(0.25)

    def test_length(self):
        assert self.cylinder.length == pytest.approx(2.0)

    def test_degenerate_cylinder(self):
        """测试退化圆柱体"""
        with pytest.raises(ValueError):
            CylinderSolid((0, 0, 0), (0, 0, 0), 1.0)


class TestDifferenceSolid:
    """测试差集几何体（半球）"""

    def setup_method(self):
        center = (0.0, 0.0, 1.0)
        self.hemisphere = DifferenceSolid(
            SphereSolid(center, 1.0), MultiPlaneSolid.substrate((0, 0, -1), center)
        )

    def test_contains(self):
        """测试只保留球的上半部分"""
        inside = self.hemisphere.contains(_pts([0, 0, 0.5], [0, 0, 1.5], [0, 0, -0.1]))
        np.testing.assert_array_equal(inside, [True, False, False])

    def test_exit_through_dome(self):
        """测试从球面射出"""
        t = self.hemisphere.first_intersection(_pts([0, 0, 0.5]), _pts([0, 0, -10]))
        assert t[0] == pytest.approx(1.0 / 21.0)

    def test_exit_through_cut(self):
        """测试从切平面射出"""
        t = self.hemisphere.first_intersection(_pts([0, 0, 0.5]), _pts([0, 0, 3.0]))
        assert t[0] == pytest.approx(0.2, abs=1e-9)

    def test_entry_from_inside_hole(self):
        """测试从被减去的区域出发，穿过切平面后进入"""
        t = self.hemisphere.first_intersection(_pts([0, 0, 1.5]), _pts([0, 0, -1.5]))
        # 切平面 z = 1 位于 1/6 处
        assert t[0] == pytest.approx(1.0 / 6.0, abs=1e-9)

    def test_miss(self):
        """测试完全错过"""
        t = self.hemisphere.first_intersection(_pts([5, 0, 0.5]), _pts([5, 0, -10]))
        assert np.isinf(t[0])


class TestMeshSolid:
    """测试网格实体"""

    def setup_method(self):
        self.mesh_solid = MeshSolid(create_simple_box(center=(0, 0, 0), size=(1, 1, 1)))
        self.block = MultiPlaneSolid.block((1.0, 1.0, 1.0), (0.0, 0.0, 0.0))

    def test_contains_matches_block(self):
        """测试网格包含判断与长方体一致"""
        rng = np.random.default_rng(11)
        points = rng.uniform(-1.0, 1.0, size=(400, 3))
        np.testing.assert_array_equal(self.mesh_solid.contains(points), self.block.contains(points))

    def test_exit_matches_block(self):
        """测试网格出射参数与长方体一致"""
        rng = np.random.default_rng(12)
        starts = rng.uniform(-0.45, 0.45, size=(200, 3))
        ends = starts + np.array([3.0, -1.0, 2.0])
        np.testing.assert_allclose(
            self.mesh_solid.first_intersection(starts, ends),
            self.block.first_intersection(starts, ends),
            rtol=1e-9,
        )

    def test_small_chunks(self):
        """测试分块计算结果不变"""
        chunked = MeshSolid(create_simple_box(center=(0, 0, 0), size=(1, 1, 1)), chunk_elements=24)
        starts = np.random.default_rng(13).uniform(-0.45, 0.45, size=(50, 3))
        ends = starts + np.array([0.0, 0.0, 5.0])
        np.testing.assert_allclose(
            chunked.first_intersection(starts, ends), self.mesh_solid.first_intersection(starts, ends)
        )

    def test_bounding_box(self):
        box = self.mesh_solid.bounding_box
        np.testing.assert_allclose(box.lower, [-0.5, -0.5, -0.5])
        np.testing.assert_allclose(box.upper, [0.5, 0.5, 0.5])

    def test_too_few_triangles(self):
        """测试三角形太少"""
        with pytest.raises(ValueError):
            MeshSolid(create_simple_box()[:3])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
