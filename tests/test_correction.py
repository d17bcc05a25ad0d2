"""
吸收校正驱动的单元测试
"""

import math

import numpy as np
import pytest

from particle_absorption.core import (
    Bulk,
    ConfigurationError,
    ConstantMassAttenuation,
    ConstantRange,
    CorrectionResult,
    DegenerateResult,
    KanayaOkayamaRange,
    Material,
    MeshShape,
    ParticleAbsorptionCorrection,
    PreconditionViolation,
    RightRectangularPrism,
    SpectrumGeometry,
    Sphere,
    ThinFilm,
    UniformGeneration,
    XRayTransition,
    depth_limit,
    setup_particle_geometry,
)
from particle_absorption.core.constants import kev_to_joules
from particle_absorption.testing import create_simple_box, flat_bulk_transmission

DENSITY = 5000.0
DEPTH = 1.0e-6
UM = 1.0e-6
MATERIAL = Material.pure("Fe", DENSITY)
LINE = XRayTransition.from_kev("Fe K-L3", 6.404, 7.112)
BEAM = kev_to_joules(20.0)


def _geometry(elevation_deg=40.0, azimuth_deg=0.0, distance_mm=60.0):
    return SpectrumGeometry.from_angles(BEAM, elevation_deg=elevation_deg, azimuth_deg=azimuth_deg,
                                        distance_mm=distance_mm)


def _correction(shape=None, geometry=None, mac=500.0, depth=DEPTH, n_draws=20000):
    return ParticleAbsorptionCorrection(
        MATERIAL,
        Bulk() if shape is None else shape,
        _geometry() if geometry is None else geometry,
        range_model=ConstantRange.from_depth(depth, DENSITY, safety_factor=1.5),
        mass_absorption=ConstantMassAttenuation.from_cm2_per_g(mac),
        n_draws=n_draws,
    )


class TestSpectrumGeometry:
    """测试探测器几何"""

    def test_take_off_angle(self):
        """测试出射角等于探测器仰角"""
        assert math.degrees(_geometry(40.0).take_off_angle) == pytest.approx(40.0)
        assert math.degrees(_geometry(90.0).take_off_angle) == pytest.approx(90.0)

    def test_detector_direction(self):
        """测试方位角为零时探测器位于 +x 一侧且在样品上方"""
        geometry = _geometry(40.0)
        axis = geometry.detector_axis
        assert axis[0] > 0.0
        assert axis[1] == pytest.approx(0.0, abs=1e-15)
        assert axis[2] < 0.0
        assert np.linalg.norm(geometry.detector_position - geometry.sample_position) == pytest.approx(0.06)

    def test_azimuth(self):
        """测试方位角旋转探测器"""
        axis = _geometry(40.0, azimuth_deg=90.0).detector_axis
        assert axis[0] == pytest.approx(0.0, abs=1e-12)
        assert axis[1] > 0.0


class TestGeometrySetup:
    """测试几何设置"""

    def test_depth_limit(self):
        limit = depth_limit(MATERIAL, BEAM, ConstantRange.from_depth(4 * UM, DENSITY, 1.5), 1.5)
        assert limit == pytest.approx(4 * UM)

    def test_depth_limit_rejects_bad_range(self):
        """测试射程非正时报错"""
        with pytest.raises(PreconditionViolation):
            depth_limit(MATERIAL, BEAM, lambda material, energy: 0.0)
        with pytest.raises(PreconditionViolation):
            depth_limit(MATERIAL, BEAM, lambda material, energy: float("nan"))

    def test_box_clipped_to_depth_limit(self):
        """测试采样盒深度被截断到可激发深度"""
        prism = RightRectangularPrism(height=10 * UM, depth=2 * UM, width=2 * UM)
        correction = _correction(shape=prism, depth=4 * UM)
        assert correction.box.depth == pytest.approx(4 * UM, rel=1e-6)
        assert correction.surface_z == pytest.approx(0.02)

    def test_shallow_shape_not_clipped(self):
        """测试浅于截断深度的形状保持原深度"""
        correction = _correction(shape=Sphere(0.5 * UM), depth=4 * UM)
        assert correction.box.depth == pytest.approx(1 * UM, rel=1e-6)

    def test_rotated_towards_detector(self):
        """测试形状绕束流轴转向探测器"""
        geometry = _geometry(40.0, azimuth_deg=90.0)
        prism = RightRectangularPrism(height=1 * UM, depth=4 * UM, width=1 * UM)
        placed, box = setup_particle_geometry(prism, geometry, MATERIAL, ConstantRange(1.0))
        # 长边从 x 方向转到 y 方向
        assert box.extent[1] == pytest.approx(4 * UM, rel=1e-6)
        assert box.extent[0] == pytest.approx(1 * UM, rel=1e-6)
        sample = geometry.sample_position
        assert placed.contains(sample + np.array([0.0, 1.9 * UM, 0.5 * UM]))
        assert not placed.contains(sample + np.array([1.9 * UM, 0.0, 0.5 * UM]))

    def test_misoriented_film(self):
        """测试材料位于表面上方的薄膜"""
        with pytest.raises(ConfigurationError):
            _correction(shape=ThinFilm(UM, normal=(0.0, 0.0, 1.0)))

    def test_offset_mesh(self):
        """测试未与入射点对齐的网格"""
        shape = MeshShape(create_simple_box(center=(0.0, 0.0, 2 * UM), size=(UM, UM, UM)))
        with pytest.raises(ConfigurationError):
            _correction(shape=shape)

    def test_invalid_arguments(self):
        with pytest.raises(PreconditionViolation):
            ParticleAbsorptionCorrection(Material.pure("Fe", 0.0), Bulk(), _geometry())
        with pytest.raises(ValueError):
            _correction(n_draws=0)

    def test_default_range_model(self):
        correction = ParticleAbsorptionCorrection(MATERIAL, Bulk(), _geometry())
        assert isinstance(correction.range_model, KanayaOkayamaRange)
        with pytest.raises(ValueError):
            correction.attenuation_context(LINE)


class TestBulkCorrection:
    """测试平面块体与解析解的比较"""

    def test_normal_take_off(self):
        """测试垂直出射"""
        geometry = _geometry(90.0, distance_mm=500.0)
        result = _correction(geometry=geometry).compute_result(LINE, UniformGeneration(), seed=2024)
        expected = flat_bulk_transmission(500.0, DENSITY, DEPTH, math.pi / 2)
        assert expected == pytest.approx(0.8848, abs=1e-4)
        assert result.factor == pytest.approx(expected, abs=0.005)
        assert result.n_draws == 20000
        # 块体中所有点都被接受
        assert result.n_accepted == 20000
        assert 0.0 < result.standard_error < 0.005

    def test_inclined_take_off(self):
        """测试 40° 出射角"""
        geometry = _geometry(40.0)
        result = _correction(geometry=geometry).compute_result(LINE, UniformGeneration(), seed=7)
        expected = flat_bulk_transmission(500.0, DENSITY, DEPTH, geometry.take_off_angle)
        assert result.factor == pytest.approx(expected, abs=0.005)

    def test_azimuth_does_not_matter(self):
        """测试块体结果与方位角无关"""
        first = _correction(geometry=_geometry(40.0, azimuth_deg=0.0))
        second = _correction(geometry=_geometry(40.0, azimuth_deg=135.0))
        a = first.absorption_correction(LINE, UniformGeneration(), seed=3)
        b = second.absorption_correction(LINE, UniformGeneration(), seed=3)
        assert a == pytest.approx(b, abs=0.005)


class TestCorrectionBehaviour:
    """测试校正因子的一般性质"""

    def test_zero_mac_is_exactly_one(self):
        """测试无吸收时因子恰为 1"""
        correction = _correction(shape=Sphere(UM), mac=0.0)
        result = correction.compute_result(LINE, seed=1, n_draws=5000)
        assert result.factor == 1.0

    def test_monotonic_in_mac(self):
        """测试吸收越强因子越小"""
        correction = _correction(shape=Sphere(UM))
        factors = [
            correction.integrate_context(correction.context_for_mac(mac), UniformGeneration(), seed=11).factor
            for mac in (10.0, 100.0, 1000.0)
        ]
        assert 1.0 > factors[0] > factors[1] > factors[2] > 0.0

    def test_negative_mac_rejected(self):
        correction = _correction()
        with pytest.raises(PreconditionViolation):
            correction.context_for_mac(-1.0)
        with pytest.raises(PreconditionViolation):
            correction.context_for_mac(float("nan"))

    def test_zero_generation_is_degenerate(self):
        """测试产生量全为零"""
        correction = _correction()
        with pytest.raises(DegenerateResult):
            correction.compute_result(LINE, lambda rho_z: np.zeros_like(rho_z), seed=0, n_draws=1000)

    def test_time_limit_zero_is_degenerate(self):
        """测试时间限制为零时没有样本"""
        with pytest.raises(DegenerateResult):
            _correction().compute_result(LINE, UniformGeneration(), seed=0, time_limit=0.0)

    def test_seed_reproducible(self):
        """测试相同种子结果相同"""
        correction = _correction(shape=Sphere(UM), n_draws=5000)
        a = correction.compute_result(LINE, seed=99)
        b = correction.compute_result(LINE, seed=99)
        assert a.factor == b.factor
        assert a.n_accepted == b.n_accepted

    def test_workers_agree(self):
        """测试多线程与单线程结果在统计误差内一致"""
        correction = _correction(shape=Sphere(UM))
        single = correction.compute_result(LINE, seed=4)
        threaded = correction.compute_result(LINE, seed=4, n_workers=3)
        assert threaded.n_draws == single.n_draws
        assert threaded.factor == pytest.approx(single.factor, abs=0.02)

    def test_sphere_acceptance(self):
        """测试球形样品的接受率接近 π/6"""
        result = _correction(shape=Sphere(UM), depth=4 * UM).compute_result(LINE, seed=5)
        assert result.acceptance == pytest.approx(math.pi / 6.0, abs=0.02)
        assert 0.0 < result.factor < 1.0
        assert float(result) == result.factor

    def test_armstrong_default(self):
        """测试默认使用 Armstrong 深度分布"""
        correction = ParticleAbsorptionCorrection(
            Material.pure("Fe", 7874.0), Bulk(), _geometry(),
            mass_absorption=ConstantMassAttenuation.from_cm2_per_g(71.4), n_draws=5000,
        )
        result = correction.compute_result(LINE, seed=8)
        assert isinstance(result, CorrectionResult)
        assert result.transition == "Fe K-L3"
        assert 0.5 < result.factor < 1.0


class TestMultipleTransitions:
    """测试多条谱线共享几何"""

    def test_correct_transitions(self):
        lines = [LINE, XRayTransition.from_kev("Fe K-M3", 7.058, 7.112)]
        results = _correction(n_draws=2000).correct_transitions(lines, lambda xrt: UniformGeneration(), seed=1)
        assert list(results) == ["Fe K-L3", "Fe K-M3"]
        assert all(r.n_draws == 2000 for r in results.values())

    def test_invalid_line_rejected_before_sampling(self):
        """测试任一谱线参数非法时不开始积分"""
        calls = []

        def mac_model(material, energy):
            calls.append(energy)
            return float("nan") if energy > kev_to_joules(7.0) else 50.0

        correction = ParticleAbsorptionCorrection(
            MATERIAL, Bulk(), _geometry(),
            range_model=ConstantRange.from_depth(DEPTH, DENSITY, 1.5),
            mass_absorption=mac_model, n_draws=1000,
        )

        def depth_function_for(xrt):
            raise AssertionError("integration should not start")

        lines = [LINE, XRayTransition.from_kev("Fe K-M3", 7.058, 7.112)]
        with pytest.raises(PreconditionViolation):
            correction.correct_transitions(lines, depth_function_for)
        assert len(calls) == 2


class TestSampleDraws:
    """测试单次抽样输出"""

    def test_sample_draws(self):
        correction = _correction(shape=Sphere(UM), depth=4 * UM)
        context = correction.context_for_mac(500.0)
        draws = correction.sample_draws(300, context=context, depth_function=UniformGeneration(), seed=1)
        assert len(draws) == 300
        accepted = [d for d in draws if d.inside]
        assert accepted
        assert all(d.weighted_generation <= d.raw_generation for d in accepted)
        assert all(d.raw_generation is None for d in draws if not d.inside)

    def test_describe(self):
        text = _correction(shape=Sphere(UM)).describe()
        assert "Sphere" in text
        assert "Fe" in text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
