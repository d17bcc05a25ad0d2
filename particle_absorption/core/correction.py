"""
Particle absorption correction: geometry setup, integration and reduction.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np

from .absorption import AbsorptionWeightedSampler, DepthFunction, ratio_standard_error, with_ratio_moments
from .constants import DEBUG, DEFAULT_N_DRAWS, DEPTH_SAFETY_FACTOR, SURFACE_CHECK_EPSILON_M, joules_to_kev
from .data_classes import AttenuationContext, BoundingBox, CorrectionResult, SampleDraw, SpectrumGeometry
from .errors import ConfigurationError, DegenerateResult, PreconditionViolation
from .geometry import ORIGIN_3D, Z_AXIS, PlacedSolid, transform_bounding_box
from .integrator import DEFAULT_BATCH_SIZE, MonteCarloIntegrator
from .models import (
    ArmstrongPhiRhoZ,
    AttenuationModel,
    KanayaOkayamaRange,
    Material,
    RangeModel,
    XRayTransition,
    mac_cm2_per_g,
)
from .sample_shapes import SampleShape
from .sampling import resolve_generator, sample_uniform_in_box


def _evaluate_range(range_model: RangeModel, material: Material, beam_energy: float) -> float:
    compute = getattr(range_model, 'compute', range_model)
    mass_range = float(compute(material, beam_energy))
    if not math.isfinite(mass_range) or mass_range <= 0.0:
        raise PreconditionViolation(f"Electron range must be finite and positive, got {mass_range} kg/m²")
    return mass_range


def depth_limit(
    material: Material,
    beam_energy: float,
    range_model: RangeModel,
    safety_factor: float = DEPTH_SAFETY_FACTOR,
) -> float:
    """Deepest point below the surface (m) that the beam can excite."""
    if not material.density > 0.0:
        raise PreconditionViolation(f"Density must be positive, got {material.density} kg/m³")
    return safety_factor * _evaluate_range(range_model, material, beam_energy) / material.density


def setup_particle_geometry(
    shape: SampleShape,
    geometry: SpectrumGeometry,
    material: Material,
    range_model: RangeModel,
    safety_factor: float = DEPTH_SAFETY_FACTOR,
    epsilon: float = SURFACE_CHECK_EPSILON_M,
) -> Tuple[PlacedSolid, BoundingBox]:
    """Orient the shape towards the detector and build the sampling box.

    The shape is turned about the beam axis so its +x side faces the
    detector, then moved to the sample position. The native bounding box is
    clipped to the reachable depth before being carried along.

    Raises
    ------
    ConfigurationError
        If the placed solid does not start exactly at the sample position:
        a point ``epsilon`` past the surface along the beam must be inside
        and a point ``epsilon`` before it outside.
    """
    axis = geometry.detector_axis
    phi = math.atan2(axis[1], axis[0])
    sample = geometry.sample_position

    placed = PlacedSolid(shape.solid()).rotated(ORIGIN_3D, phi).translated(sample)

    if not placed.contains(sample + epsilon * Z_AXIS):
        raise ConfigurationError(
            f"{shape.describe()}: the point {epsilon:g} m past the sample surface is not inside the solid"
        )
    if placed.contains(sample - epsilon * Z_AXIS):
        raise ConfigurationError(
            f"{shape.describe()}: the point {epsilon:g} m before the sample surface is inside the solid"
        )

    limit = depth_limit(material, geometry.beam_energy, range_model, safety_factor)
    native = shape.bounding_box()
    clipped = native.clipped_depth(limit)
    box = transform_bounding_box(clipped, placed.transform)

    if DEBUG:
        print(f"[debug] detector azimuth {math.degrees(phi):.2f} deg, depth limit {limit:.4e} m")
        print(f"[debug] sampling box {box.lower} -> {box.upper}")
    return placed, box


class ParticleAbsorptionCorrection:
    """Monte Carlo absorption correction for one specimen, material and beam.

    Geometry and sampling box are built once in the constructor and reused
    for every X-ray line; only the attenuation context and the depth curve
    change between lines.

    Parameters
    ----------
    material : Material
        Composition and density (kg/m³).
    sample_shape : SampleShape
        Specimen shape in its own frame.
    geometry : SpectrumGeometry
        Beam energy, sample and detector positions.
    range_model : callable or model
        ``compute(material, beam_energy) -> kg/m²``.
    mass_absorption : callable or model, optional
        ``compute(material, photon_energy) -> m²/kg``. Needed for
        :meth:`attenuation_context`.
    n_draws : int
        Default draw budget.
    """

    def __init__(
        self,
        material: Material,
        sample_shape: SampleShape,
        geometry: SpectrumGeometry,
        range_model: Optional[RangeModel] = None,
        mass_absorption: Optional[AttenuationModel] = None,
        n_draws: int = DEFAULT_N_DRAWS,
        safety_factor: float = DEPTH_SAFETY_FACTOR,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if not material.density > 0.0 or not math.isfinite(material.density):
            raise PreconditionViolation(f"Density must be finite and positive, got {material.density} kg/m³")
        if n_draws < 1:
            raise ValueError(f"n_draws must be positive, got {n_draws}")
        self.material = material
        self.sample_shape = sample_shape
        self.geometry = geometry
        self.range_model = range_model if range_model is not None else KanayaOkayamaRange()
        self.mass_absorption = mass_absorption
        self.n_draws = int(n_draws)
        self.batch_size = int(batch_size)
        self.solid, self.box = setup_particle_geometry(
            sample_shape, geometry, material, self.range_model, safety_factor
        )

    @property
    def surface_z(self) -> float:
        return float(self.box.lower[2])

    def attenuation_context(self, transition: XRayTransition) -> AttenuationContext:
        """Attenuation inputs for one line; validated before any sampling."""
        if self.mass_absorption is None:
            raise ValueError("No mass-attenuation model configured")
        mac = mac_cm2_per_g(self.mass_absorption, self.material, transition.energy)
        return self.context_for_mac(mac)

    def context_for_mac(self, mac_cm2_per_g: float) -> AttenuationContext:
        return AttenuationContext(
            mac_cm2_per_g=mac_cm2_per_g,
            density=self.material.density,
            detector_position=self.geometry.detector_position,
            surface_z=self.surface_z,
        )

    def armstrong_depth_function(self, transition: XRayTransition) -> ArmstrongPhiRhoZ:
        return ArmstrongPhiRhoZ.from_parameters(self.material, self.geometry.beam_energy, transition.edge_energy)

    def integrate_context(
        self,
        context: AttenuationContext,
        depth_function: DepthFunction,
        n_draws: Optional[int] = None,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        n_workers: int = 1,
        time_limit: Optional[float] = None,
        progress: bool = False,
        transition_name: Optional[str] = None,
    ) -> CorrectionResult:
        """Integrate with an explicit attenuation context and reduce to the correction factor.

        Raises
        ------
        DegenerateResult
            If the raw generation summed over all accepted draws is zero.
        """
        n_draws = self.n_draws if n_draws is None else int(n_draws)
        sampler = AbsorptionWeightedSampler(self.solid, context, depth_function)

        def integrand(points: np.ndarray) -> np.ndarray:
            return with_ratio_moments(sampler(points))

        integrator = MonteCarloIntegrator(
            self.box.lower, self.box.upper, self.solid.contains, integrand, n_outputs=6,
            batch_size=self.batch_size,
        )
        sums = integrator.compute(
            n_draws, rng=rng, seed=seed, n_workers=n_workers, time_limit=time_limit, progress=progress
        )

        weighted_sum, raw_sum = float(sums[0]), float(sums[1])
        if raw_sum == 0.0:
            raise DegenerateResult(
                f"Raw generation summed to zero after {integrator.draws_completed} draws "
                f"({integrator.accepted} inside the sample)"
            )
        return CorrectionResult(
            factor=weighted_sum / raw_sum,
            weighted_sum=weighted_sum,
            raw_sum=raw_sum,
            n_draws=integrator.draws_completed,
            n_accepted=integrator.accepted,
            standard_error=ratio_standard_error(sums),
            transition=transition_name,
        )

    def compute_result(
        self,
        transition: XRayTransition,
        depth_function: Optional[DepthFunction] = None,
        **kwargs,
    ) -> CorrectionResult:
        """Correction for one line.

        ``depth_function`` defaults to the Armstrong curve for the line's
        edge. Keyword arguments are passed to :meth:`integrate_context`.
        """
        context = self.attenuation_context(transition)
        if depth_function is None:
            depth_function = self.armstrong_depth_function(transition)
        return self.integrate_context(context, depth_function, transition_name=transition.name, **kwargs)

    def absorption_correction(
        self,
        transition: XRayTransition,
        depth_function: Optional[DepthFunction] = None,
        **kwargs,
    ) -> float:
        return self.compute_result(transition, depth_function, **kwargs).factor

    def correct_transitions(
        self,
        transitions: Iterable[XRayTransition],
        depth_function_for: Optional[Callable[[XRayTransition], DepthFunction]] = None,
        **kwargs,
    ) -> Dict[str, CorrectionResult]:
        """Correct several lines against the same geometry and sampling box.

        Every line's attenuation context is validated before the first
        integration starts.
        """
        transitions = list(transitions)
        contexts = [self.attenuation_context(xrt) for xrt in transitions]
        results: Dict[str, CorrectionResult] = {}
        for xrt, context in zip(transitions, contexts):
            if depth_function_for is None:
                depth_function = self.armstrong_depth_function(xrt)
            else:
                depth_function = depth_function_for(xrt)
            results[xrt.name] = self.integrate_context(context, depth_function, transition_name=xrt.name, **kwargs)
        return results

    def sample_draws(
        self,
        n: int,
        context: Optional[AttenuationContext] = None,
        depth_function: Optional[DepthFunction] = None,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> List[SampleDraw]:
        """Individual trials for inspection; pairs are filled in for accepted points when a context is given."""
        generator = resolve_generator(rng, seed)
        points = sample_uniform_in_box(generator, self.box.lower, self.box.upper, int(n))
        inside = np.asarray(self.solid.contains(points), dtype=bool)
        pairs = None
        if context is not None and depth_function is not None and np.any(inside):
            sampler = AbsorptionWeightedSampler(self.solid, context, depth_function)
            pairs = sampler(points[inside])

        draws = []
        k = 0
        for point, accepted in zip(points, inside):
            draw = SampleDraw(point=point, inside=bool(accepted))
            if accepted and pairs is not None:
                draw.weighted_generation = float(pairs[k, 0])
                draw.raw_generation = float(pairs[k, 1])
                k += 1
            draws.append(draw)
        return draws

    def describe(self) -> str:
        return (
            f"{self.sample_shape.describe()} of {self.material.name} "
            f"({self.material.density:.0f} kg/m³) at {joules_to_kev(self.geometry.beam_energy):.1f} keV, "
            f"take-off {math.degrees(self.geometry.take_off_angle):.1f}°"
        )
