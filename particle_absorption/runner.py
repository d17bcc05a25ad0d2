"""
Particle Absorption Correction Runner Module

This module provides the main correction runner function that can be called
from scripts or imported directly.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Dict, Mapping, Optional

from . import config
from .core.constants import kev_to_joules, print_escape_path_stats, reset_escape_path_stats
from .core.correction import ParticleAbsorptionCorrection
from .core.data_classes import CorrectionResult, SpectrumGeometry
from .core.io_utils import export_correction_results_to_csv, export_sample_draws_to_csv
from .core.models import (
    ConstantMassAttenuation,
    ConstantRange,
    KanayaOkayamaRange,
    Material,
    TabulatedMassAttenuation,
    UniformGeneration,
    XRayTransition,
)
from .core.sample_shapes import (
    Bulk,
    Cylinder,
    Fiber,
    Hemisphere,
    MeshShape,
    RightRectangularPrism,
    SampleShape,
    Sphere,
    SquarePyramid,
    TetragonalPrism,
    ThinFilm,
    TriangularPrism,
)

SHAPE_NAMES = (
    "bulk", "film", "prism", "tetragonal", "triangular", "pyramid",
    "cylinder", "fiber", "hemisphere", "sphere", "mesh",
)


def build_sample_shape(
    name: str,
    size_um: float = config.DEFAULT_SIZE_UM,
    length_um: float = config.DEFAULT_LENGTH_UM,
    stl_path: Optional[Path] = None,
    stl_scale: float = config.UM_TO_M,
) -> SampleShape:
    """Create a catalog shape from its short name.

    ``size_um`` is the characteristic size (radius, height, diagonal, base
    or thickness); ``length_um`` the second dimension where a shape has one.
    """
    size = size_um * config.UM_TO_M
    length = length_um * config.UM_TO_M
    if name == "bulk":
        return Bulk()
    if name == "film":
        return ThinFilm(size)
    if name == "prism":
        return RightRectangularPrism(height=length, depth=size, width=size)
    if name == "tetragonal":
        return TetragonalPrism(diagonal=size, height=length)
    if name == "triangular":
        return TriangularPrism(height=size, length=length)
    if name == "pyramid":
        return SquarePyramid(size)
    if name == "cylinder":
        return Cylinder(radius=size, height=length)
    if name == "fiber":
        return Fiber(radius=size, length=length)
    if name == "hemisphere":
        return Hemisphere(size)
    if name == "sphere":
        return Sphere(size)
    if name == "mesh":
        if stl_path is None:
            raise ValueError("The mesh shape needs an STL file")
        return MeshShape.from_stl(stl_path, scale=stl_scale)
    raise ValueError(f"Unknown shape '{name}', expected one of {', '.join(SHAPE_NAMES)}")


def parse_composition(text: str) -> Dict[str, float]:
    """Parse ``"Fe:0.7,Ni:0.3"`` into a mass-fraction mapping."""
    fractions: Dict[str, float] = {}
    for item in text.split(","):
        item = item.strip()
        if not item:
            continue
        symbol, _, fraction = item.partition(":")
        fractions[symbol.strip()] = float(fraction) if fraction else 1.0
    if not fractions:
        raise ValueError(f"Empty composition '{text}'")
    return fractions


def run_correction(
    shape: Optional[SampleShape] = None,
    composition: Optional[Mapping[str, float]] = None,
    density: float = config.DEFAULT_DENSITY_KG_M3,
    transition: Optional[XRayTransition] = None,
    mac_cm2_per_g: Optional[float] = config.DEFAULT_MAC_CM2_PER_G,
    mac_tables: Optional[Mapping[str, str]] = None,
    range_um: Optional[float] = None,
    generation: str = "armstrong",
    beam_energy_kev: float = config.DEFAULT_BEAM_ENERGY_KEV,
    elevation_deg: float = config.DEFAULT_ELEVATION_DEG,
    azimuth_deg: float = config.DEFAULT_AZIMUTH_DEG,
    distance_mm: float = config.DEFAULT_DETECTOR_DISTANCE_MM,
    optimal_wd_mm: float = config.DEFAULT_OPTIMAL_WD_MM,
    n_draws: int = config.DEFAULT_N_DRAWS,
    seed: Optional[int] = None,
    n_workers: int = config.DEFAULT_N_WORKERS,
    time_limit: Optional[float] = None,
    output_dir: Optional[Path] = None,
    save_results: bool = True,
    export_draws: bool = False,
    progress: bool = True,
) -> CorrectionResult:
    """Run one absorption correction and optionally save the results.

    Parameters
    ----------
    shape : SampleShape, optional
        Specimen shape. Defaults to bulk.
    composition : mapping, optional
        Mass fractions by element symbol. Defaults to pure iron.
    mac_cm2_per_g : float, optional
        Fixed mass-attenuation coefficient. Ignored when ``mac_tables`` is given.
    mac_tables : mapping, optional
        Per-element attenuation table files ([keV; cm²/g] rows).
    range_um : float, optional
        Fixed electron range expressed as a depth in µm. Defaults to
        Kanaya-Okayama.
    generation : str
        ``"armstrong"`` for the Armstrong phi(rho z) curve or ``"uniform"``
        for constant generation over the excitation depth.
    output_dir : Path, optional
        Directory for output files. If None, uses the current working directory.

    Returns
    -------
    CorrectionResult
    """
    output_dir = Path.cwd() if output_dir is None else Path(output_dir)
    shape = Bulk() if shape is None else shape
    composition = dict(config.DEFAULT_COMPOSITION) if composition is None else dict(composition)
    if transition is None:
        transition = XRayTransition.from_kev(
            config.DEFAULT_TRANSITION_NAME,
            config.DEFAULT_TRANSITION_ENERGY_KEV,
            config.DEFAULT_EDGE_ENERGY_KEV,
        )

    material = Material.from_symbols(composition, density)
    geometry = SpectrumGeometry.from_angles(
        kev_to_joules(beam_energy_kev),
        elevation_deg=elevation_deg,
        azimuth_deg=azimuth_deg,
        distance_mm=distance_mm,
        optimal_wd_mm=optimal_wd_mm,
    )

    if range_um is not None:
        range_model = ConstantRange(range_um * config.UM_TO_M * density)
    else:
        range_model = KanayaOkayamaRange()

    if mac_tables:
        mass_absorption = TabulatedMassAttenuation.from_csv(mac_tables)
        print(f"[info] Loaded attenuation tables for {', '.join(mac_tables)}")
    elif mac_cm2_per_g is not None:
        mass_absorption = ConstantMassAttenuation.from_cm2_per_g(mac_cm2_per_g)
    else:
        raise ValueError("Either mac_cm2_per_g or mac_tables must be given")

    correction = ParticleAbsorptionCorrection(
        material,
        shape,
        geometry,
        range_model=range_model,
        mass_absorption=mass_absorption,
        n_draws=n_draws,
        safety_factor=config.DEPTH_SAFETY_FACTOR,
        batch_size=config.DEFAULT_BATCH_SIZE,
    )

    if generation == "armstrong":
        depth_function = correction.armstrong_depth_function(transition)
    elif generation == "uniform":
        depth_function = UniformGeneration(correction.box.depth * density)
    else:
        raise ValueError(f"Unknown generation model '{generation}'")

    print("\n" + "="*70)
    print("PARTICLE ABSORPTION CORRECTION")
    print("="*70)
    print(f"Specimen: {correction.describe()}")
    print(f"Detector position: {geometry.detector_position} m")
    print(f"Sample position: {geometry.sample_position} m")
    print(f"Sampling box: {correction.box.lower} -> {correction.box.upper} m")
    print(f"Line: {transition.name} ({transition.energy_kev:.3f} keV), generation model: {generation}")
    print("="*70 + "\n")

    print(f"[info] Starting integration with {n_draws:,} draws on {n_workers} worker(s)...")
    reset_escape_path_stats()
    result = correction.compute_result(
        transition,
        depth_function,
        seed=seed,
        n_workers=n_workers,
        time_limit=time_limit,
        progress=progress,
    )

    if result.n_draws < n_draws:
        print(f"[warning] Time limit reached after {result.n_draws:,} of {n_draws:,} draws")
    print(f"[info] Accepted {result.n_accepted:,} draws ({100.0 * result.acceptance:.2f}%)")
    print(f"[info] Absorption correction = {result.factor:.6f} ± {result.standard_error:.2e}")
    if not math.isfinite(result.standard_error):
        print("[warning] Too few accepted draws to estimate the statistical error")
    print_escape_path_stats()

    if save_results:
        data_dir = output_dir / config.DATA_OUTPUT_DIR
        export_correction_results_to_csv([result], filename=str(data_dir / config.CORRECTION_RESULTS_CSV))
        if export_draws:
            context = correction.attenuation_context(transition)
            draws = correction.sample_draws(
                config.DEFAULT_N_EXPORTED_DRAWS, context=context, depth_function=depth_function, seed=seed
            )
            export_sample_draws_to_csv(draws, filename=str(data_dir / config.SAMPLE_DRAWS_CSV))

    return result


def main(argv=None):
    """Command-line entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Compute the Monte Carlo absorption correction for a particle")
    parser.add_argument("--shape", choices=SHAPE_NAMES, default=config.DEFAULT_SHAPE,
                        help="Specimen shape")
    parser.add_argument("--size", type=float, default=config.DEFAULT_SIZE_UM,
                        help="Characteristic size in µm (radius, height, diagonal, base or thickness)")
    parser.add_argument("--length", type=float, default=config.DEFAULT_LENGTH_UM,
                        help="Second dimension in µm (prism/cylinder height, fiber/ridge length)")
    parser.add_argument("--stl", type=Path, default=None,
                        help="STL file for --shape mesh")
    parser.add_argument("--stl-scale", type=float, default=config.UM_TO_M,
                        help="Metres per STL file unit (default: file in µm)")
    parser.add_argument("--composition", type=str, default=None,
                        help="Mass fractions, e.g. 'Fe:0.7,Ni:0.3'")
    parser.add_argument("--density", type=float, default=config.DEFAULT_DENSITY_KG_M3,
                        help="Density in kg/m^3")
    parser.add_argument("--line", type=str, default=config.DEFAULT_TRANSITION_NAME,
                        help="X-ray line name")
    parser.add_argument("--line-energy", type=float, default=config.DEFAULT_TRANSITION_ENERGY_KEV,
                        help="X-ray line energy in keV")
    parser.add_argument("--edge-energy", type=float, default=config.DEFAULT_EDGE_ENERGY_KEV,
                        help="Ionization edge energy in keV")
    parser.add_argument("--mac", type=float, default=config.DEFAULT_MAC_CM2_PER_G,
                        help="Mass-attenuation coefficient in cm^2/g")
    parser.add_argument("--mac-table", action="append", default=None, metavar="EL=FILE",
                        help="Per-element attenuation table, may be repeated")
    parser.add_argument("--range", type=float, default=None, dest="range_um",
                        help="Fixed electron range in µm (default: Kanaya-Okayama)")
    parser.add_argument("--generation", choices=("armstrong", "uniform"), default="armstrong",
                        help="Depth-generation model")
    parser.add_argument("--beam-energy", type=float, default=config.DEFAULT_BEAM_ENERGY_KEV,
                        help="Beam energy in keV")
    parser.add_argument("--elevation", type=float, default=config.DEFAULT_ELEVATION_DEG,
                        help="Detector elevation in degrees")
    parser.add_argument("--azimuth", type=float, default=config.DEFAULT_AZIMUTH_DEG,
                        help="Detector azimuth in degrees")
    parser.add_argument("--distance", type=float, default=config.DEFAULT_DETECTOR_DISTANCE_MM,
                        help="Detector distance in mm")
    parser.add_argument("-n", "--draws", type=int, default=config.DEFAULT_N_DRAWS,
                        help="Number of Monte Carlo draws")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed")
    parser.add_argument("--workers", type=int, default=config.DEFAULT_N_WORKERS,
                        help="Number of worker threads")
    parser.add_argument("--time-limit", type=float, default=None,
                        help="Stop drawing after this many seconds")
    parser.add_argument("--no-save", action="store_true",
                        help="Don't save results to CSV")
    parser.add_argument("--export-draws", action="store_true",
                        help="Also export individual sample draws")
    parser.add_argument("--no-progress", action="store_true",
                        help="Hide the progress bar")
    parser.add_argument("--output-dir", type=Path, default=None,
                        help="Output directory for results")

    args = parser.parse_args(argv)

    mac_tables = None
    if args.mac_table:
        mac_tables = {}
        for item in args.mac_table:
            symbol, sep, path = item.partition("=")
            if not sep:
                parser.error(f"--mac-table expects EL=FILE, got '{item}'")
            mac_tables[symbol.strip()] = path.strip()

    shape = build_sample_shape(args.shape, args.size, args.length, args.stl, args.stl_scale)
    composition = parse_composition(args.composition) if args.composition else None
    transition = XRayTransition.from_kev(args.line, args.line_energy, args.edge_energy)

    run_correction(
        shape=shape,
        composition=composition,
        density=args.density,
        transition=transition,
        mac_cm2_per_g=args.mac,
        mac_tables=mac_tables,
        range_um=args.range_um,
        generation=args.generation,
        beam_energy_kev=args.beam_energy,
        elevation_deg=args.elevation,
        azimuth_deg=args.azimuth,
        distance_mm=args.distance,
        n_draws=args.draws,
        seed=args.seed,
        n_workers=args.workers,
        time_limit=args.time_limit,
        output_dir=args.output_dir,
        save_results=not args.no_save,
        export_draws=args.export_draws,
        progress=not args.no_progress,
    )


if __name__ == "__main__":
    main()
