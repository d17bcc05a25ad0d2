"""
Particle Absorption Correction Package
======================================

This package computes the Monte Carlo X-ray absorption correction for
particles and other finite specimens analysed by electron-probe
microanalysis: the fraction of characteristic X-rays generated inside the
specimen that survives the path to the detector.

Modules:
--------
- config: Configurable defaults for the command-line runner
- core.constants: Unit conversions and escape-path statistics
- core.errors: Exception and warning types
- core.data_classes: Data structures (BoundingBox, AttenuationContext, SpectrumGeometry, CorrectionResult)
- core.geometry: Rigid transforms, placed solids and ray-mesh intersection
- core.shapes: Solid primitives (planes, blocks, spheres, cylinders, differences, meshes)
- core.sample_shapes: Specimen shape catalog
- core.stl_utils: STL file loading and saving
- core.sampling: Random sampling and independent random streams
- core.integrator: Generic Monte Carlo integrator
- core.absorption: Absorption-weighted X-ray generation
- core.models: Materials, X-ray lines, electron range, mass attenuation and phi(rho z) curves
- core.correction: Geometry setup and correction driver
- core.io_utils: Data export utilities
- runner: Command-line runner
"""

from . import config
from .core import *
from .core import __all__ as _core_all
from .runner import run_correction, build_sample_shape, parse_composition, main

__version__ = "1.0.0"
__all__ = [
    # Config module
    "config",
    # Runner
    "run_correction",
    "build_sample_shape",
    "parse_composition",
    "main",
] + list(_core_all)
