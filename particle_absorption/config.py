"""
Configuration settings for the particle absorption correction.

This module collects the defaults used by the command-line runner. Library
callers pass their own values as keyword arguments; nothing here is read by
the core routines except through the runner.
"""

from __future__ import annotations

from .core.constants import DEFAULT_N_DRAWS as _CORE_DEFAULT_N_DRAWS
from .core.constants import DEPTH_SAFETY_FACTOR as _CORE_DEPTH_SAFETY_FACTOR

# =============================================================================
# Output Files (输出文件)
# =============================================================================

# Output directory (用户工作目录)
DATA_OUTPUT_DIR = "Data"

# Output file names
CORRECTION_RESULTS_CSV = "absorption_corrections.csv"
SAMPLE_DRAWS_CSV = "sample_draws.csv"

# Number of individual draws written when sample export is requested
DEFAULT_N_EXPORTED_DRAWS = 2000

# =============================================================================
# Monte Carlo Parameters
# =============================================================================

# Draw budget per X-ray line (draws, not accepted samples)
DEFAULT_N_DRAWS = _CORE_DEFAULT_N_DRAWS

# Points evaluated per vectorised batch
DEFAULT_BATCH_SIZE = 16384

# Worker threads
DEFAULT_N_WORKERS = 1

# Sampling depth as a multiple of the electron range
DEPTH_SAFETY_FACTOR = _CORE_DEPTH_SAFETY_FACTOR

# =============================================================================
# Instrument Geometry
# =============================================================================

# Beam energy (keV)
DEFAULT_BEAM_ENERGY_KEV = 20.0

# Detector elevation above the plane normal to the beam (degrees)
DEFAULT_ELEVATION_DEG = 40.0

# Detector azimuth about the beam axis (degrees)
DEFAULT_AZIMUTH_DEG = 0.0

# Sample-to-detector distance (mm)
DEFAULT_DETECTOR_DISTANCE_MM = 60.0

# Optimal working distance (mm)
DEFAULT_OPTIMAL_WD_MM = 20.0

# =============================================================================
# Specimen Defaults
# =============================================================================

DEFAULT_SHAPE = "bulk"

# Characteristic particle size (µm): radius, height, diagonal, base or thickness
DEFAULT_SIZE_UM = 1.0

# Second dimension (µm): prism length, cylinder height, fiber length
DEFAULT_LENGTH_UM = 10.0

# Pure iron
DEFAULT_COMPOSITION = {"Fe": 1.0}
DEFAULT_DENSITY_KG_M3 = 7874.0

# Fe Kα
DEFAULT_TRANSITION_NAME = "Fe K-L3"
DEFAULT_TRANSITION_ENERGY_KEV = 6.404
DEFAULT_EDGE_ENERGY_KEV = 7.112

# Fe μ/ρ at Fe Kα (cm²/g)
DEFAULT_MAC_CM2_PER_G = 71.4

# =============================================================================
# Unit Conversions
# =============================================================================

UM_TO_M = 1.0e-6
