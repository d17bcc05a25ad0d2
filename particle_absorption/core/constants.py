"""
Physical constants, unit conversions and diagnostic counters.
"""

import threading

# Unit conversions (SI <-> CGS)
M_TO_CM = 1.0e2  # 1 m = 100 cm
KG_M3_TO_G_CM3 = 1.0e-3  # 1 kg/m³ = 10⁻³ g/cm³
M2_PER_KG_TO_CM2_PER_G = 10.0  # 1 m²/kg = 10 cm²/g
KG_M2_TO_G_CM2 = 0.1  # 1 kg/m² = 0.1 g/cm²
ELECTRON_VOLT_J = 1.602176634e-19  # J
KEV_TO_J = 1.0e3 * ELECTRON_VOLT_J
UM_TO_M = 1.0e-6
MM_TO_M = 1.0e-3

# Correction defaults
DEFAULT_N_DRAWS = 1_000_000
DEPTH_SAFETY_FACTOR = 1.5  # multiple of the electron range sampled below the surface
SURFACE_CHECK_EPSILON_M = 1.0e-9  # probe offset for the surface containment checks

# Debug flag
DEBUG = False

# Global statistics for escape-path degeneracies
ESCAPE_PATH_STATS = {
    'total_rays': 0,
    'zero_escape_paths': 0,
    'non_finite_intersections': 0,
}

_STATS_LOCK = threading.Lock()


def to_cm(length_m):
    """Convert a length (or array of lengths) from metres to centimetres."""
    return length_m * M_TO_CM


def to_g_per_cc(density_kg_m3):
    return density_kg_m3 * KG_M3_TO_G_CM3


def to_cm2_per_g(mac_si):
    """Convert a mass-attenuation coefficient from m²/kg to cm²/g."""
    return mac_si * M2_PER_KG_TO_CM2_PER_G


def from_cm2_per_g(mac_cgs):
    return mac_cgs / M2_PER_KG_TO_CM2_PER_G


def to_g_per_cm2(mass_depth_kg_m2):
    return mass_depth_kg_m2 * KG_M2_TO_G_CM2


def from_g_per_cm2(mass_depth_g_cm2):
    return mass_depth_g_cm2 / KG_M2_TO_G_CM2


def kev_to_joules(energy_kev):
    return energy_kev * KEV_TO_J


def joules_to_kev(energy_j):
    return energy_j / KEV_TO_J


def record_escape_path_stats(total_rays: int, zero_paths: int, non_finite: int):
    """Add the counts from one batch of escape-path evaluations."""
    with _STATS_LOCK:
        ESCAPE_PATH_STATS['total_rays'] += total_rays
        ESCAPE_PATH_STATS['zero_escape_paths'] += zero_paths
        ESCAPE_PATH_STATS['non_finite_intersections'] += non_finite


def reset_escape_path_stats():
    """Reset escape-path statistics counters."""
    with _STATS_LOCK:
        for key in ESCAPE_PATH_STATS:
            ESCAPE_PATH_STATS[key] = 0


def print_escape_path_stats():
    """Print statistics about degenerate escape paths.

    A high rate of zero-length escape paths usually means the ray-intersection
    query is hitting the sample boundary at its own start point (points lying
    on a face, or a mesh with gaps).
    """
    stats = ESCAPE_PATH_STATS
    total = stats['total_rays']

    if total == 0:
        print("No escape-path queries recorded.")
        return

    print("\n" + "="*60)
    print("ESCAPE PATH STATISTICS")
    print("="*60)
    print(f"Total escape rays:         {total:,}")
    print(f"Zero-length escape paths:  {stats['zero_escape_paths']:,} "
          f"({100*stats['zero_escape_paths']/total:.4f}%)")
    print(f"Non-finite intersections:  {stats['non_finite_intersections']:,} "
          f"({100*stats['non_finite_intersections']/total:.4f}%)")
    print("="*60)

    if stats['zero_escape_paths'] + stats['non_finite_intersections'] > 0.01 * total:
        print("WARNING: High degenerate escape-path rate (>1%)")
        print("   - Check the sample orientation against the detector")
        print("   - Check meshes for gaps or degenerate triangles")
    else:
        print("Escape-path geometry appears healthy")
    print()
