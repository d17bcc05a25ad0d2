"""
Testing subpackage for the particle absorption correction.

This subpackage provides tools for testing and debugging the correction:
- Simple analytic meshes for checking the mesh-based specimen path
- Closed-form reference values for flat specimens
- Validation functions

Example usage:
    from particle_absorption.testing import create_simple_box, run_quick_test

    # Create a 1 µm cube whose top face is the sample surface
    box_mesh = create_simple_box()

    # Run all checks
    success = run_quick_test()
"""

from .simple_geometry import (
    create_simple_sphere,
    create_simple_box,
    print_mesh_info,
)

from .validation import (
    flat_bulk_transmission,
    validate_mesh,
    compare_mesh_with_block,
    validate_bulk_correction,
    validate_geometry_module,
    run_quick_test,
)

__all__ = [
    # Simple geometry
    "create_simple_sphere",
    "create_simple_box",
    "print_mesh_info",
    # Validation
    "flat_bulk_transmission",
    "validate_mesh",
    "compare_mesh_with_block",
    "validate_bulk_correction",
    "validate_geometry_module",
    "run_quick_test",
]
