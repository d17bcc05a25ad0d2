"""
Data export utilities for absorption-correction results.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, List, Mapping, Union

from .data_classes import CorrectionResult, SampleDraw


def export_correction_results_to_csv(
    results: Union[Mapping[str, CorrectionResult], Iterable[CorrectionResult]],
    filename: str = "absorption_corrections.csv",
):
    """Export correction results to a CSV file.

    Parameters
    ----------
    results : mapping or iterable of CorrectionResult
        Results keyed by transition name, or a plain sequence.
    filename : str
        Output CSV filename.
    """
    if isinstance(results, Mapping):
        rows: List[CorrectionResult] = list(results.values())
    else:
        rows = list(results)
    if not rows:
        print("[warning] No correction results to export.")
        return

    output_path = Path(filename)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    headers = [
        'transition',
        'correction_factor',
        'standard_error',
        'weighted_generation_sum',
        'raw_generation_sum',
        'n_draws',
        'n_accepted',
        'acceptance',
    ]

    with open(output_path, 'w', newline='', encoding='utf-8') as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(headers)
        for result in rows:
            writer.writerow([
                result.transition or '',
                f"{result.factor:.8f}",
                f"{result.standard_error:.3e}",
                f"{result.weighted_sum:.8e}",
                f"{result.raw_sum:.8e}",
                result.n_draws,
                result.n_accepted,
                f"{result.acceptance:.6f}",
            ])

    print(f"[info] Exported {len(rows)} correction result(s) to {output_path}")


def export_sample_draws_to_csv(draws: Iterable[SampleDraw], filename: str = "sample_draws.csv"):
    """Export individual Monte Carlo draws (positions in metres) to CSV."""
    draws = list(draws)
    if not draws:
        print("[warning] No sample draws to export.")
        return

    output_path = Path(filename)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', newline='', encoding='utf-8') as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(['draw_id', 'x_m', 'y_m', 'z_m', 'inside', 'weighted_generation', 'raw_generation'])
        for idx, draw in enumerate(draws, start=1):
            writer.writerow([
                idx,
                f"{draw.point[0]:.9e}",
                f"{draw.point[1]:.9e}",
                f"{draw.point[2]:.9e}",
                int(draw.inside),
                '' if draw.weighted_generation is None else f"{draw.weighted_generation:.8e}",
                '' if draw.raw_generation is None else f"{draw.raw_generation:.8e}",
            ])

    print(f"[info] Exported {len(draws)} sample draw(s) to {output_path}")
