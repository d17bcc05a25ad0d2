"""
Materials, X-ray lines and the physical models the correction consumes.

The correction itself only needs four callables: an electron range, a
mass-attenuation coefficient, a depth-generation curve and the geometry.
The classes here are reference implementations of the first three.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .constants import from_cm2_per_g, from_g_per_cm2, joules_to_kev, kev_to_joules, to_cm2_per_g, to_g_per_cm2


# =============================================================================
# Elements and materials
# =============================================================================

@dataclass(frozen=True)
class Element:
    symbol: str
    atomic_number: int
    atomic_weight: float  # g/mol


# Z, standard atomic weight (g/mol)
_ELEMENT_DATA = {
    'H': (1, 1.008), 'He': (2, 4.0026), 'Li': (3, 6.94), 'Be': (4, 9.0122), 'B': (5, 10.81),
    'C': (6, 12.011), 'N': (7, 14.007), 'O': (8, 15.999), 'F': (9, 18.998), 'Ne': (10, 20.180),
    'Na': (11, 22.990), 'Mg': (12, 24.305), 'Al': (13, 26.982), 'Si': (14, 28.085), 'P': (15, 30.974),
    'S': (16, 32.06), 'Cl': (17, 35.45), 'Ar': (18, 39.948), 'K': (19, 39.098), 'Ca': (20, 40.078),
    'Sc': (21, 44.956), 'Ti': (22, 47.867), 'V': (23, 50.942), 'Cr': (24, 51.996), 'Mn': (25, 54.938),
    'Fe': (26, 55.845), 'Co': (27, 58.933), 'Ni': (28, 58.693), 'Cu': (29, 63.546), 'Zn': (30, 65.38),
    'Ga': (31, 69.723), 'Ge': (32, 72.630), 'As': (33, 74.922), 'Se': (34, 78.971), 'Zr': (40, 91.224),
    'Nb': (41, 92.906), 'Mo': (42, 95.95), 'Ag': (47, 107.87), 'Cd': (48, 112.41), 'In': (49, 114.82),
    'Sn': (50, 118.71), 'Sb': (51, 121.76), 'Ba': (56, 137.33), 'Ce': (58, 140.12), 'Hf': (72, 178.49),
    'Ta': (73, 180.95), 'W': (74, 183.84), 'Pt': (78, 195.08), 'Au': (79, 196.97), 'Pb': (82, 207.2),
    'Bi': (83, 208.98), 'U': (92, 238.03),
}


def element(symbol: str) -> Element:
    """Look up an element by its chemical symbol."""
    try:
        z, a = _ELEMENT_DATA[symbol]
    except KeyError:
        raise ValueError(f"Unknown element symbol '{symbol}'") from None
    return Element(symbol, z, a)


@dataclass(frozen=True)
class Material:
    """Composition by mass fraction plus density (kg/m³)."""

    composition: Tuple[Tuple[Element, float], ...]
    density: float
    name: str = ""

    def __post_init__(self):
        composition = tuple((el, float(w)) for el, w in dict(self.composition).items())
        if not composition:
            raise ValueError("A material needs at least one element")
        if any(w < 0.0 for _, w in composition):
            raise ValueError("Mass fractions must be non-negative")
        if sum(w for _, w in composition) <= 0.0:
            raise ValueError("Mass fractions must not all be zero")
        object.__setattr__(self, 'composition', composition)
        object.__setattr__(self, 'density', float(self.density))
        if not self.name:
            object.__setattr__(self, 'name', "".join(el.symbol for el, _ in composition))

    @classmethod
    def from_symbols(cls, fractions: Mapping[str, float], density: float, name: str = "") -> "Material":
        return cls(tuple((element(sym), w) for sym, w in fractions.items()), density, name)

    @classmethod
    def pure(cls, symbol: str, density: float) -> "Material":
        return cls(((element(symbol), 1.0),), density, symbol)

    @property
    def elements(self) -> Tuple[Element, ...]:
        return tuple(el for el, _ in self.composition)

    @property
    def total_fraction(self) -> float:
        return sum(w for _, w in self.composition)

    def weight_fraction(self, el: Element, normalize: bool = True) -> float:
        w = dict(self.composition).get(el, 0.0)
        return w / self.total_fraction if normalize else w

    def normalized(self) -> "Material":
        total = self.total_fraction
        return Material(tuple((el, w / total) for el, w in self.composition), self.density, self.name)

    def normalized_fractions(self) -> Iterable[Tuple[Element, float]]:
        total = self.total_fraction
        return ((el, w / total) for el, w in self.composition)

    @property
    def mean_atomic_number(self) -> float:
        """Σ(cZ/A) / Σ(c/A)."""
        top = sum(w * el.atomic_number / el.atomic_weight for el, w in self.normalized_fractions())
        bottom = sum(w / el.atomic_weight for el, w in self.normalized_fractions())
        return top / bottom

    @property
    def mean_atomic_weight(self) -> float:
        """Σc / Σ(c/A)."""
        return 1.0 / sum(w / el.atomic_weight for el, w in self.normalized_fractions())


@dataclass(frozen=True)
class XRayTransition:
    """An X-ray line: photon energy and ionization edge energy of its shell (J)."""

    name: str
    energy: float
    edge_energy: float

    @classmethod
    def from_kev(cls, name: str, energy_kev: float, edge_kev: float) -> "XRayTransition":
        return cls(name, kev_to_joules(energy_kev), kev_to_joules(edge_kev))

    @property
    def energy_kev(self) -> float:
        return joules_to_kev(self.energy)

    @property
    def edge_energy_kev(self) -> float:
        return joules_to_kev(self.edge_energy)


# =============================================================================
# Electron range (maximum penetration, kg/m²)
# =============================================================================

class KanayaOkayamaRange:
    """Kanaya & Okayama (1972) range, combined over elements as 1/Σ(wᵢ/Rᵢ)."""

    name = "Kanaya & Okayama 1972"

    @staticmethod
    def element_range(el: Element, beam_energy: float) -> float:
        e0_kev = joules_to_kev(beam_energy)
        range_g_cm2 = 1.0e-4 * 0.0276 * el.atomic_weight * e0_kev ** 1.67 / el.atomic_number ** 0.89
        return from_g_per_cm2(range_g_cm2)

    def compute(self, material: Material, beam_energy: float) -> float:
        if beam_energy <= 0.0:
            raise ValueError(f"Beam energy must be positive, got {beam_energy} J")
        total = sum(w / self.element_range(el, beam_energy) for el, w in material.normalized_fractions())
        return 1.0 / total

    __call__ = compute


class ConstantRange:
    """Fixed mass range (kg/m²) independent of material and energy."""

    name = "constant"

    def __init__(self, mass_range: float):
        if not mass_range > 0.0:
            raise ValueError(f"Electron range must be positive, got {mass_range}")
        self.mass_range = float(mass_range)

    @classmethod
    def from_depth(cls, depth: float, density: float, safety_factor: float = 1.0) -> "ConstantRange":
        """Range whose depth limit ``safety_factor * range / density`` equals ``depth`` (m)."""
        return cls(depth * density / safety_factor)

    def compute(self, material: Material, beam_energy: float) -> float:
        return self.mass_range

    __call__ = compute


# =============================================================================
# Mass-attenuation coefficients (SI, m²/kg)
# =============================================================================

class ConstantMassAttenuation:
    """Fixed μ/ρ (m²/kg) for every line and material."""

    name = "constant"

    def __init__(self, mac: float):
        self.mac = float(mac)

    @classmethod
    def from_cm2_per_g(cls, mac_cm2_per_g: float) -> "ConstantMassAttenuation":
        return cls(from_cm2_per_g(mac_cm2_per_g))

    def compute(self, material: Material, energy: float) -> float:
        return self.mac

    __call__ = compute


def load_attenuation_table(file_path: str, sep: str = ';') -> np.ndarray:
    """Load a two-column table of [energy (keV), μ/ρ (cm²/g)].

    Leading lines that do not start with a number are treated as a header.

    Returns
    -------
    np.ndarray, shape (N, 2)
        Rows sorted by energy.
    """
    if not os.path.isfile(file_path):
        raise FileNotFoundError(f"Attenuation table '{file_path}' does not exist.")

    skip_rows = 0
    with open(file_path, 'r', encoding='utf-8') as f:
        for line in f:
            try:
                float(line.split(sep)[0])
                break
            except ValueError:
                skip_rows += 1

    data = pd.read_csv(file_path, sep=sep, skiprows=skip_rows, header=None, usecols=[0, 1]).to_numpy(dtype=float)
    if data.ndim != 2 or data.shape[0] < 2:
        raise ValueError(f"Attenuation table '{file_path}' needs at least two rows of [energy, mac]")
    if np.any(data <= 0.0):
        raise ValueError(f"Attenuation table '{file_path}' must contain positive energies and coefficients")
    return data[data[:, 0].argsort()]


class TabulatedMassAttenuation:
    """Per-element μ/ρ tables combined with the mass-fraction mixture rule.

    Tables hold [energy (keV), μ/ρ (cm²/g)] rows and are interpolated
    linearly in log-log space. Energies outside a table are clamped to its
    end points.
    """

    name = "tabulated"

    def __init__(self, tables: Mapping[str, np.ndarray]):
        self.tables: Dict[str, np.ndarray] = {}
        for symbol, table in tables.items():
            table = np.asarray(table, dtype=float)
            if table.ndim != 2 or table.shape[1] < 2 or table.shape[0] < 2:
                raise ValueError(f"Table for '{symbol}' must have shape (N >= 2, 2)")
            table = table[table[:, 0].argsort(), :2]
            self.tables[symbol] = np.log(table)

    @classmethod
    def from_csv(cls, files: Mapping[str, str], sep: str = ';') -> "TabulatedMassAttenuation":
        return cls({symbol: load_attenuation_table(path, sep=sep) for symbol, path in files.items()})

    def element_mac_cm2_per_g(self, symbol: str, energy_kev: float) -> float:
        try:
            log_table = self.tables[symbol]
        except KeyError:
            raise ValueError(f"No attenuation table for element '{symbol}'") from None
        return float(np.exp(np.interp(math.log(energy_kev), log_table[:, 0], log_table[:, 1])))

    def compute(self, material: Material, energy: float) -> float:
        energy_kev = joules_to_kev(energy)
        mac = sum(
            w * self.element_mac_cm2_per_g(el.symbol, energy_kev) for el, w in material.normalized_fractions()
        )
        return from_cm2_per_g(mac)

    __call__ = compute


# =============================================================================
# Depth-generation curves, argument ρz in kg/m²
# =============================================================================

def as_array_function(function: Callable[[float], float]) -> Callable[[np.ndarray], np.ndarray]:
    """Adapt a scalar callback so it accepts and returns numpy arrays."""
    vectorised = np.vectorize(function, otypes=[float])

    def wrapped(rho_z):
        return vectorised(np.asarray(rho_z, dtype=float))

    return wrapped


class UniformGeneration:
    """Constant generation between the surface and ``max_mass_depth``."""

    def __init__(self, max_mass_depth: Optional[float] = None, value: float = 1.0):
        if max_mass_depth is not None and max_mass_depth <= 0.0:
            raise ValueError(f"max_mass_depth must be positive, got {max_mass_depth}")
        self.max_mass_depth = max_mass_depth
        self.value = float(value)

    def __call__(self, rho_z: np.ndarray) -> np.ndarray:
        rho_z = np.asarray(rho_z, dtype=float)
        if self.max_mass_depth is None:
            return np.where(rho_z >= 0.0, self.value, 0.0)
        return np.where((rho_z >= 0.0) & (rho_z <= self.max_mass_depth), self.value, 0.0)


def _love_backscatter(material: Material, beam_energy_kev: float) -> float:
    eta = 0.0
    for el, w in material.normalized_fractions():
        z = el.atomic_number
        eta20 = -52.3791e-4 + z * (150.48371e-4 + z * (-1.67373e-4 + z * 0.00716e-4))
        h = -1112.8e-4 + z * (30.289e-4 + z * -0.15498e-4)
        eta += w * eta20 * (1.0 + h * math.log(beam_energy_kev / 20.0))
    return eta


def _mean_ionization_kev(material: Material) -> float:
    """Berger & Seltzer elemental J combined with the ln(J) rule."""
    m = 0.0
    ln_j = 0.0
    for el, w in material.normalized_fractions():
        z = el.atomic_number
        j_kev = (9.76 * z + 58.5 * z ** -0.19) * 1.0e-3
        cz_a = w * z / el.atomic_weight
        m += cz_a
        ln_j += cz_a * math.log(j_kev)
    return math.exp(ln_j / m)


class ArmstrongPhiRhoZ:
    """Armstrong (1982) Gaussian phi(rho z) curve.

    ``phi(rz) = gamma0 * exp(-(alpha*rz)**2) * (1 - q * exp(-beta*rz))``
    with ``rz`` in g/cm².
    """

    def __init__(self, gamma0: float, alpha: float, beta: float, q: float):
        if alpha <= 0.0 or beta <= 0.0:
            raise ValueError("alpha and beta must be positive")
        self.gamma0 = float(gamma0)
        self.alpha = float(alpha)
        self.beta = float(beta)
        self.q = float(q)

    @classmethod
    def from_parameters(cls, material: Material, beam_energy: float, edge_energy: float) -> "ArmstrongPhiRhoZ":
        """Derive the curve for a material, beam energy and ionization edge (J)."""
        e0 = joules_to_kev(beam_energy)
        ec = joules_to_kev(edge_energy)
        u0 = e0 / ec
        if u0 <= 1.0:
            raise ValueError(f"Beam energy {e0:.3f} keV does not exceed the edge energy {ec:.3f} keV")
        a_bar = material.mean_atomic_weight
        z_bar = material.mean_atomic_number
        log_u0 = math.log(u0)

        gamma0 = 5.0 * math.pi * u0 / (log_u0 * (u0 - 1.0)) * (log_u0 - 5.0 + 5.0 * u0 ** -0.2)
        j = _mean_ionization_kev(material)
        alpha = 2.97e5 * z_bar ** 1.05 / (a_bar * e0 ** 1.25) * math.sqrt(math.log(1.166 * e0 / j) / (e0 - ec))
        beta = 8.5e5 * z_bar ** 2 / (a_bar * e0 ** 2 * (gamma0 - 1.0))

        # Love (1978) surface ionization as used in CITZAF
        eta = _love_backscatter(material, e0)
        inv = 1.0 / u0
        jpu = 3.43378 + inv * (-10.7872 + inv * (10.97628 + inv * -3.62286))
        gpu = -0.59299 + inv * (21.55329 + inv * (-30.55428 + inv * 9.59218))
        phi0 = 1.0 + eta / (1.0 + eta) * (jpu + gpu * math.log(1.0 + eta))
        q = (gamma0 - phi0) / gamma0
        return cls(gamma0, alpha, beta, q)

    @property
    def surface_ionization(self) -> float:
        return self.gamma0 * (1.0 - self.q)

    def total_generation(self) -> float:
        """Integral of the curve over all depths, in kg/m²."""
        xx = 0.5 * self.beta / self.alpha
        # exp(xx²)·erfc(xx) overflows for large xx; use its asymptotic form there
        if xx < 25.0:
            scaled_erfc = math.exp(xx * xx) * math.erfc(xx)
        else:
            scaled_erfc = 1.0 / (xx * math.sqrt(math.pi)) * (1.0 - 0.5 / (xx * xx))
        generated = math.sqrt(math.pi) * self.gamma0 * 0.5 * (1.0 - scaled_erfc * self.q) / self.alpha
        return from_g_per_cm2(generated)

    def __call__(self, rho_z: np.ndarray) -> np.ndarray:
        rz = to_g_per_cm2(np.asarray(rho_z, dtype=float))
        curve = self.gamma0 * np.exp(-(self.alpha * rz) ** 2) * (1.0 - self.q * np.exp(-self.beta * rz))
        return np.where(rz >= 0.0, curve, 0.0)


RangeModel = Union[KanayaOkayamaRange, ConstantRange, Callable[[Material, float], float]]
AttenuationModel = Union[ConstantMassAttenuation, TabulatedMassAttenuation, Callable[[Material, float], float]]


def mac_cm2_per_g(model: AttenuationModel, material: Material, energy: float) -> float:
    """Evaluate an attenuation model and convert its SI result to cm²/g."""
    compute = getattr(model, 'compute', model)
    return to_cm2_per_g(compute(material, energy))
