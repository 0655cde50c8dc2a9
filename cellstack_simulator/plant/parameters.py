"""
Cell-Stack Parameter Record

Immutable configuration shared by every sub-model of the cell stack:
- stack topology (Ns series x Np parallel cells)
- capacity, SOC and OCV bounds
- self-discharge current, internal resistance and its temperature coefficient
- OCV-SOC lookup table (empirical or linear) and interpolation smoothness
"""

import logging
from typing import Dict, Any, List, Optional, Sequence

import numpy as np

from .fault_types import ConfigurationError
from .ocv_curve import Smoothness

logger = logging.getLogger(__name__)

DEFAULT_SOC_EPSILON = 1e-6


def validate_parameters(data: Dict[str, Any]) -> List[str]:
    """
    Validate a cell parameter dictionary.

    Args:
        data: Parameter dictionary (layout of the 'cell' section of a YAML config)

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    required = ['ns', 'np', 'qnom_as', 'soc_min', 'soc_max', 'ocv_min_v', 'ocv_max_v']
    for field in required:
        if field not in data or data[field] is None:
            errors.append(f"Missing required field: '{field}'")
    if errors:
        return errors

    try:
        ns = float(data['ns'])
        np_cells = float(data['np'])
        qnom = float(data['qnom_as'])
        soc_min = float(data['soc_min'])
        soc_max = float(data['soc_max'])
        ocv_min = float(data['ocv_min_v'])
        ocv_max = float(data['ocv_max_v'])
        idis = float(data.get('idis_a', 0.0))
        r0 = float(data.get('r0_ohm', 0.0))
        t_ref = float(data.get('t_ref_k', 298.15))
        soc_epsilon = float(data.get('soc_epsilon', DEFAULT_SOC_EPSILON))
    except (TypeError, ValueError) as e:
        return [f"Non-numeric parameter: {e}"]

    for field, count in (('ns', ns), ('np', np_cells)):
        if isinstance(data[field], bool) or not count.is_integer():
            errors.append(f"{field} must be an integer, got {data[field]!r}")
    if ns < 1:
        errors.append(f"ns must be >= 1, got {data['ns']}")
    if np_cells < 1:
        errors.append(f"np must be >= 1, got {data['np']}")
    if qnom <= 0:
        errors.append(f"qnom_as must be > 0, got {qnom}")
    if not (0.0 <= soc_min <= 1.0) or not (0.0 <= soc_max <= 1.0):
        errors.append(f"soc_min and soc_max must lie in [0, 1], got {soc_min}, {soc_max}")
    if soc_max <= soc_min:
        errors.append(f"soc_max ({soc_max}) must be greater than soc_min ({soc_min})")
    if ocv_min <= 0:
        errors.append(f"ocv_min_v must be > 0, got {ocv_min}")
    if ocv_max <= ocv_min:
        errors.append(f"ocv_max_v ({ocv_max}) must be greater than ocv_min_v ({ocv_min})")
    if idis < 0:
        errors.append(f"idis_a must be >= 0, got {idis}")
    if r0 < 0:
        errors.append(f"r0_ohm must be >= 0, got {r0}")
    if t_ref <= 0:
        errors.append(f"t_ref_k must be > 0, got {t_ref}")
    if soc_epsilon < 0:
        errors.append(f"soc_epsilon must be >= 0, got {soc_epsilon}")

    smoothness = data.get('smoothness', Smoothness.LINEAR_SEGMENTS.value)
    if not isinstance(smoothness, Smoothness):
        try:
            Smoothness.from_string(str(smoothness))
        except ValueError as e:
            errors.append(str(e))

    use_linear = data.get('use_linear_soc_dependency', False)
    if not isinstance(use_linear, (bool, np.bool_)):
        errors.append(f"use_linear_soc_dependency must be true or false, got {use_linear!r}")
        use_linear = False
    table = data.get('ocv_soc_table')
    if table is None:
        if not use_linear:
            errors.append("Missing 'ocv_soc_table' (or set use_linear_soc_dependency)")
    elif ocv_max > ocv_min > 0:
        errors.extend(_validate_table(table, ocv_min / ocv_max))

    return errors


def _validate_table(table: Any, ratio_min: float) -> List[str]:
    """Check the OCV-SOC table domain and ordering."""
    errors = []
    try:
        arr = np.asarray(table, dtype=float)
    except (TypeError, ValueError):
        return ["ocv_soc_table must be a list of numeric [SOC, OCV/OCVmax] pairs"]

    if arr.ndim != 2 or arr.shape[1] != 2:
        return [f"ocv_soc_table must have shape (n, 2), got {arr.shape}"]
    if arr.shape[0] < 2:
        errors.append(f"ocv_soc_table needs at least 2 points, got {arr.shape[0]}")
        return errors
    if not np.all(np.isfinite(arr)):
        errors.append("ocv_soc_table contains non-finite values")
        return errors

    soc = arr[:, 0]
    ratio = arr[:, 1]
    if soc[0] < 0.0:
        errors.append(f"ocv_soc_table: first SOC must be >= 0, got {soc[0]}")
    if soc[-1] > 1.0:
        errors.append(f"ocv_soc_table: last SOC must be <= 1, got {soc[-1]}")
    if np.any(np.diff(soc) <= 0.0):
        errors.append("ocv_soc_table: SOC values must be strictly increasing")
    # Small tolerance for ratios written with limited decimals
    tol = 1e-9
    if np.min(ratio) < ratio_min - tol or np.max(ratio) > 1.0 + tol:
        errors.append(
            f"ocv_soc_table: OCV ratios must lie within [{ratio_min:.6g}, 1], "
            f"got [{np.min(ratio):.6g}, {np.max(ratio):.6g}]"
        )
    return errors


class CellParameters:
    """
    Validated, read-only parameter record of a battery cell stack.

    Stack equations use the derived quantities:
        stack OCV         = Ns * OCVmax * ocv_ratio(SOC)
        stack resistance  = Ns * R0 / Np
        self-discharge G  = Np * Idis / (Ns * OCVmax)

    Parameters:
        ns: Number of series cells (>= 1)
        np_cells: Number of parallel cells (>= 1)
        qnom: Nominal cell capacity in A·s (> 0)
        soc_min, soc_max: SOC bounds in [0, 1], soc_min < soc_max
        ocv_min, ocv_max: Cell OCV bounds in V, 0 < ocv_min < ocv_max
        idis: Cell self-discharge current at OCVmax in A (>= 0)
        r0: Cell internal resistance at t_ref in Ω (>= 0)
        t_ref: Reference temperature of r0 in K
        alpha: Temperature coefficient of r0 in 1/K
        ocv_soc_table: Rows of [SOC, OCV/OCVmax]
        smoothness: Interpolation smoothness of the table
        use_linear_soc_dependency: Use [[soc_min, ocv_min/ocv_max], [soc_max, 1]] instead of the table
        soc_epsilon: Tolerance of the SOC range checks
    """

    def __init__(
        self,
        ns: int = 1,
        np_cells: int = 1,
        qnom: float = 3600.0,
        soc_min: float = 0.0,
        soc_max: float = 1.0,
        ocv_min: float = 3.0,
        ocv_max: float = 4.2,
        idis: float = 0.0,
        r0: float = 0.0,
        t_ref: float = 298.15,
        alpha: float = 0.0,
        ocv_soc_table: Optional[Sequence[Sequence[float]]] = None,
        smoothness: Smoothness = Smoothness.LINEAR_SEGMENTS,
        use_linear_soc_dependency: bool = False,
        soc_epsilon: float = DEFAULT_SOC_EPSILON
    ):
        if isinstance(smoothness, str):
            try:
                smoothness = Smoothness.from_string(smoothness)
            except ValueError as e:
                raise ConfigurationError([str(e)])

        problems = validate_parameters({
            'ns': ns,
            'np': np_cells,
            'qnom_as': qnom,
            'soc_min': soc_min,
            'soc_max': soc_max,
            'ocv_min_v': ocv_min,
            'ocv_max_v': ocv_max,
            'idis_a': idis,
            'r0_ohm': r0,
            't_ref_k': t_ref,
            'smoothness': smoothness,
            'use_linear_soc_dependency': use_linear_soc_dependency,
            'ocv_soc_table': ocv_soc_table,
            'soc_epsilon': soc_epsilon,
        })
        if problems:
            logger.error("Rejected cell parameters: %s", "; ".join(problems))
            raise ConfigurationError(problems)

        self._ns = int(ns)
        self._np = int(np_cells)
        self._qnom = float(qnom)
        self._soc_min = float(soc_min)
        self._soc_max = float(soc_max)
        self._ocv_min = float(ocv_min)
        self._ocv_max = float(ocv_max)
        self._idis = float(idis)
        self._r0 = float(r0)
        self._t_ref = float(t_ref)
        self._alpha = float(alpha)
        self._smoothness = smoothness
        self._use_linear = bool(use_linear_soc_dependency)
        self._soc_epsilon = float(soc_epsilon)

        if ocv_soc_table is None:
            self._table = None
        else:
            self._table = np.array(ocv_soc_table, dtype=float)
            self._table.setflags(write=False)

        self._linear_table = np.array([
            [self._soc_min, self._ocv_min / self._ocv_max],
            [self._soc_max, 1.0],
        ])
        self._linear_table.setflags(write=False)

    @property
    def ns(self) -> int:
        return self._ns

    @property
    def np_cells(self) -> int:
        return self._np

    @property
    def qnom(self) -> float:
        return self._qnom

    @property
    def soc_min(self) -> float:
        return self._soc_min

    @property
    def soc_max(self) -> float:
        return self._soc_max

    @property
    def ocv_min(self) -> float:
        return self._ocv_min

    @property
    def ocv_max(self) -> float:
        return self._ocv_max

    @property
    def idis(self) -> float:
        return self._idis

    @property
    def r0(self) -> float:
        return self._r0

    @property
    def t_ref(self) -> float:
        return self._t_ref

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def smoothness(self) -> Smoothness:
        return self._smoothness

    @property
    def use_linear_soc_dependency(self) -> bool:
        return self._use_linear

    @property
    def soc_epsilon(self) -> float:
        return self._soc_epsilon

    @property
    def ocv_soc_table(self) -> Optional[np.ndarray]:
        """Empirical OCV-SOC table as configured (None if only the linear table is used)."""
        return self._table

    @property
    def linear_table(self) -> np.ndarray:
        return self._linear_table

    @property
    def effective_table(self) -> np.ndarray:
        """Table the OCV curve interpolates over."""
        if self._use_linear:
            return self._linear_table
        return self._table

    @property
    def stack_capacity(self) -> float:
        """Charge of the stack in A·s (Np cells in parallel)."""
        return self._np * self._qnom

    @property
    def stack_ocv_max(self) -> float:
        return self._ns * self._ocv_max

    @property
    def stack_resistance(self) -> float:
        """Stack resistance at t_ref in Ω."""
        return self._ns * self._r0 / self._np

    @property
    def self_discharge_conductance(self) -> float:
        """Conductance of the self-discharge branch in S (0 when idis == 0)."""
        return self._np * self._idis / (self._ns * self._ocv_max)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CellParameters':
        """
        Create parameters from a dictionary (the 'cell' section of a YAML config).

        Raises:
            ConfigurationError: If the dictionary is incomplete or invalid
        """
        problems = validate_parameters(data)
        if problems:
            raise ConfigurationError(problems)

        return cls(
            ns=int(data['ns']),
            np_cells=int(data['np']),
            qnom=float(data['qnom_as']),
            soc_min=float(data['soc_min']),
            soc_max=float(data['soc_max']),
            ocv_min=float(data['ocv_min_v']),
            ocv_max=float(data['ocv_max_v']),
            idis=float(data.get('idis_a', 0.0)),
            r0=float(data.get('r0_ohm', 0.0)),
            t_ref=float(data.get('t_ref_k', 298.15)),
            alpha=float(data.get('alpha_per_k', 0.0)),
            ocv_soc_table=data.get('ocv_soc_table'),
            smoothness=data.get('smoothness', Smoothness.LINEAR_SEGMENTS.value),
            use_linear_soc_dependency=bool(data.get('use_linear_soc_dependency', False)),
            soc_epsilon=float(data.get('soc_epsilon', DEFAULT_SOC_EPSILON)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Dictionary in the layout accepted by from_dict()."""
        data = {
            'ns': self._ns,
            'np': self._np,
            'qnom_as': self._qnom,
            'soc_min': self._soc_min,
            'soc_max': self._soc_max,
            'ocv_min_v': self._ocv_min,
            'ocv_max_v': self._ocv_max,
            'idis_a': self._idis,
            'r0_ohm': self._r0,
            't_ref_k': self._t_ref,
            'alpha_per_k': self._alpha,
            'smoothness': self._smoothness.value,
            'use_linear_soc_dependency': self._use_linear,
            'soc_epsilon': self._soc_epsilon,
        }
        if self._table is not None:
            data['ocv_soc_table'] = self._table.tolist()
        return data

    def __repr__(self) -> str:
        return (
            f"CellParameters(ns={self._ns}, np={self._np}, qnom={self._qnom}, "
            f"soc=[{self._soc_min}, {self._soc_max}], ocv=[{self._ocv_min}, {self._ocv_max}], "
            f"idis={self._idis}, r0={self._r0})"
        )
