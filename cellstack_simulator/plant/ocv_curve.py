"""
Open Circuit Voltage Curve

Maps state of charge to the normalised open-circuit voltage OCV/OCVmax by
interpolating over a monotonic OCV-SOC table. Outside the table domain the
nearest endpoint value is held (no linear extension beyond the table).
"""

from enum import Enum
from typing import Union

import numpy as np
from scipy.interpolate import Akima1DInterpolator, PchipInterpolator

ArrayLike = Union[float, np.ndarray]


class Smoothness(Enum):
    """Interpolation smoothness of the OCV-SOC table."""

    LINEAR_SEGMENTS = "linear_segments"
    CONTINUOUS_DERIVATIVE = "continuous_derivative"
    MONOTONE_CONTINUOUS_DERIVATIVE = "monotone_continuous_derivative"
    CONSTANT_SEGMENTS = "constant_segments"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, value: str) -> 'Smoothness':
        """Create Smoothness from string (case insensitive, '-' accepted for '_')."""
        try:
            return cls(value.lower().replace('-', '_'))
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown smoothness: {value}. Must be one of: {valid}")


class OpenCircuitVoltageCurve:
    """
    OCV-SOC lookup with selectable smoothness and hold-last-point extrapolation.

    The table variant (empirical or linear) is taken from
    CellParameters.effective_table when the curve is built, so the choice is
    fixed for the lifetime of the model.

    Interpolation is exact at the table's control points for every
    smoothness mode.
    """

    def __init__(self, parameters):
        """
        Build the interpolant.

        Args:
            parameters: Validated CellParameters
        """
        self._parameters = parameters
        table = parameters.effective_table
        self._soc_points = np.array(table[:, 0], dtype=float)
        self._ratio_points = np.array(table[:, 1], dtype=float)
        self._smoothness = parameters.smoothness

        self._interpolant = None
        n_points = len(self._soc_points)
        if self._smoothness == Smoothness.CONTINUOUS_DERIVATIVE and n_points > 2:
            self._interpolant = Akima1DInterpolator(self._soc_points, self._ratio_points)
        elif self._smoothness == Smoothness.MONOTONE_CONTINUOUS_DERIVATIVE and n_points > 2:
            self._interpolant = PchipInterpolator(self._soc_points, self._ratio_points, extrapolate=False)
        # Two points: every smooth interpolant through them is the straight line

    @property
    def smoothness(self) -> Smoothness:
        return self._smoothness

    @property
    def soc_points(self) -> np.ndarray:
        return self._soc_points

    @property
    def ratio_points(self) -> np.ndarray:
        return self._ratio_points

    @property
    def domain(self):
        """(first SOC, last SOC) of the table."""
        return float(self._soc_points[0]), float(self._soc_points[-1])

    def voltage(self, soc: ArrayLike) -> ArrayLike:
        """
        Normalised OCV (OCV/OCVmax) at the given state of charge.

        Args:
            soc: State of charge as fraction (scalar or array)

        Returns:
            OCV ratio (float for scalar input, ndarray otherwise)
        """
        soc_arr = np.asarray(soc, dtype=float)
        x = np.clip(soc_arr, self._soc_points[0], self._soc_points[-1])

        if self._smoothness == Smoothness.CONSTANT_SEGMENTS:
            idx = np.searchsorted(self._soc_points, x, side='right') - 1
            idx = np.clip(idx, 0, len(self._soc_points) - 1)
            ratio = self._ratio_points[idx]
        elif self._interpolant is not None:
            ratio = np.asarray(self._interpolant(x), dtype=float)
        else:
            ratio = np.interp(x, self._soc_points, self._ratio_points)

        # Hold last point, bit-exact at both ends
        ratio = np.where(soc_arr <= self._soc_points[0], self._ratio_points[0], ratio)
        ratio = np.where(soc_arr >= self._soc_points[-1], self._ratio_points[-1], ratio)

        if np.ndim(soc) == 0:
            return float(ratio)
        return ratio

    def stack_voltage(self, soc: ArrayLike) -> ArrayLike:
        """Open-circuit voltage of the whole stack in V: Ns * OCVmax * ratio."""
        return self._parameters.stack_ocv_max * self.voltage(soc)

    def __call__(self, soc: ArrayLike) -> ArrayLike:
        return self.voltage(soc)
