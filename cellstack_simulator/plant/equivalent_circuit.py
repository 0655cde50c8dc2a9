"""
Equivalent Circuit Solver

Circuit of the cell stack:

    +---[ R0(T) ]---o terminal +
    |
   (E)  ||  [ G ]          E = Ns * OCVmax * ocv_ratio(SOC)
    |                      G = Np * Idis / (Ns * OCVmax)   (only if Idis > 0)
    +---------------o terminal -

The self-discharge conductance G sits in parallel to the OCV source, the
series resistance R0(T) = Ns * R0 / Np * (1 + alpha * (T - T_ref)) between
that node and the terminal. The solver contributes the algebraic relation
    v = E - i * R0(T)
and the source current i_src = i + G * E that drives the SOC integrator.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .fault_types import ConfigurationError, OutOfRangeError, RangeViolation

logger = logging.getLogger(__name__)


class Terminal:
    """
    Two-pin electrical interface of the stack.

    Attributes:
        voltage: Terminal voltage in V
        current: Terminal current in A (positive = discharge out of the positive pin)
    """

    def __init__(self, voltage: float = 0.0, current: float = 0.0):
        self.voltage = float(voltage)
        self.current = float(current)

    @property
    def power(self) -> float:
        """Electrical power delivered at the terminal in W."""
        return self.voltage * self.current

    def __repr__(self) -> str:
        return f"Terminal(voltage={self.voltage:.6g}V, current={self.current:.6g}A)"


class SelfDischargeBranch(ABC):
    """Self-discharge branch in parallel to the OCV source."""

    @abstractmethod
    def current(self, source_voltage: float) -> float:
        """Leakage current in A at the given source voltage."""
        pass

    @abstractmethod
    def loss_power(self, source_voltage: float) -> float:
        """Dissipated power in W at the given source voltage."""
        pass


class NoSelfDischarge(SelfDischargeBranch):
    """Branch absent (Idis == 0)."""

    def current(self, source_voltage: float) -> float:
        return 0.0

    def loss_power(self, source_voltage: float) -> float:
        return 0.0

    def __repr__(self) -> str:
        return "NoSelfDischarge()"


class SelfDischarge(SelfDischargeBranch):
    """Constant conductance G across the OCV source."""

    def __init__(self, conductance: float):
        self.conductance = float(conductance)

    def current(self, source_voltage: float) -> float:
        return self.conductance * source_voltage

    def loss_power(self, source_voltage: float) -> float:
        return self.conductance * source_voltage ** 2

    def __repr__(self) -> str:
        return f"SelfDischarge(conductance={self.conductance:.6g})"


def build_self_discharge_branch(parameters) -> SelfDischargeBranch:
    """Choose the self-discharge branch variant for the parameter set."""
    if parameters.idis > 0:
        return SelfDischarge(parameters.self_discharge_conductance)
    return NoSelfDischarge()


class EquivalentCircuitSolver:
    """
    Algebraic part of the cell-stack model.

    Parameters:
        parameters: Validated CellParameters
        ocv_curve: OpenCircuitVoltageCurve of the same parameter set
    """

    def __init__(self, parameters, ocv_curve):
        self._parameters = parameters
        self._ocv_curve = ocv_curve
        self._branch = build_self_discharge_branch(parameters)
        self._last_terminal: Optional[Terminal] = None

    @property
    def self_discharge(self) -> SelfDischargeBranch:
        return self._branch

    @property
    def last_terminal(self) -> Optional[Terminal]:
        """Terminal of the last solve() call."""
        return self._last_terminal

    @property
    def current(self) -> float:
        return self._last_terminal.current if self._last_terminal is not None else 0.0

    @property
    def power(self) -> float:
        return self._last_terminal.power if self._last_terminal is not None else 0.0

    def source_voltage(self, soc: float) -> float:
        """Stack OCV E(SOC) in V."""
        return self._ocv_curve.stack_voltage(soc)

    def resistance(self, temperature: float) -> float:
        """
        Series resistance of the stack at the given temperature.

        Formula: R(T) = Ns * R0 / Np * (1 + alpha * (T - T_ref))

        Raises:
            OutOfRangeError: If the temperature drives the resistance negative
        """
        p = self._parameters
        r = p.stack_resistance * (1.0 + p.alpha * (temperature - p.t_ref))
        if r < 0.0:
            raise OutOfRangeError(RangeViolation.TEMPERATURE_OUT_OF_SCOPE, r, 0.0, None)
        return r

    def terminal_voltage(self, soc: float, current: float, temperature: float) -> float:
        """Terminal voltage for a current excitation: v = E - i * R(T)."""
        return self.source_voltage(soc) - current * self.resistance(temperature)

    def terminal_current(self, soc: float, voltage: float, temperature: float) -> float:
        """
        Terminal current for a voltage excitation: i = (E - v) / R(T).

        Raises:
            ConfigurationError: If the series resistance is zero
        """
        r = self.resistance(temperature)
        if r <= 0.0:
            raise ConfigurationError(["Voltage excitation requires a positive internal resistance"])
        return (self.source_voltage(soc) - voltage) / r

    def source_current(self, soc: float, terminal_current: float) -> float:
        """Current through the OCV source: terminal current plus self-discharge."""
        return terminal_current + self._branch.current(self.source_voltage(soc))

    def self_discharge_current(self, soc: float) -> float:
        return self._branch.current(self.source_voltage(soc))

    def algebraic_residual(self, soc: float, terminal: Terminal, temperature: float) -> float:
        """Residual of the circuit equation; zero for a consistent terminal state."""
        return terminal.voltage - (self.source_voltage(soc) - terminal.current * self.resistance(temperature))

    def solve(self, soc: float, temperature: float,
              current: Optional[float] = None, voltage: Optional[float] = None,
              record: bool = True) -> Terminal:
        """
        Solve the circuit for exactly one boundary excitation.

        Args:
            soc: State of charge
            temperature: Operating temperature in K
            current: Terminal current in A (current excitation)
            voltage: Terminal voltage in V (voltage excitation)
            record: Keep the solution as last_terminal (False for trial points)

        Returns:
            Consistent Terminal
        """
        if (current is None) == (voltage is None):
            raise ValueError("Exactly one of current or voltage must be given")

        if current is not None:
            terminal = Terminal(self.terminal_voltage(soc, current, temperature), current)
        else:
            terminal = Terminal(voltage, self.terminal_current(soc, voltage, temperature))

        if record:
            self._last_terminal = terminal
        return terminal
