"""
Battery Cell-Stack Equivalent Circuit Model (ECM)

This module composes the cell-stack model from its four sub-models:
- StateOfChargeIntegrator: Coulomb counting with SOC range checks
- OpenCircuitVoltageCurve: OCV(SOC) table interpolation
- EquivalentCircuitSolver: OCV source || self-discharge G, in series with R0(T)
- ThermalLossAggregator: i^2*R0 + G*E^2 heat flow to an optional thermal sink

The model is a coupled algebraic/differential system with a single state
(SOC). A host solver queries derivative() and algebraic_residual() at
arbitrary points without side effects and advances the state with step().
"""

import logging
from typing import Optional, Dict, Any

from .fault_types import RangePolicy
from .ocv_curve import OpenCircuitVoltageCurve
from .soc_integrator import CellState, StateOfChargeIntegrator
from .equivalent_circuit import EquivalentCircuitSolver, Terminal
from .thermal_loss import ThermalLossAggregator, ThermalSink

logger = logging.getLogger(__name__)


class StepResult:
    """Consistent algebraic solution of the stack at one point in time."""

    def __init__(self, time_s: float, soc: float, terminal: Terminal, ocv_v: float,
                 source_current_a: float, heat_flow_w: float, temperature_k: float):
        self.time_s = time_s
        self.soc = soc
        self.voltage_v = terminal.voltage
        self.current_a = terminal.current
        self.power_w = terminal.power
        self.ocv_v = ocv_v
        self.source_current_a = source_current_a
        self.heat_flow_w = heat_flow_w
        self.temperature_k = temperature_k

    def to_dict(self) -> Dict[str, float]:
        return {
            'time_s': self.time_s,
            'soc': self.soc,
            'voltage_v': self.voltage_v,
            'current_a': self.current_a,
            'power_w': self.power_w,
            'ocv_v': self.ocv_v,
            'source_current_a': self.source_current_a,
            'heat_flow_w': self.heat_flow_w,
            'temperature_k': self.temperature_k,
        }

    def __repr__(self) -> str:
        return (f"StepResult(t={self.time_s:.3f}s, soc={self.soc:.6f}, "
                f"v={self.voltage_v:.4f}V, i={self.current_a:.4f}A)")


class BatteryCellModel:
    """
    Battery cell-stack model (Ns series x Np parallel cells).

    ECM Structure:
        [OCV(SOC) || G_selfdischarge] - R0(T) - Terminal

    Parameters:
        parameters: Validated CellParameters
        thermal_sink: Optional ThermalSink attached to the heat port
        policy: Reaction to SOC range violations (default: FATAL)
        operating_temperature: Fixed temperature in K used without a thermal sink
                               (default: parameters.t_ref)
        initial_soc: Initial SOC (default: parameters.soc_max)
    """

    def __init__(
        self,
        parameters,
        thermal_sink: Optional[ThermalSink] = None,
        policy: RangePolicy = RangePolicy.FATAL,
        operating_temperature: Optional[float] = None,
        initial_soc: Optional[float] = None
    ):
        self._parameters = parameters
        if operating_temperature is None:
            operating_temperature = parameters.t_ref

        self._ocv_curve = OpenCircuitVoltageCurve(parameters)
        self._integrator = StateOfChargeIntegrator(parameters, policy, initial_soc)
        self._circuit = EquivalentCircuitSolver(parameters, self._ocv_curve)
        self._thermal = ThermalLossAggregator(self._circuit, thermal_sink, operating_temperature)
        self._initial_soc = initial_soc
        self._last_result: Optional[StepResult] = None

        logger.debug(
            "Built %r with %r, thermal sink=%s, policy=%s",
            parameters, self._circuit.self_discharge,
            type(thermal_sink).__name__ if thermal_sink is not None else None, policy
        )

    @property
    def parameters(self):
        return self._parameters

    @property
    def ocv_curve(self) -> OpenCircuitVoltageCurve:
        return self._ocv_curve

    @property
    def integrator(self) -> StateOfChargeIntegrator:
        return self._integrator

    @property
    def circuit(self) -> EquivalentCircuitSolver:
        return self._circuit

    @property
    def thermal(self) -> ThermalLossAggregator:
        return self._thermal

    @property
    def state(self) -> CellState:
        return self._integrator.state

    @property
    def soc(self) -> float:
        return self._integrator.soc

    @property
    def temperature(self) -> float:
        return self._thermal.temperature

    @property
    def last_result(self) -> Optional[StepResult]:
        return self._last_result

    def get_ocv(self, soc: Optional[float] = None) -> float:
        """Stack open-circuit voltage in V (current SOC if soc is None)."""
        return self._circuit.source_voltage(self.soc if soc is None else soc)

    def get_internal_resistance(self, temperature: Optional[float] = None) -> float:
        """Stack series resistance in Ω (operating temperature if temperature is None)."""
        return self._circuit.resistance(self.temperature if temperature is None else temperature)

    def terminal_voltage(self, current: float, soc: Optional[float] = None) -> float:
        return self._circuit.terminal_voltage(self.soc if soc is None else soc, current, self.temperature)

    def terminal_current(self, voltage: float, soc: Optional[float] = None) -> float:
        return self._circuit.terminal_current(self.soc if soc is None else soc, voltage, self.temperature)

    def heat_flow(self, current: float, soc: Optional[float] = None) -> float:
        return self._thermal.heat_flow(self.soc if soc is None else soc, current)

    def source_current(self, current: Optional[float] = None, voltage: Optional[float] = None,
                       soc: Optional[float] = None) -> float:
        """Current through the OCV source for the given excitation. No side effects."""
        soc = self.soc if soc is None else soc
        if (current is None) == (voltage is None):
            raise ValueError("Exactly one of current or voltage must be given")
        if current is None:
            current = self._circuit.terminal_current(soc, voltage, self.temperature)
        return self._circuit.source_current(soc, current)

    def derivative(self, state: Optional[CellState] = None, current: Optional[float] = 0.0,
                   voltage: Optional[float] = None) -> float:
        """
        dSOC/dt of the given (or current) state under a terminal excitation.

        Pass voltage=... together with current=None for a voltage excitation.
        No side effects.
        """
        soc = self.soc if state is None else state.soc
        if voltage is not None:
            current = None
        return self._integrator.derivative(self.source_current(current, voltage, soc))

    def algebraic_residual(self, terminal: Terminal, state: Optional[CellState] = None) -> float:
        """Residual v - (E(SOC) - i*R0(T)) of a terminal state. No side effects."""
        soc = self.soc if state is None else state.soc
        return self._circuit.algebraic_residual(soc, terminal, self.temperature)

    def evaluate(self, current: Optional[float] = None, voltage: Optional[float] = None,
                 soc: Optional[float] = None) -> StepResult:
        """
        Solve the algebraic part at the current state for one excitation.

        Trial evaluation: neither the CellState nor the circuit's last
        terminal is changed.

        Returns:
            StepResult of the current time
        """
        return self._solve(current, voltage, soc, record=False)

    def settle(self, current: Optional[float] = None, voltage: Optional[float] = None) -> StepResult:
        """
        Solve the algebraic part at the current state and keep it as last result.

        Used by host schemes that advance the SOC without step().
        """
        result = self._solve(current, voltage, None, record=True)
        self._last_result = result
        return result

    def _solve(self, current: Optional[float], voltage: Optional[float],
               soc: Optional[float], record: bool) -> StepResult:
        soc = self.soc if soc is None else soc
        temperature = self.temperature
        terminal = self._circuit.solve(soc, temperature, current=current, voltage=voltage, record=record)
        return StepResult(
            time_s=self.state.time,
            soc=soc,
            terminal=terminal,
            ocv_v=self._circuit.source_voltage(soc),
            source_current_a=self._circuit.source_current(soc, terminal.current),
            heat_flow_w=self._thermal.heat_flow(soc, terminal.current),
            temperature_k=temperature,
        )

    def step(self, dt: float, current: Optional[float] = None, voltage: Optional[float] = None,
             source_current: Optional[float] = None) -> StepResult:
        """
        Advance the stack by one time step.

        1. Solve the circuit for the excitation at the start of the step
        2. Integrate the source current into SOC (range check per policy)
        3. Deliver the dissipated heat to the thermal sink (or ambient)

        Args:
            dt: Step size in s
            current: Terminal current in A (positive = discharge)
            voltage: Terminal voltage in V
            source_current: Source current to integrate instead of the start-of-step
                            value (used by higher order host schemes)

        Returns:
            StepResult at the start of the step

        Raises:
            OutOfRangeError: If the SOC left its range and the policy is FATAL
        """
        result = self.settle(current=current, voltage=voltage)

        i_src = result.source_current_a if source_current is None else source_current
        try:
            self._integrator.integrate(i_src, dt)
        finally:
            # Heat of the step is dissipated even when the range check fails
            self._thermal.deliver(result.heat_flow_w, dt)
        return result

    def get_state(self) -> Dict[str, Any]:
        """
        Get current model state.

        Returns:
            Dictionary with state variables
        """
        state = {
            'time_s': self.state.time,
            'soc': self.soc,
            'charge_integral_as': self.state.charge_integral,
            'ocv_v': self.get_ocv(),
            'temperature_k': self.temperature,
            'internal_resistance_ohm': self.get_internal_resistance(),
            'fault': self.state.fault.value if self.state.fault is not None else None,
        }
        if self._last_result is not None:
            state['voltage_v'] = self._last_result.voltage_v
            state['current_a'] = self._last_result.current_a
            state['power_w'] = self._last_result.power_w
        return state

    def reset(self, soc: Optional[float] = None):
        """
        Reset the model state for a new run.

        Args:
            soc: New SOC (default: initial SOC of the model)
        """
        self._integrator.reset(self._initial_soc if soc is None else soc)
        self._last_result = None
