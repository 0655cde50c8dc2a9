"""
Thermal Loss Aggregator

Sums the heat dissipated by the cell stack:
    Q = i^2 * R(T) + G * E^2
(series resistance loss plus self-discharge branch loss).

An optional ThermalSink receives the heat flow; its temperature is then the
operating temperature of the series resistance. Without a sink the heat goes
to an ideal ambient sink and never feeds back into the electrical state.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class ThermalSink(ABC):
    """Thermal network attached to the heat port of the stack."""

    @property
    @abstractmethod
    def temperature(self) -> float:
        """Port temperature in K."""
        pass

    @abstractmethod
    def absorb(self, heat_flow: float, dt: float):
        """
        Take up heat from the stack for one step.

        Args:
            heat_flow: Heat flow into the sink in W
            dt: Step size in s
        """
        pass


class LumpedThermalMass(ThermalSink):
    """
    Lumped heat capacity with convective coupling to ambient.

    Temperature change: dT = (Q - (T - T_amb) / R_th) * dt / C_th

    Parameters:
        heat_capacity: Thermal mass in J/K
        thermal_resistance: Thermal resistance to ambient in K/W
        ambient_temperature: Ambient temperature in K
        initial_temperature: Initial temperature in K (default: ambient)
    """

    def __init__(
        self,
        heat_capacity: float = 1000.0,
        thermal_resistance: float = 2.0,
        ambient_temperature: float = 298.15,
        initial_temperature: Optional[float] = None
    ):
        if heat_capacity <= 0:
            raise ValueError(f"heat_capacity must be > 0, got {heat_capacity}")
        if thermal_resistance <= 0:
            raise ValueError(f"thermal_resistance must be > 0, got {thermal_resistance}")
        self.heat_capacity = float(heat_capacity)
        self.thermal_resistance = float(thermal_resistance)
        self.ambient_temperature = float(ambient_temperature)
        self._temperature = float(ambient_temperature if initial_temperature is None else initial_temperature)
        self.absorbed_energy = 0.0

    @property
    def temperature(self) -> float:
        return self._temperature

    def heat_loss(self) -> float:
        """Heat flow to ambient in W."""
        return (self._temperature - self.ambient_temperature) / self.thermal_resistance

    def absorb(self, heat_flow: float, dt: float):
        net_power = heat_flow - self.heat_loss()
        self._temperature += net_power * dt / self.heat_capacity
        self.absorbed_energy += heat_flow * dt


class ThermalLossAggregator:
    """
    Aggregates the dissipated power of the circuit into one heat-flow output.

    Parameters:
        circuit: EquivalentCircuitSolver of the stack
        sink: Optional ThermalSink; None discards the heat to ambient
        operating_temperature: Fixed temperature in K used without a sink
    """

    def __init__(self, circuit, sink: Optional[ThermalSink] = None,
                 operating_temperature: float = 298.15):
        self._circuit = circuit
        self._sink = sink
        self._operating_temperature = float(operating_temperature)
        self.discarded_energy = 0.0

    @property
    def sink(self) -> Optional[ThermalSink]:
        return self._sink

    @property
    def temperature(self) -> float:
        """Operating temperature of the series resistance in K."""
        if self._sink is not None:
            return self._sink.temperature
        return self._operating_temperature

    def resistive_loss(self, current: float) -> float:
        return current ** 2 * self._circuit.resistance(self.temperature)

    def self_discharge_loss(self, soc: float) -> float:
        return self._circuit.self_discharge.loss_power(self._circuit.source_voltage(soc))

    def heat_flow(self, soc: float, current: float) -> float:
        """Total dissipated power in W for the given SOC and terminal current."""
        return self.resistive_loss(current) + self.self_discharge_loss(soc)

    def deliver(self, heat_flow: float, dt: float):
        """Hand the heat of one step to the sink, or discard it to ambient."""
        if self._sink is not None:
            self._sink.absorb(heat_flow, dt)
        else:
            self.discarded_energy += heat_flow * dt
