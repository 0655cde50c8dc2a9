"""
Host Numerical Solver

Drives a BatteryCellModel through time under a current or voltage excitation:
- EULER: explicit Euler on the source current
- TRAPEZOIDAL: Heun predictor/corrector (trapezoidal rule on the source current)
- ADAPTIVE: scipy solve_ivp (RK45) with terminal events at the SOC bounds
  (fixed operating temperature only)

Results are collected into a pandas DataFrame time series.
"""

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.integrate import solve_ivp
from scipy.optimize import brentq

from ..plant.fault_types import ConfigurationError, OutOfRangeError, RangePolicy, RangeViolation
from ..plant.soc_integrator import CellState

logger = logging.getLogger(__name__)

TIMESERIES_COLUMNS = [
    'time_s', 'soc', 'voltage_v', 'current_a', 'power_w',
    'ocv_v', 'source_current_a', 'heat_flow_w', 'temperature_k'
]


class IntegrationMethod(Enum):
    """Time integration scheme of the host solver."""
    EULER = "euler"
    TRAPEZOIDAL = "trapezoidal"
    ADAPTIVE = "adaptive"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, value: str) -> 'IntegrationMethod':
        """Create IntegrationMethod from string."""
        try:
            return cls(value.lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ConfigurationError([f"Unknown integration method: {value}. Must be one of: {valid}"])


class Excitation:
    """
    Boundary excitation of the terminal: current (A) or voltage (V) over time.

    Profiles given as tables are interpolated linearly and hold their last
    value outside the table.
    """

    CURRENT = "current"
    VOLTAGE = "voltage"

    def __init__(self, kind: str, times: Sequence[float], values: Sequence[float]):
        if kind not in (self.CURRENT, self.VOLTAGE):
            raise ConfigurationError([f"Unknown excitation type: {kind}. Must be 'current' or 'voltage'"])
        times = np.asarray(times, dtype=float)
        values = np.asarray(values, dtype=float)
        if times.ndim != 1 or times.shape != values.shape or len(times) == 0:
            raise ConfigurationError(["Excitation profile needs matching, non-empty time and value arrays"])
        if np.any(np.diff(times) <= 0):
            raise ConfigurationError(["Excitation profile times must be strictly increasing"])
        self.kind = kind
        self._times = times
        self._values = values

    @classmethod
    def constant_current(cls, current: float) -> 'Excitation':
        return cls(cls.CURRENT, [0.0], [current])

    @classmethod
    def constant_voltage(cls, voltage: float) -> 'Excitation':
        return cls(cls.VOLTAGE, [0.0], [voltage])

    @classmethod
    def from_table(cls, times: Sequence[float], values: Sequence[float], kind: str = CURRENT) -> 'Excitation':
        return cls(kind, times, values)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Excitation':
        """
        Create excitation from a config dictionary.

        Accepted layouts:
            {type: current, value: 1.0}
            {type: voltage, profile: [[t0, v0], [t1, v1], ...]}
        """
        kind = str(data.get('type', cls.CURRENT)).lower()
        if 'profile' in data:
            profile = np.asarray(data['profile'], dtype=float)
            if profile.ndim != 2 or profile.shape[1] != 2:
                raise ConfigurationError(["Excitation profile must be a list of [time, value] pairs"])
            return cls(kind, profile[:, 0], profile[:, 1])
        if 'value' not in data:
            raise ConfigurationError(["Excitation needs a 'value' or a 'profile'"])
        return cls(kind, [0.0], [float(data['value'])])

    def value_at(self, t: float) -> float:
        return float(np.interp(t, self._times, self._values))

    def kwargs_at(self, t: float) -> Dict[str, float]:
        """Keyword arguments selecting the excitation for the model API."""
        return {self.kind: self.value_at(t)}

    def __repr__(self) -> str:
        if len(self._times) == 1:
            return f"Excitation({self.kind}={self._values[0]:.6g})"
        return f"Excitation({self.kind}, {len(self._times)} points)"


class SimulationResult:
    """Time series and outcome of a host solver run."""

    def __init__(self, data: pd.DataFrame, method: IntegrationMethod, stop_reason: str,
                 fault: Optional[OutOfRangeError] = None, wall_time_s: float = 0.0):
        self.data = data
        self.method = method
        self.stop_reason = stop_reason
        self.fault = fault
        self.wall_time_s = wall_time_s

    @property
    def final_soc(self) -> float:
        return self._value_at('soc', -1)

    @property
    def final_time(self) -> float:
        return self._value_at('time_s', -1)

    @property
    def fault_time(self) -> Optional[float]:
        return self.fault.time_s if self.fault is not None else None

    def _value_at(self, column: str, index: int) -> float:
        # A run stopped by a temperature fault on its first step has no rows
        if self.data.empty:
            return float('nan')
        return float(self.data[column].iloc[index])

    def summary(self) -> Dict[str, Any]:
        """One-row summary of the run."""
        data = self.data
        dt = np.diff(data['time_s'].to_numpy())
        heat = data['heat_flow_w'].to_numpy()[:-1]
        power = data['power_w'].to_numpy()[:-1]
        return {
            'method': self.method.value,
            'stop_reason': self.stop_reason,
            'fault': self.fault.kind.value if self.fault is not None else None,
            'fault_time_s': self.fault_time,
            'final_time_s': self.final_time,
            'initial_soc': self._value_at('soc', 0),
            'final_soc': self.final_soc,
            'min_voltage_v': float(data['voltage_v'].min()),
            'max_voltage_v': float(data['voltage_v'].max()),
            'energy_delivered_wh': float(np.sum(power * dt) / 3600.0),
            'heat_dissipated_j': float(np.sum(heat * dt)),
            'steps': max(int(len(data)) - 1, 0),
            'wall_time_s': self.wall_time_s,
        }

    def to_csv(self, output_dir: str):
        """Save time series and summary as CSV files."""
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)
        self.data.to_csv(output_path / 'timeseries_data.csv', index=False)
        pd.DataFrame([self.summary()]).to_csv(output_path / 'simulation_result.csv', index=False)
        logger.info("Results saved to: %s", output_path)


class HostSolver:
    """
    Time-advance loop around a BatteryCellModel.

    Parameters:
        model: BatteryCellModel to drive
        excitation: Terminal excitation
        method: Integration scheme (default: EULER)
        stop_on_fault: Stop and record an OutOfRangeError instead of re-raising it
    """

    def __init__(self, model, excitation: Excitation,
                 method: IntegrationMethod = IntegrationMethod.EULER,
                 stop_on_fault: bool = False):
        self._model = model
        self._excitation = excitation
        self._method = method
        self._stop_on_fault = stop_on_fault

        if method == IntegrationMethod.ADAPTIVE and model.thermal.sink is not None:
            raise ConfigurationError(["Adaptive integration supports a fixed operating temperature only"])

    @property
    def model(self):
        return self._model

    def run(self, duration: float, dt: float) -> SimulationResult:
        """
        Simulate for the given duration.

        Args:
            duration: Simulated time in s
            dt: Step size in s (output interval for ADAPTIVE)

        Returns:
            SimulationResult

        Raises:
            OutOfRangeError: On a fatal range violation unless stop_on_fault is set
        """
        if duration <= 0 or dt <= 0:
            raise ValueError(f"duration and dt must be > 0, got {duration}, {dt}")

        logger.info(
            "Running %s simulation: %s, duration=%.1fs, dt=%.3gs, initial SOC=%.4f",
            self._method.value, self._excitation, duration, dt, self._model.soc
        )
        start = time.time()
        if self._method == IntegrationMethod.ADAPTIVE:
            rows, stop_reason, fault = self._run_adaptive(duration, dt)
        else:
            rows, stop_reason, fault = self._run_fixed_step(duration, dt)
        wall_time = time.time() - start

        data = pd.DataFrame(rows, columns=TIMESERIES_COLUMNS)
        result = SimulationResult(data, self._method, stop_reason, fault, wall_time)
        logger.info(
            "Simulation finished (%s) at t=%.1fs, SOC=%.4f",
            stop_reason, result.final_time, result.final_soc
        )
        return result

    def _run_fixed_step(self, duration: float, dt: float):
        model = self._model
        n_steps = int(np.ceil(duration / dt - 1e-9))
        t_end = model.state.time + duration
        rows = []
        stop_reason = 'duration'
        fault = None

        for _ in range(n_steps):
            t = model.state.time
            h = min(dt, t_end - t)
            if h <= 0:
                break
            excitation = self._excitation.kwargs_at(t)

            had_fault = model.state.fault is not None
            try:
                source_current = None
                if self._method == IntegrationMethod.TRAPEZOIDAL:
                    source_current = self._heun_source_current(t, h)
                result = model.step(h, source_current=source_current, **excitation)
            except OutOfRangeError as e:
                if not self._stop_on_fault:
                    raise
                fault = e
                stop_reason = e.kind.value
                if model.last_result is not None and model.last_result.time_s == t:
                    rows.append(model.last_result.to_dict())
                if e.kind == RangeViolation.TEMPERATURE_OUT_OF_SCOPE:
                    # No consistent solution exists at this temperature
                    return rows, stop_reason, fault
                break
            rows.append(result.to_dict())

            if not had_fault and model.state.fault is not None:
                fault = model.state.violations[0]
                logger.warning("Range violation recorded at t=%.3fs: %s", fault.time_s, fault.kind.value)
                if self._stop_on_fault:
                    stop_reason = fault.kind.value
                    break

        rows.append(self._final_row())
        return rows, stop_reason, fault

    def _heun_source_current(self, t: float, h: float) -> float:
        """Average of the source current at the start and at the predicted end of a step."""
        model = self._model
        i_start = model.source_current(**self._excitation.kwargs_at(t))
        soc_pred = model.soc + model.integrator.derivative(i_start) * h
        i_end = model.source_current(soc=soc_pred, **self._excitation.kwargs_at(t + h))
        return 0.5 * (i_start + i_end)

    def _final_row(self) -> Dict[str, float]:
        model = self._model
        excitation = self._excitation.kwargs_at(model.state.time)
        return model.settle(**excitation).to_dict()

    def _run_adaptive(self, duration: float, dt: float):
        """
        Integrate with solve_ivp and hand the end state to the model.

        The operating temperature is fixed on this path, so an out-of-scope
        temperature is detected before integrating. Under the warn policy the
        bounds are no terminal events; the first crossing is located on the
        dense output and recorded at its own time.
        """
        model = self._model
        integrator = model.integrator
        lower, upper = integrator.bounds
        t0 = model.state.time
        soc0 = model.soc
        excitation = self._excitation

        try:
            model.get_internal_resistance()
        except OutOfRangeError as e:
            if not self._stop_on_fault:
                raise
            return [], e.kind.value, e

        def rhs(t, y):
            return [model.derivative(CellState(y[0]), **excitation.kwargs_at(t))]

        def exhausted(t, y):
            return y[0] - lower
        exhausted.terminal = True
        exhausted.direction = -1

        def overcharged(t, y):
            return y[0] - upper
        overcharged.terminal = True
        overcharged.direction = 1

        stops_at_bounds = self._stop_on_fault or integrator.policy == RangePolicy.FATAL
        sol = solve_ivp(
            rhs, (t0, t0 + duration), [soc0], method='RK45',
            events=[exhausted, overcharged] if stops_at_bounds else None,
            dense_output=True, max_step=max(dt, duration / 1000.0), rtol=1e-8, atol=1e-10
        )
        if not sol.success:
            raise RuntimeError(f"Adaptive integration failed: {sol.message}")

        t_stop = float(sol.t[-1])
        soc_stop = float(sol.y[0, -1])
        if sol.status == 1:
            # Terminal event: land exactly on the violated bound
            soc_stop = lower if len(sol.t_events[0]) > 0 else upper

        rows = []
        for t in np.arange(t0, t_stop, dt):
            row = model.evaluate(soc=float(sol.sol(t)[0]), **excitation.kwargs_at(t)).to_dict()
            row['time_s'] = float(t)
            rows.append(row)

        # Intermediate SOC values the state passes through before t_stop
        waypoints = []
        had_fault = model.state.fault is not None
        if not stops_at_bounds and not had_fault:
            crossing = _first_crossing(sol, lower, upper)
            if crossing is not None:
                waypoints.append(crossing)
        waypoints.append((t_stop, soc_stop))

        heat = float(np.mean([r['heat_flow_w'] for r in rows])) if rows else 0.0
        stop_reason = 'duration'
        fault = None
        try:
            t_prev = t0
            for t_next, soc_next in waypoints:
                integrator.advance_to(soc_next, t_next - t_prev)
                t_prev = t_next
        except OutOfRangeError as e:
            rows.append(self._final_row())
            if not self._stop_on_fault:
                raise
            return rows, e.kind.value, e
        finally:
            model.thermal.deliver(heat, t_stop - t0)

        if not had_fault and model.state.fault is not None:
            fault = model.state.violations[0]
            logger.warning("Range violation recorded at t=%.3fs: %s", fault.time_s, fault.kind.value)
            if self._stop_on_fault:
                stop_reason = fault.kind.value

        rows.append(self._final_row())
        return rows, stop_reason, fault


def _first_crossing(sol, lower: float, upper: float) -> Optional[Tuple[float, float]]:
    """
    First time a solve_ivp solution reaches one of the SOC bounds.

    Returns:
        (time, bound) of the crossing, or None if the solution stays inside
        or starts outside the bounds
    """
    soc = sol.y[0]
    outside = np.nonzero((soc <= lower) | (soc >= upper))[0]
    if len(outside) == 0 or outside[0] == 0:
        return None
    i = outside[0]
    bound = lower if soc[i] <= lower else upper
    t_cross = brentq(lambda t: sol.sol(t)[0] - bound, sol.t[i - 1], sol.t[i])
    return float(t_cross), bound
