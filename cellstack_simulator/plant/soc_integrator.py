"""
State-of-Charge Integrator

Coulomb counting of the source current of the cell stack:
    dSOC/dt = -I / (Np * Qnom)     (positive current = discharge)

The integrator does not clamp. After every step the state of charge is
checked against (SOCmin - eps, SOCmax + eps); a violation is reported as
"overcharged" or "exhausted" according to the configured RangePolicy.
"""

import logging
from typing import List, Optional

from .fault_types import OutOfRangeError, RangePolicy, RangeViolation

logger = logging.getLogger(__name__)


class CellState:
    """
    Mutable state of one simulated cell stack.

    Attributes:
        soc: State of charge as fraction
        charge_integral: Integral of the source current in A·s (positive = discharged)
        time: Simulation time in s
        violations: Range violations recorded under RangePolicy.WARN
    """

    def __init__(self, soc: float):
        self.soc = float(soc)
        self.charge_integral = 0.0
        self.time = 0.0
        self.violations: List[OutOfRangeError] = []

    @property
    def fault(self) -> Optional[RangeViolation]:
        """First recorded violation; the fault state is terminal."""
        if self.violations:
            return self.violations[0].kind
        return None

    def copy(self) -> 'CellState':
        state = CellState(self.soc)
        state.charge_integral = self.charge_integral
        state.time = self.time
        state.violations = list(self.violations)
        return state

    def __repr__(self) -> str:
        return f"CellState(soc={self.soc:.6f}, time={self.time:.3f}s, fault={self.fault})"


class StateOfChargeIntegrator:
    """
    Owns and advances the CellState of a cell stack.

    Parameters:
        parameters: Validated CellParameters
        policy: Reaction to SOC range violations (default: FATAL)
        initial_soc: Initial SOC (default: parameters.soc_max)
    """

    def __init__(self, parameters, policy: RangePolicy = RangePolicy.FATAL,
                 initial_soc: Optional[float] = None):
        self._parameters = parameters
        self._policy = policy
        self._state = CellState(parameters.soc_max if initial_soc is None else initial_soc)

    @property
    def state(self) -> CellState:
        return self._state

    @property
    def soc(self) -> float:
        return self._state.soc

    @property
    def policy(self) -> RangePolicy:
        return self._policy

    @property
    def bounds(self):
        """Open interval (SOCmin - eps, SOCmax + eps) the SOC must stay in."""
        eps = self._parameters.soc_epsilon
        return self._parameters.soc_min - eps, self._parameters.soc_max + eps

    def derivative(self, current: float) -> float:
        """dSOC/dt for the given source current in A. No side effects."""
        return -current / self._parameters.stack_capacity

    def integrate(self, current: float, dt: float) -> float:
        """
        Advance the state of charge by one step (explicit Euler on the given current).

        Higher order schemes pass the averaged source current of the step.

        Args:
            current: Source current in A (positive = discharge)
            dt: Step size in s (>= 0)

        Returns:
            Updated SOC

        Raises:
            OutOfRangeError: If the SOC left the valid range and the policy is FATAL
        """
        if dt < 0:
            raise ValueError(f"Time step must be >= 0, got {dt}")

        self._state.soc += self.derivative(current) * dt
        self._state.charge_integral += current * dt
        self._state.time += dt

        self.check_range()
        return self._state.soc

    def advance_to(self, soc: float, dt: float) -> float:
        """
        Set the SOC reached by an external integration over dt.

        The charge integral is updated with the equivalent charge and the
        range check is applied as in integrate().
        """
        if dt < 0:
            raise ValueError(f"Time step must be >= 0, got {dt}")

        self._state.charge_integral += (self._state.soc - soc) * self._parameters.stack_capacity
        self._state.soc = float(soc)
        self._state.time += dt

        self.check_range()
        return self._state.soc

    def check_range(self) -> Optional[OutOfRangeError]:
        """
        Check the SOC against its bounds and apply the range policy.

        Returns:
            The violation when the policy is WARN, None if the SOC is in range
        """
        lower, upper = self.bounds
        soc = self._state.soc
        if soc >= upper:
            kind = RangeViolation.OVERCHARGED
        elif soc <= lower:
            kind = RangeViolation.EXHAUSTED
        else:
            return None

        error = OutOfRangeError(kind, soc, lower, upper, self._state.time)
        if self._policy == RangePolicy.FATAL:
            logger.error("SOC check failed: %s", error)
            raise error

        if self._state.fault is None:
            logger.warning("SOC check failed, continuing under warn policy: %s", error)
        else:
            logger.debug("SOC still out of range: %s", error)
        self._state.violations.append(error)
        return error

    def reset(self, soc: Optional[float] = None):
        """
        Reset the state for a new run.

        Args:
            soc: New SOC (default: parameters.soc_max)
        """
        self._state = CellState(self._parameters.soc_max if soc is None else soc)
