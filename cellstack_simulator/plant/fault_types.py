"""
Fault Type Definitions

This module defines the error taxonomy of the cell-stack model:
- ConfigurationError for malformed cell parameters (raised at construction)
- OutOfRangeError for state-of-charge or temperature violations during a run
- RangeViolation / RangePolicy enums describing the violation and how to react
"""

from enum import Enum
from typing import List, Optional, Sequence


class RangeViolation(Enum):
    """Kinds of runtime range violations."""

    OVERCHARGED = "overcharged"
    EXHAUSTED = "exhausted"
    TEMPERATURE_OUT_OF_SCOPE = "temperature_out_of_scope"

    @property
    def description(self) -> str:
        """Human readable description of the violation."""
        descriptions = {
            RangeViolation.OVERCHARGED: 'Battery overcharged: SOC above SOCmax',
            RangeViolation.EXHAUSTED: 'Battery exhausted: SOC below SOCmin',
            RangeViolation.TEMPERATURE_OUT_OF_SCOPE: 'Temperature outside scope of model: resistance < 0',
        }
        return descriptions[self]

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, value: str) -> 'RangeViolation':
        """Create RangeViolation from string."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Unknown range violation: {value}")


class RangePolicy(Enum):
    """Reaction to a state-of-charge range violation."""

    FATAL = "fatal"  # raise OutOfRangeError, the run stops
    WARN = "warn"    # log and record the violation, keep integrating

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, value: str) -> 'RangePolicy':
        """Create RangePolicy from string."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ConfigurationError([f"Unknown range policy: {value}. Must be 'fatal' or 'warn'"])


class ConfigurationError(ValueError):
    """
    Malformed cell parameters or simulation configuration.

    Raised while building the model; a simulation cannot start from a
    configuration that produced this error.
    """

    def __init__(self, problems: Sequence[str]):
        if isinstance(problems, str):
            problems = [problems]
        self.problems: List[str] = list(problems)
        super().__init__("Invalid configuration: " + "; ".join(self.problems))


class OutOfRangeError(RuntimeError):
    """
    State of the cell stack left the valid range of the model.

    Attributes:
        kind: RangeViolation describing the violation
        value: Offending value (SOC fraction or resistance in Ω)
        lower: Lower bound that was checked (None if not applicable)
        upper: Upper bound that was checked (None if not applicable)
        time_s: Simulation time of the violation (None if unknown)
    """

    def __init__(
        self,
        kind: RangeViolation,
        value: float,
        lower: Optional[float] = None,
        upper: Optional[float] = None,
        time_s: Optional[float] = None
    ):
        self.kind = kind
        self.value = value
        self.lower = lower
        self.upper = upper
        self.time_s = time_s

        message = f"{kind.value}: {kind.description} (value={value:.6g}"
        if lower is not None and upper is not None:
            message += f", valid range ({lower:.6g}, {upper:.6g})"
        message += ")"
        if time_s is not None:
            message += f" at t={time_s:.3f}s"
        super().__init__(message)
