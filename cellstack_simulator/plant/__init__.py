"""
Cell-Stack Plant Model

Equivalent-circuit model of a battery cell stack:
- CellParameters: validated, read-only parameter record
- StateOfChargeIntegrator / CellState: Coulomb counting with range checks
- OpenCircuitVoltageCurve: OCV-SOC table interpolation
- EquivalentCircuitSolver: OCV source, self-discharge conductance, series resistance
- ThermalLossAggregator: dissipated heat to an optional thermal sink
- BatteryCellModel: composition of the above
"""

from .fault_types import ConfigurationError, OutOfRangeError, RangeViolation, RangePolicy
from .ocv_curve import OpenCircuitVoltageCurve, Smoothness
from .parameters import CellParameters, validate_parameters
from .soc_integrator import CellState, StateOfChargeIntegrator
from .equivalent_circuit import (
    Terminal,
    EquivalentCircuitSolver,
    SelfDischargeBranch,
    NoSelfDischarge,
    SelfDischarge
)
from .thermal_loss import ThermalSink, LumpedThermalMass, ThermalLossAggregator
from .cell_model import BatteryCellModel, StepResult

__all__ = [
    # Errors
    'ConfigurationError',
    'OutOfRangeError',
    'RangeViolation',
    'RangePolicy',
    # Parameters
    'CellParameters',
    'validate_parameters',
    # Sub-models
    'OpenCircuitVoltageCurve',
    'Smoothness',
    'CellState',
    'StateOfChargeIntegrator',
    'Terminal',
    'EquivalentCircuitSolver',
    'SelfDischargeBranch',
    'NoSelfDischarge',
    'SelfDischarge',
    'ThermalSink',
    'LumpedThermalMass',
    'ThermalLossAggregator',
    # Composite
    'BatteryCellModel',
    'StepResult',
]
