"""
Battery Cell-Stack Simulator

Equivalent-circuit model of a battery cell stack (open-circuit voltage vs.
state of charge, self-discharge, internal resistance, thermal dissipation)
with a host solver, YAML configuration and a command line runner.
"""

from .plant import (
    BatteryCellModel,
    CellParameters,
    CellState,
    ConfigurationError,
    OutOfRangeError,
    RangePolicy,
    RangeViolation,
    Smoothness,
    Terminal,
    LumpedThermalMass,
    ThermalSink
)
from .host import HostSolver, Excitation, IntegrationMethod, SimulationResult

__version__ = '1.0.0'

__all__ = [
    'BatteryCellModel',
    'CellParameters',
    'CellState',
    'ConfigurationError',
    'OutOfRangeError',
    'RangePolicy',
    'RangeViolation',
    'Smoothness',
    'Terminal',
    'LumpedThermalMass',
    'ThermalSink',
    'HostSolver',
    'Excitation',
    'IntegrationMethod',
    'SimulationResult',
]
