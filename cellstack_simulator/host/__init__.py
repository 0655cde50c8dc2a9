"""
Host Solver

Time-advance loop driving a BatteryCellModel with a current or voltage
excitation, using fixed-step (Euler, trapezoidal) or adaptive integration.
"""

from .solver import (
    HostSolver,
    Excitation,
    IntegrationMethod,
    SimulationResult,
    TIMESERIES_COLUMNS
)

__all__ = [
    'HostSolver',
    'Excitation',
    'IntegrationMethod',
    'SimulationResult',
    'TIMESERIES_COLUMNS',
]
