"""
Unit tests for the equivalent circuit solver.
"""

import unittest

from cellstack_simulator.plant.equivalent_circuit import (
    EquivalentCircuitSolver,
    NoSelfDischarge,
    SelfDischarge,
    Terminal,
)
from cellstack_simulator.plant.fault_types import ConfigurationError, OutOfRangeError, RangeViolation
from cellstack_simulator.plant.ocv_curve import OpenCircuitVoltageCurve
from cellstack_simulator.plant.parameters import CellParameters

T_REF = 298.15


def make_solver(**overrides):
    values = dict(ns=2, np_cells=1, qnom=3600.0, ocv_min=3.0, ocv_max=4.2, r0=0.1,
                  t_ref=T_REF, use_linear_soc_dependency=True)
    values.update(overrides)
    params = CellParameters(**values)
    return EquivalentCircuitSolver(params, OpenCircuitVoltageCurve(params))


class TestTerminal(unittest.TestCase):

    def test_power(self):
        self.assertAlmostEqual(Terminal(12.0, 2.5).power, 30.0)


class TestEquivalentCircuitSolver(unittest.TestCase):
    """Test cases for EquivalentCircuitSolver."""

    def setUp(self):
        self.solver = make_solver()

    def test_branch_absent_without_self_discharge(self):
        self.assertIsInstance(self.solver.self_discharge, NoSelfDischarge)
        self.assertEqual(self.solver.self_discharge_current(1.0), 0.0)

    def test_self_discharge_conductance(self):
        solver = make_solver(np_cells=3, idis=0.01)
        branch = solver.self_discharge
        self.assertIsInstance(branch, SelfDischarge)
        self.assertAlmostEqual(branch.conductance, 3 * 0.01 / (2 * 4.2))
        # At OCVmax the branch draws Np * Idis
        self.assertAlmostEqual(solver.self_discharge_current(1.0), 0.03)
        self.assertAlmostEqual(solver.source_current(1.0, 1.0), 1.03)

    def test_resistance_at_reference_temperature(self):
        self.assertAlmostEqual(self.solver.resistance(T_REF), 0.2)

    def test_resistance_temperature_dependence(self):
        solver = make_solver(alpha=0.004)
        self.assertAlmostEqual(solver.resistance(T_REF + 10.0), 0.2 * 1.04)
        self.assertAlmostEqual(solver.resistance(T_REF - 10.0), 0.2 * 0.96)

    def test_negative_resistance_is_out_of_scope(self):
        solver = make_solver(alpha=0.1)
        with self.assertRaises(OutOfRangeError) as ctx:
            solver.resistance(T_REF - 18.0)
        self.assertEqual(ctx.exception.kind, RangeViolation.TEMPERATURE_OUT_OF_SCOPE)

    def test_current_excitation(self):
        terminal = self.solver.solve(1.0, T_REF, current=2.0)
        self.assertAlmostEqual(terminal.voltage, 8.4 - 2.0 * 0.2)
        self.assertEqual(terminal.current, 2.0)
        self.assertIs(self.solver.last_terminal, terminal)
        self.assertAlmostEqual(self.solver.power, terminal.voltage * 2.0)

    def test_voltage_excitation(self):
        terminal = self.solver.solve(1.0, T_REF, voltage=8.0)
        self.assertAlmostEqual(terminal.current, 2.0)
        self.assertAlmostEqual(self.solver.current, 2.0)

    def test_voltage_excitation_charging(self):
        terminal = self.solver.solve(1.0, T_REF, voltage=8.6)
        self.assertAlmostEqual(terminal.current, -1.0)

    def test_voltage_excitation_requires_resistance(self):
        solver = make_solver(r0=0.0)
        with self.assertRaises(ConfigurationError):
            solver.solve(1.0, T_REF, voltage=8.0)

    def test_exactly_one_excitation(self):
        with self.assertRaises(ValueError):
            self.solver.solve(1.0, T_REF)
        with self.assertRaises(ValueError):
            self.solver.solve(1.0, T_REF, current=1.0, voltage=8.0)

    def test_algebraic_residual(self):
        terminal = self.solver.solve(0.5, T_REF, current=1.5)
        self.assertAlmostEqual(self.solver.algebraic_residual(0.5, terminal, T_REF), 0.0)
        inconsistent = Terminal(terminal.voltage - 0.1, terminal.current)
        self.assertAlmostEqual(self.solver.algebraic_residual(0.5, inconsistent, T_REF), -0.1)


if __name__ == '__main__':
    unittest.main()
