"""
Unit tests for the state-of-charge integrator.
"""

import unittest

from cellstack_simulator.plant.fault_types import OutOfRangeError, RangePolicy, RangeViolation
from cellstack_simulator.plant.parameters import CellParameters
from cellstack_simulator.plant.soc_integrator import CellState, StateOfChargeIntegrator


def reference_parameters(**overrides):
    values = dict(ns=1, np_cells=1, qnom=3600.0, ocv_min=3.0, ocv_max=4.2, r0=0.1,
                  use_linear_soc_dependency=True)
    values.update(overrides)
    return CellParameters(**values)


class TestCellState(unittest.TestCase):

    def test_initial_state(self):
        state = CellState(0.8)
        self.assertEqual(state.soc, 0.8)
        self.assertEqual(state.time, 0.0)
        self.assertIsNone(state.fault)

    def test_copy_is_independent(self):
        state = CellState(0.8)
        clone = state.copy()
        clone.soc = 0.1
        self.assertEqual(state.soc, 0.8)


class TestStateOfChargeIntegrator(unittest.TestCase):
    """Test cases for StateOfChargeIntegrator."""

    def setUp(self):
        self.params = reference_parameters()
        self.integrator = StateOfChargeIntegrator(self.params)

    def test_starts_at_soc_max(self):
        self.assertEqual(self.integrator.soc, 1.0)

    def test_derivative(self):
        self.assertAlmostEqual(self.integrator.derivative(1.0), -1.0 / 3600.0)
        self.assertAlmostEqual(self.integrator.derivative(-2.0), 2.0 / 3600.0)

    def test_derivative_uses_parallel_capacity(self):
        integrator = StateOfChargeIntegrator(reference_parameters(np_cells=4))
        self.assertAlmostEqual(integrator.derivative(1.0), -1.0 / (4 * 3600.0))

    def test_zero_current_keeps_soc(self):
        for _ in range(1000):
            self.integrator.integrate(0.0, 10.0)
        self.assertEqual(self.integrator.soc, 1.0)
        self.assertEqual(self.integrator.state.time, 10000.0)

    def test_constant_discharge_is_linear(self):
        for _ in range(1800):
            self.integrator.integrate(1.0, 1.0)
        self.assertAlmostEqual(self.integrator.soc, 0.5, places=9)
        self.assertAlmostEqual(self.integrator.state.charge_integral, 1800.0)

    def test_full_discharge_reaches_soc_min_without_error(self):
        for _ in range(3600):
            self.integrator.integrate(1.0, 1.0)
        self.assertAlmostEqual(self.integrator.soc, 0.0, places=9)

    def test_exhausted(self):
        integrator = StateOfChargeIntegrator(self.params, initial_soc=0.0)
        with self.assertRaises(OutOfRangeError) as ctx:
            integrator.integrate(1.0, 1.0)
        self.assertEqual(ctx.exception.kind, RangeViolation.EXHAUSTED)
        self.assertTrue(str(ctx.exception).startswith('exhausted'))
        self.assertEqual(ctx.exception.time_s, 1.0)

    def test_overcharged(self):
        with self.assertRaises(OutOfRangeError) as ctx:
            self.integrator.integrate(-1.0, 1.0)
        self.assertEqual(ctx.exception.kind, RangeViolation.OVERCHARGED)
        self.assertTrue(str(ctx.exception).startswith('overcharged'))

    def test_epsilon_tolerance(self):
        integrator = StateOfChargeIntegrator(self.params, initial_soc=0.0)
        # 0.5e-6 below soc_min is still inside the open interval
        integrator.integrate(3600.0 * 0.5e-6, 1.0)
        self.assertIsNone(integrator.state.fault)

    def test_no_clamping_under_warn_policy(self):
        integrator = StateOfChargeIntegrator(self.params, policy=RangePolicy.WARN, initial_soc=0.0)
        integrator.integrate(1.0, 36.0)
        self.assertAlmostEqual(integrator.soc, -0.01)
        self.assertEqual(integrator.state.fault, RangeViolation.EXHAUSTED)
        integrator.integrate(1.0, 36.0)
        self.assertAlmostEqual(integrator.soc, -0.02)
        self.assertEqual(len(integrator.state.violations), 2)

    def test_fault_is_terminal_after_recovery(self):
        integrator = StateOfChargeIntegrator(self.params, policy=RangePolicy.WARN, initial_soc=0.0)
        integrator.integrate(1.0, 36.0)
        integrator.integrate(-1.0, 72.0)
        self.assertAlmostEqual(integrator.soc, 0.01)
        self.assertEqual(integrator.state.fault, RangeViolation.EXHAUSTED)

    def test_negative_dt(self):
        with self.assertRaises(ValueError):
            self.integrator.integrate(1.0, -1.0)

    def test_advance_to(self):
        self.integrator.advance_to(0.75, 900.0)
        self.assertEqual(self.integrator.soc, 0.75)
        self.assertAlmostEqual(self.integrator.state.charge_integral, 900.0)
        self.assertEqual(self.integrator.state.time, 900.0)

    def test_reset(self):
        self.integrator.integrate(1.0, 100.0)
        self.integrator.reset()
        self.assertEqual(self.integrator.soc, 1.0)
        self.assertEqual(self.integrator.state.time, 0.0)
        self.integrator.reset(0.3)
        self.assertEqual(self.integrator.soc, 0.3)


if __name__ == '__main__':
    unittest.main()
