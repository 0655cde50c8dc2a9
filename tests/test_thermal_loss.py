"""
Unit tests for the thermal loss aggregator and the lumped thermal mass.
"""

import unittest

from cellstack_simulator.plant.equivalent_circuit import EquivalentCircuitSolver
from cellstack_simulator.plant.ocv_curve import OpenCircuitVoltageCurve
from cellstack_simulator.plant.parameters import CellParameters
from cellstack_simulator.plant.thermal_loss import LumpedThermalMass, ThermalLossAggregator


def make_circuit(**overrides):
    values = dict(ns=2, np_cells=3, qnom=3600.0, ocv_min=3.0, ocv_max=4.2, r0=0.15,
                  use_linear_soc_dependency=True)
    values.update(overrides)
    params = CellParameters(**values)
    return EquivalentCircuitSolver(params, OpenCircuitVoltageCurve(params))


class TestLumpedThermalMass(unittest.TestCase):

    def test_heats_up_from_ambient(self):
        sink = LumpedThermalMass(heat_capacity=100.0, thermal_resistance=1.0, ambient_temperature=300.0)
        sink.absorb(5.0, 10.0)
        self.assertAlmostEqual(sink.temperature, 300.5)
        self.assertAlmostEqual(sink.absorbed_energy, 50.0)

    def test_cools_towards_ambient(self):
        sink = LumpedThermalMass(heat_capacity=100.0, thermal_resistance=1.0,
                                 ambient_temperature=300.0, initial_temperature=310.0)
        self.assertAlmostEqual(sink.heat_loss(), 10.0)
        sink.absorb(0.0, 1.0)
        self.assertAlmostEqual(sink.temperature, 309.9)

    def test_rejects_non_positive_parameters(self):
        with self.assertRaises(ValueError):
            LumpedThermalMass(heat_capacity=0.0)
        with self.assertRaises(ValueError):
            LumpedThermalMass(thermal_resistance=-1.0)


class TestThermalLossAggregator(unittest.TestCase):
    """Test cases for ThermalLossAggregator."""

    def test_resistive_loss_only(self):
        aggregator = ThermalLossAggregator(make_circuit())
        # R = 2 * 0.15 / 3 = 0.1 Ohm
        self.assertAlmostEqual(aggregator.heat_flow(1.0, 3.0), 0.9)
        self.assertEqual(aggregator.self_discharge_loss(1.0), 0.0)

    def test_includes_self_discharge_loss(self):
        circuit = make_circuit(idis=0.01)
        aggregator = ThermalLossAggregator(circuit)
        g = 3 * 0.01 / (2 * 4.2)
        e = 8.4
        self.assertAlmostEqual(aggregator.self_discharge_loss(1.0), g * e ** 2)
        self.assertAlmostEqual(aggregator.heat_flow(1.0, 3.0), 0.9 + g * e ** 2)

    def test_heat_flow_is_independent_of_current_sign(self):
        aggregator = ThermalLossAggregator(make_circuit(idis=0.01))
        self.assertAlmostEqual(aggregator.heat_flow(0.6, 2.0), aggregator.heat_flow(0.6, -2.0))

    def test_without_sink_heat_is_discarded(self):
        aggregator = ThermalLossAggregator(make_circuit(), operating_temperature=310.0)
        aggregator.deliver(2.0, 5.0)
        self.assertAlmostEqual(aggregator.discarded_energy, 10.0)
        self.assertEqual(aggregator.temperature, 310.0)

    def test_with_sink_temperature_follows_sink(self):
        sink = LumpedThermalMass(heat_capacity=100.0, thermal_resistance=1.0, ambient_temperature=298.15)
        aggregator = ThermalLossAggregator(make_circuit(), sink)
        aggregator.deliver(2.0, 5.0)
        self.assertAlmostEqual(aggregator.temperature, 298.25)
        self.assertEqual(aggregator.discarded_energy, 0.0)
        self.assertIs(aggregator.sink, sink)


if __name__ == '__main__':
    unittest.main()
