"""
Unit tests for configuration loading and model construction.
"""

import os
import tempfile
import unittest

import yaml

from cellstack_simulator.config.loader import (
    RunConfig,
    create_model_from_config,
    create_solver_from_config,
    load_config,
    load_parameters,
    load_preset,
    load_run_config,
    save_config,
    save_parameters,
    validate_config,
)
from cellstack_simulator.host.solver import IntegrationMethod
from cellstack_simulator.plant.fault_types import ConfigurationError, RangePolicy
from cellstack_simulator.plant.parameters import CellParameters
from cellstack_simulator.plant.thermal_loss import LumpedThermalMass


class TestConfigFiles(unittest.TestCase):
    """Test cases for YAML loading and saving."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def test_parameters_round_trip(self):
        params = CellParameters(ns=4, np_cells=2, qnom=5000.0, ocv_min=3.15, ocv_max=4.2,
                                idis=0.001, r0=0.02, alpha=-0.003,
                                ocv_soc_table=[[0.0, 0.75], [0.4, 0.88], [1.0, 1.0]],
                                smoothness='continuous_derivative')
        path = os.path.join(self.tmp.name, 'stack.yaml')
        save_parameters(params, path)
        restored = load_parameters(path)
        self.assertEqual(restored.to_dict(), params.to_dict())
        self.assertEqual(load_config(path)['name'], 'stack')

    def test_top_level_must_be_mapping(self):
        path = os.path.join(self.tmp.name, 'list.yaml')
        with open(path, 'w') as f:
            yaml.dump([1, 2, 3], f)
        with self.assertRaises(ConfigurationError):
            load_config(path)

    def test_missing_cell_section(self):
        path = os.path.join(self.tmp.name, 'empty.yaml')
        save_config({'name': 'empty'}, path)
        with self.assertRaises(ConfigurationError):
            load_parameters(path)

    def test_load_run_config(self):
        path = os.path.join(self.tmp.name, 'run.yaml')
        save_config({'simulation': {'method': 'adaptive', 'policy': 'warn',
                                    'excitation': {'type': 'voltage', 'value': 3.8}}}, path)
        run = load_run_config(path)
        self.assertEqual(run.method, IntegrationMethod.ADAPTIVE)
        self.assertEqual(run.policy, RangePolicy.WARN)
        self.assertEqual(run.excitation.kwargs_at(0.0), {'voltage': 3.8})

    def test_load_run_config_unknown_method(self):
        path = os.path.join(self.tmp.name, 'bad.yaml')
        save_config({'simulation': {'method': 'rk4'}}, path)
        with self.assertRaises(ConfigurationError):
            load_run_config(path)


class TestPresets(unittest.TestCase):
    """Test cases for the packaged configurations."""

    def test_presets_are_valid(self):
        for name in ('reference_cell', 'li_ion_stack'):
            with self.subTest(preset=name):
                self.assertEqual(validate_config(load_preset(name)), [])

    def test_unknown_preset(self):
        with self.assertRaises(ConfigurationError) as ctx:
            load_preset('does_not_exist')
        self.assertIn('reference_cell', ctx.exception.problems[0])

    def test_reference_cell_runs_until_exhausted(self):
        solver = create_solver_from_config(load_preset('reference_cell'))
        result = solver.run(4000.0, 1.0)
        self.assertEqual(result.stop_reason, 'exhausted')
        self.assertAlmostEqual(result.fault_time, 3601.0)
        self.assertAlmostEqual(result.data['voltage_v'].iloc[0], 4.1)

    def test_li_ion_stack_with_thermal_mass(self):
        config = load_preset('li_ion_stack')
        model = create_model_from_config(config)
        self.assertIsInstance(model.thermal.sink, LumpedThermalMass)
        self.assertEqual(model.parameters.ns, 12)

        solver = create_solver_from_config(config)
        result = solver.run(120.0, 1.0)
        self.assertEqual(result.stop_reason, 'duration')
        self.assertGreater(result.data['heat_flow_w'].iloc[0], 0.0)
        self.assertGreater(result.data['temperature_k'].iloc[-1], 298.15)


class TestValidateConfig(unittest.TestCase):
    """Test cases for validate_config() and RunConfig."""

    def setUp(self):
        self.config = load_preset('reference_cell')

    def test_invalid_simulation_settings(self):
        self.config['simulation'].update({'method': 'rk4', 'policy': 'ignore', 'dt_s': 0})
        errors = validate_config(self.config)
        self.assertEqual(len(errors), 3)

    def test_invalid_cell_reported(self):
        self.config['cell']['soc_max'] = -0.5
        self.assertTrue(validate_config(self.config))
        with self.assertRaises(ConfigurationError):
            create_model_from_config(self.config)

    def test_invalid_excitation(self):
        self.config['simulation']['excitation'] = {'type': 'current'}
        self.assertTrue(validate_config(self.config))

    def test_invalid_thermal_and_numeric_settings(self):
        self.config['simulation'].update({
            'thermal': {'heat_capacity_j_per_k': 0, 'thermal_resistance_k_per_w': 'high'},
            'initial_soc': 'full',
        })
        errors = validate_config(self.config)
        self.assertEqual(len(errors), 3)
        with self.assertRaises(ConfigurationError):
            create_model_from_config(self.config)

    def test_stop_on_fault_must_be_boolean(self):
        self.config['simulation']['stop_on_fault'] = 'false'
        errors = validate_config(self.config)
        self.assertEqual(len(errors), 1)
        self.assertIn('stop_on_fault', errors[0])

    def test_run_config_rejects_invalid_section(self):
        with self.assertRaises(ConfigurationError):
            RunConfig({'thermal': {'thermal_resistance_k_per_w': -1.0}})

    def test_null_initial_values_use_defaults(self):
        run = RunConfig({'initial_soc': None, 'thermal': {'initial_k': None}})
        self.assertIsNone(run.initial_soc)
        self.assertEqual(run.build_thermal_sink().temperature, 298.15)

    def test_missing_cell(self):
        self.assertEqual(validate_config({}), ["Missing required section: 'cell'"])

    def test_run_config_defaults(self):
        run = RunConfig()
        self.assertEqual(run.method, IntegrationMethod.EULER)
        self.assertEqual(run.policy, RangePolicy.FATAL)
        self.assertFalse(run.stop_on_fault)
        self.assertIsNone(run.build_thermal_sink())

    def test_initial_soc_and_temperature(self):
        self.config['simulation'].update({'initial_soc': 0.5, 'operating_temperature_k': 310.0})
        model = create_model_from_config(self.config)
        self.assertEqual(model.soc, 0.5)
        self.assertEqual(model.temperature, 310.0)


if __name__ == '__main__':
    unittest.main()
