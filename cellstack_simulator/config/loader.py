"""
Cell-Stack Configuration Loading

This module provides functions to load and save cell-stack configurations
from YAML files and to build a ready-to-run model and host solver from them.

File layout:
    name: <config name>
    cell: {ns, np, qnom_as, soc_min, soc_max, ocv_min_v, ocv_max_v, ...}
    simulation: {excitation, duration_s, dt_s, method, policy, stop_on_fault,
                 operating_temperature_k, thermal}
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Union

import yaml

from ..plant.fault_types import ConfigurationError, RangePolicy
from ..plant.parameters import CellParameters, validate_parameters
from ..plant.thermal_loss import LumpedThermalMass
from ..plant.cell_model import BatteryCellModel
from ..host.solver import HostSolver, Excitation, IntegrationMethod

logger = logging.getLogger(__name__)

PRESETS_DIR = Path(__file__).parent / 'presets'

THERMAL_KEYS = ('heat_capacity_j_per_k', 'thermal_resistance_k_per_w', 'ambient_k', 'initial_k')


def load_config(yaml_file: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration dictionary from YAML file.

    Args:
        yaml_file: Path to YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If the file does not contain a mapping
    """
    with open(yaml_file, 'r') as f:
        config = yaml.safe_load(f)

    if not isinstance(config, dict):
        raise ConfigurationError([f"{yaml_file}: top level must be a mapping"])
    logger.debug("Loaded configuration '%s' from %s", config.get('name', '?'), yaml_file)
    return config


def save_config(config: Dict[str, Any], yaml_file: Union[str, Path]):
    """
    Save configuration dictionary to YAML file.

    Args:
        config: Configuration dictionary
        yaml_file: Path to output YAML file
    """
    with open(yaml_file, 'w') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def load_parameters(yaml_file: Union[str, Path]) -> CellParameters:
    """Load the 'cell' section of a YAML file as CellParameters."""
    config = load_config(yaml_file)
    if 'cell' not in config:
        raise ConfigurationError([f"{yaml_file}: missing required section 'cell'"])
    return CellParameters.from_dict(config['cell'])


def save_parameters(parameters: CellParameters, yaml_file: Union[str, Path], name: Optional[str] = None):
    """Save CellParameters as the 'cell' section of a YAML file."""
    config = {'name': name or Path(yaml_file).stem, 'cell': parameters.to_dict()}
    save_config(config, yaml_file)


def load_preset(name: str) -> Dict[str, Any]:
    """Load one of the packaged configurations by name (file stem)."""
    path = PRESETS_DIR / f"{name}.yaml"
    if not path.exists():
        available = ", ".join(sorted(p.stem for p in PRESETS_DIR.glob('*.yaml')))
        raise ConfigurationError([f"Unknown preset: {name}. Available: {available}"])
    return load_config(path)


def _number_error(value: Any, name: str, positive: bool = False) -> Optional[str]:
    """Problem with a numeric setting, or None if it is valid."""
    if isinstance(value, bool):
        return f"{name} must be numeric, got {value!r}"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return f"{name} must be numeric, got {value!r}"
    if positive and not number > 0:
        return f"{name} must be > 0, got {value}"
    return None


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration.

    Args:
        config: Configuration dictionary

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    if 'cell' not in config:
        errors.append("Missing required section: 'cell'")
    elif not isinstance(config['cell'], dict):
        errors.append("Section 'cell' must be a mapping")
    else:
        errors.extend(validate_parameters(config['cell']))

    errors.extend(validate_simulation(config.get('simulation')))
    return errors


def validate_simulation(sim: Optional[Dict[str, Any]]) -> List[str]:
    """Validate the 'simulation' section of a configuration."""
    sim = sim or {}
    if not isinstance(sim, dict):
        return ["Section 'simulation' must be a mapping"]

    errors = []
    # (key, must be positive, may be null)
    numeric = [
        ('duration_s', True, False),
        ('dt_s', True, False),
        ('initial_soc', False, True),
        ('operating_temperature_k', True, True),
    ]
    for key, positive, nullable in numeric:
        if key in sim and not (nullable and sim[key] is None):
            error = _number_error(sim[key], f"simulation.{key}", positive)
            if error:
                errors.append(error)

    if 'stop_on_fault' in sim and not isinstance(sim['stop_on_fault'], bool):
        errors.append(f"simulation.stop_on_fault must be true or false, got {sim['stop_on_fault']!r}")

    for key, parse in (('method', IntegrationMethod.from_string), ('policy', RangePolicy.from_string)):
        if key in sim:
            try:
                parse(str(sim[key]))
            except ConfigurationError as e:
                errors.extend(e.problems)

    if 'excitation' in sim:
        try:
            Excitation.from_dict(sim['excitation'])
        except ConfigurationError as e:
            errors.extend(e.problems)
        except (TypeError, ValueError, AttributeError) as e:
            errors.append(f"Invalid excitation: {e}")

    thermal = sim.get('thermal')
    if thermal is not None and not isinstance(thermal, dict):
        errors.append("simulation.thermal must be a mapping")
    elif thermal:
        for key in THERMAL_KEYS:
            if key in thermal and not (key == 'initial_k' and thermal[key] is None):
                error = _number_error(thermal[key], f"simulation.thermal.{key}", positive=True)
                if error:
                    errors.append(error)

    return errors


class RunConfig:
    """Simulation settings of a configuration ('simulation' section)."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        data = data or {}
        errors = validate_simulation(data)
        if errors:
            raise ConfigurationError(errors)

        self.excitation = Excitation.from_dict(data.get('excitation', {'type': 'current', 'value': 0.0}))
        self.duration_s = float(data.get('duration_s', 3600.0))
        self.dt_s = float(data.get('dt_s', 1.0))
        self.method = IntegrationMethod.from_string(str(data.get('method', 'euler')))
        self.policy = RangePolicy.from_string(str(data.get('policy', 'fatal')))
        self.stop_on_fault = data.get('stop_on_fault', False)
        initial_soc = data.get('initial_soc')
        self.initial_soc = float(initial_soc) if initial_soc is not None else None
        temperature = data.get('operating_temperature_k')
        self.operating_temperature_k = float(temperature) if temperature is not None else None
        self.thermal = data.get('thermal')

    def build_thermal_sink(self) -> Optional[LumpedThermalMass]:
        if not self.thermal:
            return None
        initial = self.thermal.get('initial_k')
        return LumpedThermalMass(
            heat_capacity=float(self.thermal.get('heat_capacity_j_per_k', 1000.0)),
            thermal_resistance=float(self.thermal.get('thermal_resistance_k_per_w', 2.0)),
            ambient_temperature=float(self.thermal.get('ambient_k', 298.15)),
            initial_temperature=float(initial) if initial is not None else None,
        )


def load_run_config(yaml_file: Union[str, Path]) -> RunConfig:
    """
    Load the 'simulation' section of a YAML file.

    Raises:
        ConfigurationError: If the section holds unknown method, policy or excitation values
    """
    sim = load_config(yaml_file).get('simulation') or {}
    if not isinstance(sim, dict):
        raise ConfigurationError([f"{yaml_file}: section 'simulation' must be a mapping"])
    return RunConfig(sim)


def create_model_from_config(config: Dict[str, Any]) -> BatteryCellModel:
    """
    Create BatteryCellModel from configuration dictionary.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    errors = validate_config(config)
    if errors:
        raise ConfigurationError(errors)

    parameters = CellParameters.from_dict(config['cell'])
    run = RunConfig(config.get('simulation'))
    return BatteryCellModel(
        parameters,
        thermal_sink=run.build_thermal_sink(),
        policy=run.policy,
        operating_temperature=run.operating_temperature_k,
        initial_soc=run.initial_soc,
    )


def create_solver_from_config(config: Dict[str, Any]) -> HostSolver:
    """Create model and host solver from configuration dictionary."""
    model = create_model_from_config(config)
    run = RunConfig(config.get('simulation'))
    return HostSolver(model, run.excitation, method=run.method, stop_on_fault=run.stop_on_fault)
