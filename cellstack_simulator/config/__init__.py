"""
Configuration Loading

YAML configuration files for cell parameters and simulation settings,
plus packaged presets.
"""

from .loader import (
    load_config,
    save_config,
    load_parameters,
    save_parameters,
    load_preset,
    load_run_config,
    validate_config,
    validate_simulation,
    RunConfig,
    create_model_from_config,
    create_solver_from_config,
    PRESETS_DIR
)

__all__ = [
    'load_config',
    'save_config',
    'load_parameters',
    'save_parameters',
    'load_preset',
    'load_run_config',
    'validate_config',
    'validate_simulation',
    'RunConfig',
    'create_model_from_config',
    'create_solver_from_config',
    'PRESETS_DIR',
]
