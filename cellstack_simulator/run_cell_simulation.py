"""
Cell-Stack Simulation Runner

This script runs a battery cell-stack simulation from a YAML configuration
(or a packaged preset) and writes the time series, a summary and plots.

Command line values override the 'simulation' section of the configuration.

Exit codes:
    0  simulation completed
    1  simulation stopped on an SOC/temperature range violation
    2  invalid configuration
"""

import argparse
import copy
import logging
import sys
from pathlib import Path
from typing import Optional, List, Dict, Any

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from .config.loader import load_config, load_preset, validate_config, create_solver_from_config
from .host.solver import SimulationResult
from .logger import setup_logging, setup_exception_hook
from .plant.fault_types import ConfigurationError, OutOfRangeError

logger = logging.getLogger(__name__)


def apply_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Return a copy of config with the command line overrides applied."""
    config = copy.deepcopy(config)
    sim = config.setdefault('simulation', {}) or {}
    config['simulation'] = sim

    if args.current is not None:
        sim['excitation'] = {'type': 'current', 'value': args.current}
    elif args.voltage is not None:
        sim['excitation'] = {'type': 'voltage', 'value': args.voltage}
    if args.duration is not None:
        sim['duration_s'] = args.duration
    if args.dt is not None:
        sim['dt_s'] = args.dt
    if args.method is not None:
        sim['method'] = args.method
    if args.policy is not None:
        sim['policy'] = args.policy
    if args.initial_soc is not None:
        sim['initial_soc'] = args.initial_soc
    if args.stop_on_fault:
        sim['stop_on_fault'] = True
    return config


def create_plots(result: SimulationResult, output_path: Path):
    """Create time series plots of SOC, voltage/current and heat flow."""
    df = result.data
    fig, axes = plt.subplots(3, 1, figsize=(10, 10), sharex=True)

    axes[0].plot(df['time_s'], df['soc'] * 100.0)
    axes[0].set_ylabel('SOC (%)')
    axes[0].set_title(f"Cell-stack simulation ({result.method.value}, stop: {result.stop_reason})")
    axes[0].grid(True, alpha=0.3)

    axes[1].plot(df['time_s'], df['voltage_v'], label='Terminal voltage')
    axes[1].plot(df['time_s'], df['ocv_v'], '--', label='OCV')
    axes[1].set_ylabel('Voltage (V)')
    axes[1].legend(loc='best')
    axes[1].grid(True, alpha=0.3)
    current_axis = axes[1].twinx()
    current_axis.plot(df['time_s'], df['current_a'], color='tab:red', alpha=0.5)
    current_axis.set_ylabel('Current (A)')

    axes[2].plot(df['time_s'], df['heat_flow_w'])
    axes[2].set_ylabel('Heat flow (W)')
    axes[2].set_xlabel('Time (s)')
    axes[2].grid(True, alpha=0.3)

    fig.tight_layout()
    fig.savefig(output_path / 'simulation.png', dpi=150)
    plt.close(fig)


def run_cell_simulation(config: Dict[str, Any], output_dir: Optional[str] = None,
                        save_plots: bool = False) -> SimulationResult:
    """
    Run one simulation from a configuration dictionary.

    Args:
        config: Configuration dictionary
        output_dir: Output directory for CSV files and plots (None = no output)
        save_plots: Save plots to the output directory

    Returns:
        SimulationResult

    Raises:
        ConfigurationError: If the configuration is invalid
        OutOfRangeError: On a fatal range violation when stop_on_fault is not set
    """
    solver = create_solver_from_config(config)
    sim = config.get('simulation', {}) or {}
    result = solver.run(float(sim.get('duration_s', 3600.0)), float(sim.get('dt_s', 1.0)))

    if output_dir is not None:
        output_path = Path(output_dir)
        result.to_csv(output_path)
        if save_plots:
            create_plots(result, output_path)
    return result


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Run a battery cell-stack equivalent-circuit simulation.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Packaged preset, 1 A discharge until exhausted
  cellstack-sim --preset reference_cell --output-dir output --plot

  # Own configuration with voltage excitation and trapezoidal integration
  cellstack-sim --config my_stack.yaml --voltage 45.0 --duration 3600 --method trapezoidal
        """
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--config', type=str,
                        help='Path to YAML configuration file')
    source.add_argument('--preset', type=str,
                        help='Name of a packaged configuration (e.g. reference_cell)')
    excitation = parser.add_mutually_exclusive_group()
    excitation.add_argument('--current', type=float, default=None,
                            help='Constant terminal current in Amperes (positive = discharge)')
    excitation.add_argument('--voltage', type=float, default=None,
                            help='Constant terminal voltage in Volts')
    parser.add_argument('--duration', type=float, default=None,
                        help='Duration in seconds')
    parser.add_argument('--dt', type=float, default=None,
                        help='Time step in seconds')
    parser.add_argument('--method', type=str, default=None,
                        choices=['euler', 'trapezoidal', 'adaptive'],
                        help='Integration method')
    parser.add_argument('--policy', type=str, default=None,
                        choices=['fatal', 'warn'],
                        help='Reaction to SOC range violations')
    parser.add_argument('--initial-soc', type=float, default=None,
                        help='Initial SOC as fraction (default: soc_max)')
    parser.add_argument('--stop-on-fault', action='store_true',
                        help='Stop and report on a range violation instead of failing')
    parser.add_argument('--output-dir', type=str, default=None,
                        help='Output directory for CSV results')
    parser.add_argument('--plot', action='store_true',
                        help='Save plots to the output directory')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Append log messages to this file')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable verbose logging')

    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.log_file)
    setup_exception_hook()

    try:
        config = load_config(args.config) if args.config else load_preset(args.preset)
        config = apply_overrides(config, args)
        errors = validate_config(config)
        if errors:
            raise ConfigurationError(errors)
    except ConfigurationError as e:
        for problem in e.problems:
            print(f"Configuration error: {problem}", file=sys.stderr)
        return 2

    if args.plot and args.output_dir is None:
        args.output_dir = 'output'

    try:
        result = run_cell_simulation(config, args.output_dir, save_plots=args.plot)
    except ConfigurationError as e:
        for problem in e.problems:
            print(f"Configuration error: {problem}", file=sys.stderr)
        return 2
    except OutOfRangeError as e:
        logger.error("Simulation aborted: %s", e)
        return 1

    summary = result.summary()
    print("\nSimulation completed:")
    for key, value in summary.items():
        if isinstance(value, float):
            print(f"  {key}: {value:.4f}")
        else:
            print(f"  {key}: {value}")

    return 1 if result.stop_reason != 'duration' else 0


if __name__ == '__main__':
    sys.exit(main())
