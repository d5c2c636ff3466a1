#!/usr/bin/env python3
"""
Run all scenarios in a directory and write results.txt
"""

import sys
from pathlib import Path

# Add app directory to path
sys.path.insert(0, str(Path(__file__).parent))

from lte_harness import run_experiment, load_experiment_config, ConfigurationError, StackSetupError
from lte_harness.logging_config import setup_logging
from lte_harness.scenario_loader import list_scenarios


def load_scenarios_from_directory(scenarios_dir: str = 'scenarios'):
    """
    Find all scenario files in a directory

    Args:
        scenarios_dir: Directory containing scenario JSON/YAML files

    Returns:
        List of (scenario name, file path) pairs, sorted by name
    """
    return list(list_scenarios(Path(scenarios_dir)).items())


def format_result_line(name: str, metrics) -> str:
    ratio = 'N/A' if metrics.optimization_ratio is None else f'{metrics.optimization_ratio:.6f}'
    return (f'{name} {metrics.total_downlink_throughput_mbps:.6f} '
            f'{metrics.anoh:.6f} {ratio}')


def run_suite(scenarios_dir: str = 'scenarios', results_file: str = 'results.txt',
              stack_factory=None):
    """Run every scenario and write one line per scenario to ``results_file``.

    Each line is ``<name> <throughput Mbps> <ANOH> <ratio>``. A scenario that
    fails to set up is reported as ``<name> ERROR`` and the suite continues.
    """

    suite = load_scenarios_from_directory(scenarios_dir)

    if not suite:
        print(f'Error: No scenario files found in {scenarios_dir}/')
        return []

    lines = []

    print(f'\n=== Running Scenario Suite ({len(suite)} scenarios) ===\n')

    for i, (name, path) in enumerate(suite, 1):
        print(f'\n--- Scenario {i}/{len(suite)}: {name} ---')

        try:
            config = load_experiment_config(str(path))

            # Skip scenario if simTime is 0
            if config.sim_time <= 0:
                print(f'Skipping scenario {name}: simTime={config.sim_time}')
                continue

            stack = stack_factory() if stack_factory is not None else None
            result = run_experiment(config, stack)
        except (ConfigurationError, StackSetupError) as e:
            print(f'Error in scenario {name}: {e}')
            lines.append(f'{name} ERROR')
            continue

        metrics = result.metrics
        print(f'\nResults for {name}:')
        print(f'  Throughput: {metrics.total_downlink_throughput_mbps:.3f} Mbps')
        print(f'  ANOH: {metrics.anoh:.4f}')
        print(f'  Handovers: {metrics.completed_handovers} '
              f'(failures: {result.aggregator.total_failures})')
        lines.append(format_result_line(name, metrics))

    write_results_file(lines, results_file)
    return lines


def write_results_file(lines, filename: str = 'results.txt'):
    """Write one summary line per scenario"""

    with open(filename, 'w') as f:
        for line in lines:
            f.write(f'{line}\n')

    print(f'\nWritten {len(lines)} scenario results to {filename}')


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Run all handover scenarios')
    parser.add_argument('--scenarios-dir', type=str,
                        default=str(Path(__file__).parent / 'scenarios'),
                        help='Directory containing scenario files (default: app/scenarios)')
    parser.add_argument('--results-file', type=str, default='results.txt',
                        help='Output file (default: results.txt)')
    parser.add_argument('--log-level', type=str, default='WARNING')

    args = parser.parse_args()
    setup_logging(args.log_level)
    run_suite(scenarios_dir=args.scenarios_dir, results_file=args.results_file)
