"""Command line entry points"""

import argparse
import logging
import sys
from typing import List, Optional

from .environment import run_experiment
from .flowmon import reduce_recorded_run
from .metrics import format_run_metrics, write_results
from .logging_config import setup_logging
from .scenario_loader import (CONFIG_KEYS, ConfigurationError, ExperimentConfig,
                              config_from_mapping, load_experiment_config, validate_config)
from .stack import StackSetupError

logger = logging.getLogger(__name__)

CONFIG_HELP = {
    'numberOfUes': 'Number of UEs',
    'numberOfEnbs': 'Number of eNodeBs (total sectors)',
    'simTime': 'Simulation duration (seconds, or with s/ms suffix)',
    'disableDl': 'Disable downlink data flows',
    'disableUl': 'Disable uplink data flows',
    'useA2A4': 'Use A2-A4-RSRQ handover (default: A3-RSRP)',
    'enableFading': 'Enable fading model (EVA/ETU trace)',
    'hysteresis': 'A3-RSRP hysteresis (dB)',
    'timeToTrigger': 'A3-RSRP Time-to-Trigger (ms)',
    'servingCellThreshold': 'A2-A4-RSRQ serving cell threshold (dB)',
    'neighbourCellOffset': 'A2-A4-RSRQ neighbour cell offset (dB)',
    'txPower': 'eNB transmit power (dBm)',
    'minSpeed': 'Minimum UE speed (km/h)',
    'maxSpeed': 'Maximum UE speed (km/h)',
    'fadingTrace': 'Fading trace file path',
    'enableTrace': 'Print connection/handover events to stdout',
    'flowmonXml': 'Write FlowMonitor statistics to this XML file',
    'resultsFile': 'Write metrics and configuration to this JSON file',
    'plotFile': 'Save a topology plot (PNG) to this path',
}

BOOL_KEYS = {key for key, field_name in CONFIG_KEYS.items()
             if isinstance(getattr(ExperimentConfig, field_name), bool)}


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='LTE handover experiment: throughput, ANOH and optimization ratio',
        allow_abbrev=False)
    parser.add_argument('--scenario', type=str, default=None,
                        help='Scenario name (in --scenariosDir) or JSON/YAML file')
    parser.add_argument('--scenariosDir', type=str, default=None,
                        help='Directory containing scenario files (default: app/scenarios)')

    for key in CONFIG_KEYS:
        if key in BOOL_KEYS:
            # --flag, --flag=true, --flag=0 all work, like ns-3 CommandLine
            parser.add_argument(f'--{key}', dest=key, nargs='?', const='true', default=None,
                                metavar='BOOL', help=CONFIG_HELP.get(key))
        else:
            parser.add_argument(f'--{key}', dest=key, default=None, help=CONFIG_HELP.get(key))

    return parser


def config_from_args(args: argparse.Namespace) -> ExperimentConfig:
    """Scenario file (if any) overridden by explicit flags, then validated"""

    if args.scenario:
        config = load_experiment_config(args.scenario, args.scenariosDir, validate=False)
    else:
        config = ExperimentConfig()

    overrides = {key: value for key, value in vars(args).items()
                 if key in CONFIG_KEYS and value is not None}
    return validate_config(config_from_mapping(overrides, base=config))


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except ConfigurationError as e:
        parser.error(str(e))

    setup_logging(config.log_level, trace=config.enable_trace)

    try:
        result = run_experiment(config)
    except ConfigurationError as e:
        logger.error(f'Invalid configuration: {e}')
        return 2
    except StackSetupError as e:
        logger.error(f'Radio stack setup failed: {e}')
        return 1

    for line in format_run_metrics(result.metrics):
        print(line)
    return 0


def build_reduce_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Recompute run metrics from a FlowMonitor XML dump and an event trace log',
        allow_abbrev=False)
    parser.add_argument('flowmon_xml', help='FlowMonitor XML file')
    parser.add_argument('trace_log', help='Trace log captured from a run')
    parser.add_argument('--numberOfUes', type=int, default=ExperimentConfig.number_of_ues)
    parser.add_argument('--simTime', type=str, default=str(ExperimentConfig.sim_time))
    parser.add_argument('--dlPort', type=int, default=ExperimentConfig.dl_port)
    parser.add_argument('--ulPort', type=int, default=ExperimentConfig.ul_port)
    parser.add_argument('--resultsFile', type=str, default='')
    parser.add_argument('--logLevel', type=str, default='WARNING')
    return parser


def reduce_main(argv: Optional[List[str]] = None) -> int:
    parser = build_reduce_parser()
    args = parser.parse_args(argv)

    try:
        config = validate_config(config_from_mapping({
            'numberOfUes': args.numberOfUes,
            'simTime': args.simTime,
            'dlPort': args.dlPort,
            'ulPort': args.ulPort,
            'logLevel': args.logLevel,
        }))
    except ConfigurationError as e:
        parser.error(str(e))

    setup_logging(config.log_level)

    try:
        metrics = reduce_recorded_run(args.flowmon_xml, args.trace_log, config.number_of_ues,
                                      config.sim_time, config.dl_port, config.ul_port)
    except (OSError, ValueError) as e:
        logger.error(f'Could not reduce recorded run: {e}')
        return 1

    for line in format_run_metrics(metrics):
        print(line)
    if args.resultsFile:
        write_results(args.resultsFile, metrics)
    return 0


if __name__ == '__main__':
    sys.exit(main())
