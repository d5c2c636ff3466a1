"""LTE handover experiment harness: throughput, ANOH and optimization ratio"""

from .environment import HandoverExperiment, ExperimentResult, run_experiment
from .handover import (EventAggregator, A3RsrpPolicy, A2A4RsrqPolicy,
                       select_handover_policy)
from .metrics import reduce_run_metrics, format_run_metrics
from .network import Site, Sector, Terminal, FlowDescriptor, FlowRecord, RunMetrics
from .network_init import create_layout, initialize_terminals
from .scenario_loader import (ExperimentConfig, ConfigurationError,
                              load_experiment_config, validate_config)
from .stack import RadioStack, StackSetupError, create_stack
from .traffic import build_traffic_plan

__all__ = [
    'HandoverExperiment', 'ExperimentResult', 'run_experiment',
    'EventAggregator', 'A3RsrpPolicy', 'A2A4RsrqPolicy', 'select_handover_policy',
    'reduce_run_metrics', 'format_run_metrics',
    'Site', 'Sector', 'Terminal', 'FlowDescriptor', 'FlowRecord', 'RunMetrics',
    'create_layout', 'initialize_terminals',
    'ExperimentConfig', 'ConfigurationError', 'load_experiment_config', 'validate_config',
    'RadioStack', 'StackSetupError', 'create_stack',
    'build_traffic_plan',
]
