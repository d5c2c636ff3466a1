"""Experiment orchestration: topology, terminals, traffic, run and reduction"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from .handover import EventAggregator, HandoverPolicy, select_handover_policy
from .metrics import reduce_run_metrics, write_results, metrics_to_dict
from .network import FlowDescriptor, FlowRecord, RunMetrics, Site, Terminal
from .network_init import (create_layout_for_config, initialize_terminals_for_config,
                           sector_sequence)
from .plotting import plot_topology
from .scenario_loader import ExperimentConfig, validate_config, config_to_mapping
from .stack import RadioStack, create_stack
from .traffic import build_traffic_plan

logger = logging.getLogger(__name__)


@dataclass
class ExperimentResult:
    config: ExperimentConfig
    policy: HandoverPolicy
    metrics: RunMetrics
    sites: List[Site] = field(default_factory=list)
    terminals: List[Terminal] = field(default_factory=list)
    plan: List[FlowDescriptor] = field(default_factory=list)
    flow_records: List[FlowRecord] = field(default_factory=list)
    aggregator: Optional[EventAggregator] = None

    def summary(self) -> Dict[str, Any]:
        aggregator = self.aggregator
        return {
            'metrics': metrics_to_dict(self.metrics),
            'handover_policy': self.policy.name,
            'handover_starts': aggregator.handover_starts if aggregator else 0,
            'connections': aggregator.connections if aggregator else 0,
            'handover_failures': dict(aggregator.failures) if aggregator else {},
            'flows': len(self.flow_records),
            'config': config_to_mapping(self.config),
        }


class HandoverExperiment:
    """One run of the handover experiment against a RadioStack"""

    def __init__(self, config: ExperimentConfig, stack: Optional[RadioStack] = None):
        self.config = validate_config(config)
        self.stack = stack
        self.rng = np.random.RandomState(config.seed)

        self.policy = select_handover_policy(config)
        self.aggregator = EventAggregator(trace=config.enable_trace)

        self.sites: List[Site] = []
        self.terminals: List[Terminal] = []
        self.plan: List[FlowDescriptor] = []

    def build(self):
        """Generate topology, terminal kinematics and the traffic plan"""

        self.sites = create_layout_for_config(self.config)
        self.terminals = initialize_terminals_for_config(self.config, self.rng)
        self.plan = build_traffic_plan(self.config, self.rng)

        logger.info(f'Built {len(self.sites)} sites, {len(sector_sequence(self.sites))} sectors, '
                    f'{len(self.terminals)} UEs, {len(self.plan)} flows')

    def run(self) -> ExperimentResult:
        if not self.sites:
            self.build()

        if self.stack is None:
            self.stack = create_stack(self.config.backend)
        stack = self.stack
        self.aggregator.reset()

        try:
            stack.configure(self.config, self.policy)
            stack.install_topology(sector_sequence(self.sites))
            stack.install_terminals(self.terminals)
            stack.install_traffic(self.plan)
            stack.connect_notifications(self.aggregator)

            stack.run(self.config.sim_time)

            flow_records = stack.collect_flow_records()
        finally:
            stack.destroy()

        metrics = reduce_run_metrics(
            flow_records,
            self.aggregator.completed_handovers,
            self.config.number_of_ues,
            self.config.sim_time,
            self.config.dl_port,
            self.config.ul_port,
        )

        logger.info(f'Run finished: {self.aggregator.completed_handovers} handovers, '
                    f'{self.aggregator.total_failures} failures, {len(flow_records)} flows')

        return ExperimentResult(
            config=self.config,
            policy=self.policy,
            metrics=metrics,
            sites=self.sites,
            terminals=self.terminals,
            plan=self.plan,
            flow_records=flow_records,
            aggregator=self.aggregator,
        )


def run_experiment(config: ExperimentConfig, stack: Optional[RadioStack] = None) -> ExperimentResult:
    """Run a complete experiment and write the optional outputs"""

    experiment = HandoverExperiment(config, stack)
    experiment.build()

    if config.plot_file:
        plot_topology(experiment.sites, experiment.terminals, config.plot_file,
                      title=config.name)

    result = experiment.run()

    if config.results_file:
        summary = result.summary()
        summary.pop('metrics')
        write_results(config.results_file, result.metrics, summary)

    return result
