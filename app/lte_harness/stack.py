"""Interface to the external radio-access / core-network stack"""

import importlib
from abc import ABC, abstractmethod
from typing import List

from .handover import EventAggregator, HandoverPolicy
from .network import FlowDescriptor, FlowRecord, Sector, Terminal
from .scenario_loader import ExperimentConfig


class StackSetupError(RuntimeError):
    """The radio stack is unavailable or rejected the configuration."""


class RadioStack(ABC):
    """What the harness needs from a radio simulator.

    Calls arrive in this order: configure, install_topology,
    install_terminals, install_traffic, connect_notifications, run,
    collect_flow_records, destroy. Setup methods raise StackSetupError when
    the stack rejects a parameter; nothing may be simulated before run().
    """

    @abstractmethod
    def configure(self, config: ExperimentConfig, policy: HandoverPolicy):
        """Apply run-wide parameters and activate the handover policy"""

    @abstractmethod
    def install_topology(self, sectors: List[Sector]):
        """Create one cell per sector at its position and orientation"""

    @abstractmethod
    def install_terminals(self, terminals: List[Terminal]):
        """Create the terminals and seed their mobility"""

    @abstractmethod
    def install_traffic(self, plan: List[FlowDescriptor]):
        """Install source/sink applications for each planned flow"""

    @abstractmethod
    def connect_notifications(self, aggregator: EventAggregator):
        """Deliver RRC notifications to the aggregator during run()"""

    @abstractmethod
    def run(self, duration_s: float):
        """Advance simulated time until ``duration_s`` and stop"""

    @abstractmethod
    def now(self) -> float:
        """Current simulated time in seconds"""

    @abstractmethod
    def collect_flow_records(self) -> List[FlowRecord]:
        """Final per-flow counters; valid once run() has returned"""

    def destroy(self):
        """Release simulator resources"""


STACK_BACKENDS = {
    'ns3': 'lte_harness.ns3_stack:Ns3LteStack',
}


def create_stack(name: str) -> RadioStack:
    """Instantiate a registered backend, importing it on demand"""

    if name not in STACK_BACKENDS:
        available = ', '.join(sorted(STACK_BACKENDS))
        raise StackSetupError(f'Unknown radio stack backend: {name} (available: {available})')

    module_name, class_name = STACK_BACKENDS[name].split(':')
    module = importlib.import_module(module_name)
    return getattr(module, class_name)()
