"""Shared fixtures for the harness tests.

Provides an in-memory RadioStack that replays scripted RRC notifications and
returns canned flow records, so the orchestration can be exercised without
ns-3.
"""
import logging
import sys
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).parent.absolute()
PROJECT_ROOT = TESTS_DIR.parent
APP_DIR = PROJECT_ROOT / "app"

if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from lte_harness.network import FlowRecord
from lte_harness.scenario_loader import ExperimentConfig
from lte_harness.stack import RadioStack, StackSetupError


def ue_context(node: int, source: str) -> str:
    return f"/NodeList/{node}/DeviceList/0/LteUeRrc/{source}"


def enb_context(node: int, source: str) -> str:
    return f"/NodeList/{node}/DeviceList/0/LteEnbRrc/{source}"


def handover_notifications(time: float, imsi: int, source_cell: int, target_cell: int):
    """The six notifications of one successful X2 handover, UE and eNB side"""
    ue_node = 100 + imsi
    return [
        (time, enb_context(source_cell, "HandoverStart"), imsi, source_cell, 1, target_cell),
        (time, ue_context(ue_node, "HandoverStart"), imsi, source_cell, 1, target_cell),
        (time + 0.01, ue_context(ue_node, "ConnectionEstablished"), imsi, target_cell, 2, None),
        (time + 0.02, enb_context(target_cell, "HandoverEndOk"), imsi, target_cell, 2, None),
        (time + 0.02, ue_context(ue_node, "HandoverEndOk"), imsi, target_cell, 2, None),
    ]


class FakeRadioStack(RadioStack):
    """Scripted stand-in for the radio simulator.

    ``notifications`` are (time, context, imsi, cellId, rnti, targetCellId)
    tuples delivered in order during run(); ``fail_on`` names a method that
    raises StackSetupError.
    """

    def __init__(self, notifications=(), flow_records=(), fail_on=None):
        self.notifications = sorted(notifications, key=lambda n: n[0])
        self.flow_records = list(flow_records)
        self.fail_on = fail_on
        self.calls = []
        self.destroyed = False
        self.aggregator = None
        self.counter_history = []
        self._now = 0.0

    def _call(self, name):
        self.calls.append(name)
        if name == self.fail_on:
            raise StackSetupError(f"{name} rejected by fake stack")

    def configure(self, config, policy):
        self._call("configure")
        self.config = config
        self.policy = policy

    def install_topology(self, sectors):
        self._call("install_topology")
        self.sectors = list(sectors)

    def install_terminals(self, terminals):
        self._call("install_terminals")
        self.terminals = list(terminals)

    def install_traffic(self, plan):
        self._call("install_traffic")
        self.plan = list(plan)

    def connect_notifications(self, aggregator):
        self._call("connect_notifications")
        self.aggregator = aggregator
        aggregator.set_clock(self.now)

    def run(self, duration_s):
        self._call("run")
        for time, context, imsi, cell_id, rnti, target in self.notifications:
            if time > duration_s:
                break
            self._now = time
            self.aggregator.notify_from_context(context, imsi, cell_id, rnti, target)
            self.counter_history.append(self.aggregator.completed_handovers)
        self._now = duration_s

    def now(self):
        return self._now

    def collect_flow_records(self):
        self._call("collect_flow_records")
        return list(self.flow_records)

    def destroy(self):
        self.calls.append("destroy")
        self.destroyed = True


@pytest.fixture
def small_config():
    """Two terminals for ten seconds, quiet logging"""
    return ExperimentConfig(number_of_ues=2, sim_time=10.0, enable_trace=False,
                            log_level="WARNING")


@pytest.fixture
def literal_flow_records():
    return [
        FlowRecord(flow_id=1, destination_port=10000, rx_bytes=125000),
        FlowRecord(flow_id=2, destination_port=10001, rx_bytes=125000),
        FlowRecord(flow_id=3, destination_port=20000, rx_bytes=999),
    ]


@pytest.fixture
def fake_stack_factory():
    def factory(**kwargs):
        return FakeRadioStack(**kwargs)
    return factory


@pytest.fixture(autouse=True)
def reset_package_logging():
    """Undo setup_logging() so handlers never outlive a test's captured streams"""
    yield
    for name in ("lte_harness", "lte_harness.trace"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
