"""ns-3 backend checks; skipped unless the ns-3 Python bindings are installed"""
import pytest

ns_module = pytest.importorskip("ns")

from lte_harness.environment import HandoverExperiment
from lte_harness.ns3_stack import Ns3LteStack, _address_text
from lte_harness.scenario_loader import ExperimentConfig
from lte_harness.stack import StackSetupError


def test_unknown_handover_attribute_is_a_setup_error():
    stack = Ns3LteStack()
    stack.ns = ns_module.ns

    with pytest.raises(StackSetupError):
        stack._attribute_value("Bogus", 1)


def test_address_text():
    assert _address_text(ns_module.ns.Ipv4Address("7.0.0.2")) == "7.0.0.2"


@pytest.mark.slow
def test_short_run_produces_downlink_traffic():
    config = ExperimentConfig(number_of_ues=2, sim_time=1.0, enable_trace=False)

    result = HandoverExperiment(config, Ns3LteStack()).run()

    assert result.metrics.total_downlink_bytes > 0
    assert result.metrics.anoh >= 0.0
