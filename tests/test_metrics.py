import json

import pytest

from lte_harness.metrics import (average_handovers, format_run_metrics, reduce_run_metrics,
                                 sum_rx_bytes, throughput_mbps, write_results)
from lte_harness.network import FlowRecord


def test_literal_scenario(literal_flow_records):
    metrics = reduce_run_metrics(literal_flow_records, completed_handovers=4,
                                 num_terminals=2, duration_s=10.0, dl_port=10000)

    assert metrics.total_downlink_bytes == 250000
    assert metrics.total_downlink_throughput_mbps == pytest.approx(0.2)
    assert metrics.anoh == pytest.approx(0.2)
    assert metrics.optimization_ratio == pytest.approx(1.0)


def test_zero_handovers_has_no_ratio(literal_flow_records):
    metrics = reduce_run_metrics(literal_flow_records, completed_handovers=0,
                                 num_terminals=2, duration_s=10.0, dl_port=10000)

    assert metrics.anoh == 0.0
    assert metrics.optimization_ratio is None
    assert format_run_metrics(metrics)[2] == "Optimization Ratio: N/A (no handovers occurred)"


def test_uplink_is_reduced_separately(literal_flow_records):
    metrics = reduce_run_metrics(literal_flow_records, 4, 2, 10.0, dl_port=10000, ul_port=20000)

    assert metrics.total_uplink_throughput_mbps == pytest.approx(999 * 8 / 1e7)
    assert metrics.total_downlink_throughput_mbps == pytest.approx(0.2)


def test_flows_outside_range_are_ignored():
    records = [
        FlowRecord(flow_id=1, destination_port=10002, rx_bytes=10 ** 9),
        FlowRecord(flow_id=2, destination_port=9999, rx_bytes=10 ** 9),
        FlowRecord(flow_id=3, destination_port=10001, rx_bytes=500),
    ]
    assert sum_rx_bytes(records, 10000, 2) == 500


@pytest.mark.parametrize("num_terminals,duration", [(0, 10.0), (2, 0.0), (0, 0.0)])
def test_degenerate_runs_do_not_divide_by_zero(num_terminals, duration):
    metrics = reduce_run_metrics([], 3, num_terminals, duration, dl_port=10000)

    assert metrics.total_downlink_throughput_mbps == 0.0
    assert metrics.anoh == 0.0
    assert metrics.optimization_ratio is None


def test_helpers():
    assert throughput_mbps(1250000, 1.0) == pytest.approx(10.0)
    assert throughput_mbps(1, -1.0) == 0.0
    assert average_handovers(10, 5, 2.0) == pytest.approx(1.0)


def test_format_lines(literal_flow_records):
    metrics = reduce_run_metrics(literal_flow_records, 4, 2, 10.0, dl_port=10000)

    assert format_run_metrics(metrics) == [
        "Total Downlink Throughput: 0.2 Mbps",
        "ANOH (Avg handovers per UE per second): 0.2",
        "Optimization Ratio (Throughput/ANOH): 1",
    ]


def test_write_results_creates_directory(tmp_path, literal_flow_records):
    metrics = reduce_run_metrics(literal_flow_records, 4, 2, 10.0, dl_port=10000)
    out = tmp_path / "nested" / "run.json"

    write_results(str(out), metrics, {"handover_policy": "A3-RSRP"})

    payload = json.loads(out.read_text())
    assert payload["metrics"]["completed_handovers"] == 4
    assert payload["metrics"]["total_downlink_bytes"] == 250000
    assert payload["handover_policy"] == "A3-RSRP"
