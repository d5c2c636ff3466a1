import pytest

from lte_harness.flowmon import (parse_flowmon_xml, parse_trace_line, parse_trace_lines,
                                 reduce_recorded_run, replay_events)
from lte_harness.handover import EventAggregator, format_trace_line
from lte_harness.network import EventKind, Reporter

from conftest import enb_context, handover_notifications

FLOWMON_XML = """<?xml version="1.0" ?>
<FlowMonitor>
  <FlowStats>
    <Flow flowId="1" timeFirstTxPacket="+1.0e+06ns" timeFirstRxPacket="+2.0e+07ns"
          timeLastTxPacket="+1.0e+10ns" timeLastRxPacket="+1.0e+10ns" delaySum="+0ns"
          jitterSum="+0ns" lastDelay="+0ns" txBytes="130000" rxBytes="125000"
          txPackets="100" rxPackets="96" lostPackets="0" timesForwarded="0">
    </Flow>
    <Flow flowId="2" txBytes="130000" rxBytes="125000" txPackets="100" rxPackets="96"
          lostPackets="0" timesForwarded="0">
    </Flow>
    <Flow flowId="3" txBytes="1200" rxBytes="999" txPackets="3" rxPackets="3"
          lostPackets="0" timesForwarded="0">
    </Flow>
  </FlowStats>
  <Ipv4FlowClassifier>
    <Flow flowId="1" sourceAddress="1.0.0.2" destinationAddress="7.0.0.2" protocol="6"
          sourcePort="49153" destinationPort="10000">
      <Dscp value="0x0" packets="96" />
    </Flow>
    <Flow flowId="2" sourceAddress="1.0.0.2" destinationAddress="7.0.0.3" protocol="6"
          sourcePort="49154" destinationPort="10001" />
    <Flow flowId="3" sourceAddress="7.0.0.2" destinationAddress="1.0.0.2" protocol="6"
          sourcePort="49153" destinationPort="20000" />
    <Flow flowId="4" sourceAddress="7.0.0.3" destinationAddress="1.0.0.2" protocol="6"
          sourcePort="49155" destinationPort="20001" />
  </Ipv4FlowClassifier>
  <FlowProbes />
</FlowMonitor>
"""


def _recorded_trace_lines():
    aggregator = EventAggregator(keep_events=True)
    notifications = handover_notifications(1.0, 1, 1, 4) + handover_notifications(2.5, 2, 4, 7) \
        + handover_notifications(3.0, 1, 4, 8) + handover_notifications(4.0, 2, 7, 1)
    for time, context, imsi, cell_id, rnti, target in notifications:
        aggregator.set_clock(lambda t=time: t)
        aggregator.notify_from_context(context, imsi, cell_id, rnti, target)
    aggregator.set_clock(lambda: 5.0)
    aggregator.notify_from_context(enb_context(3, "HandoverFailureJoining"), 2, 3, 9)
    return [format_trace_line(event) for event in aggregator.events], aggregator


def test_parse_flowmon_xml(tmp_path):
    path = tmp_path / "flowmon.xml"
    path.write_text(FLOWMON_XML)

    records = parse_flowmon_xml(path)

    assert [r.flow_id for r in records] == [1, 2, 3]
    first = records[0]
    assert first.destination_port == 10000
    assert first.rx_bytes == 125000
    assert first.tx_packets == 100
    assert (first.source_address, first.destination_address) == ("1.0.0.2", "7.0.0.2")


def test_flowmon_xml_without_classifier_is_rejected(tmp_path):
    path = tmp_path / "flowmon.xml"
    path.write_text("<FlowMonitor><FlowStats /></FlowMonitor>")

    with pytest.raises(ValueError):
        parse_flowmon_xml(path)


def test_trace_lines_replay_to_same_counts():
    lines, recorded = _recorded_trace_lines()
    replayed = replay_events(parse_trace_lines(lines))

    assert replayed.completed_handovers == recorded.completed_handovers == 4
    assert replayed.handover_starts == recorded.handover_starts
    assert replayed.failures == recorded.failures == {"joining": 1}
    assert [e.kind for e in replayed.events] == [e.kind for e in recorded.events]


def test_parse_trace_line_fields():
    event = parse_trace_line("+3.250000s /NodeList/9/DeviceList/0/LteUeRrc/HandoverStart "
                             "UE IMSI 12: starting handover from CellId 4 to CellId 11")

    assert event.kind == EventKind.HANDOVER_START
    assert event.reporter == Reporter.UE
    assert (event.imsi, event.cell_id, event.target_cell_id) == (12, 4, 11)
    assert event.timestamp == pytest.approx(3.25)


def test_failure_reason_falls_back_to_context():
    event = parse_trace_line("+1.0s /NodeList/2/DeviceList/0/LteEnbRrc/HandoverFailureMaxRach "
                             "eNB CellId 2 IMSI 5 handover failure (RNTI 3)")

    assert event.kind == EventKind.HANDOVER_FAILURE
    assert event.reason == "max-rach"


def test_unrelated_lines_are_skipped():
    assert parse_trace_line("Total Downlink Throughput: 0.2 Mbps") is None
    assert parse_trace_lines(["", "random noise", "2024 - lte_harness - INFO - hi"]) == []


def test_reduce_recorded_run(tmp_path):
    lines, _ = _recorded_trace_lines()
    xml_path = tmp_path / "flowmon.xml"
    log_path = tmp_path / "trace.log"
    xml_path.write_text(FLOWMON_XML)
    log_path.write_text("\n".join(["Simulation started"] + lines + ["done"]) + "\n")

    metrics = reduce_recorded_run(xml_path, log_path, number_of_ues=2, duration_s=10.0)

    assert metrics.total_downlink_bytes == 250000
    assert metrics.total_downlink_throughput_mbps == pytest.approx(0.2)
    assert metrics.completed_handovers == 4
    assert metrics.anoh == pytest.approx(0.2)
    assert metrics.optimization_ratio == pytest.approx(1.0)


@pytest.mark.parametrize("classifier_flow", [
    '<Flow destinationPort="10000" />',
    '<Flow flowId="1" />',
    '<Flow flowId="one" destinationPort="10000" />',
])
def test_flowmon_xml_missing_attributes_are_value_errors(tmp_path, classifier_flow):
    path = tmp_path / "flowmon.xml"
    path.write_text('<FlowMonitor><FlowStats><Flow flowId="1" rxBytes="10" /></FlowStats>'
                    f'<Ipv4FlowClassifier>{classifier_flow}</Ipv4FlowClassifier></FlowMonitor>')

    with pytest.raises(ValueError):
        parse_flowmon_xml(path)


def test_malformed_xml_is_a_value_error(tmp_path):
    path = tmp_path / "flowmon.xml"
    path.write_text("<FlowMonitor><FlowStats>")

    with pytest.raises(ValueError):
        parse_flowmon_xml(path)
