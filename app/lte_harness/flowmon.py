"""Offline reduction of recorded runs.

Reads an ns-3 FlowMonitor XML dump (``FlowMonitor::SerializeToXmlFile``) and
an event trace log as printed during a run, and recomputes the run metrics
without re-running the simulation.
"""

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Iterable, List

from .handover import EventAggregator, FAILURE_REASONS
from .metrics import reduce_run_metrics
from .network import EventKind, FlowRecord, HandoverEvent, Reporter, RunMetrics

logger = logging.getLogger(__name__)

_PREFIX = r'^\+?(?P<t>[0-9.eE+-]+)s (?P<ctx>\S+) '

TRACE_PATTERNS = (
    (EventKind.CONNECTION_ESTABLISHED, Reporter.UE,
     re.compile(_PREFIX + r'UE IMSI (?P<imsi>\d+): connected to CellId (?P<cell>\d+) with RNTI (?P<rnti>\d+)')),
    (EventKind.HANDOVER_START, Reporter.UE,
     re.compile(_PREFIX + r'UE IMSI (?P<imsi>\d+): starting handover from CellId (?P<cell>\d+) to CellId (?P<target>\d+)')),
    (EventKind.HANDOVER_END_OK, Reporter.UE,
     re.compile(_PREFIX + r'UE IMSI (?P<imsi>\d+): completed handover to CellId (?P<cell>\d+)')),
    (EventKind.CONNECTION_ESTABLISHED, Reporter.ENB,
     re.compile(_PREFIX + r'eNB CellId (?P<cell>\d+): UE IMSI (?P<imsi>\d+) connected with RNTI (?P<rnti>\d+)')),
    (EventKind.HANDOVER_START, Reporter.ENB,
     re.compile(_PREFIX + r'eNB CellId (?P<cell>\d+): initiating handover of UE IMSI (?P<imsi>\d+) to CellId (?P<target>\d+)')),
    (EventKind.HANDOVER_END_OK, Reporter.ENB,
     re.compile(_PREFIX + r'eNB CellId (?P<cell>\d+): successful handover of UE IMSI (?P<imsi>\d+)')),
    (EventKind.HANDOVER_FAILURE, Reporter.ENB,
     re.compile(_PREFIX + r'eNB CellId (?P<cell>\d+) IMSI (?P<imsi>\d+) handover failure '
                r'\(RNTI (?P<rnti>\d+)(?:, (?P<reason>[a-z-]+))?\)')),
)


def _reason_from_context(context: str) -> str:
    return FAILURE_REASONS.get(context.rstrip('/').split('/')[-1], 'unknown')


def parse_trace_line(line: str):
    """Return the HandoverEvent for a trace line, or None if it is not one"""

    for kind, reporter, pattern in TRACE_PATTERNS:
        match = pattern.match(line.strip())
        if match is None:
            continue
        groups = match.groupdict()
        context = groups['ctx']
        target = groups.get('target')
        reason = ''
        if kind == EventKind.HANDOVER_FAILURE:
            reason = groups.get('reason') or _reason_from_context(context)
        return HandoverEvent(
            kind=kind,
            reporter=reporter,
            imsi=int(groups['imsi']),
            cell_id=int(groups['cell']),
            rnti=int(groups.get('rnti') or 0),
            timestamp=float(groups['t']),
            target_cell_id=int(target) if target is not None else None,
            reason=reason,
            context='' if context == '-' else context,
        )
    return None


def parse_trace_lines(lines: Iterable[str]) -> List[HandoverEvent]:
    events = []
    for line in lines:
        event = parse_trace_line(line)
        if event is not None:
            events.append(event)
    return events


def parse_trace_log(path) -> List[HandoverEvent]:
    with open(path, 'r') as f:
        events = parse_trace_lines(f)
    logger.info(f'Parsed {len(events)} events from {path}')
    return events


def replay_events(events: Iterable[HandoverEvent]) -> EventAggregator:
    """Feed recorded events through a fresh aggregator"""
    aggregator = EventAggregator(keep_events=True)
    for event in events:
        aggregator.notify(event)
    return aggregator


def _int_attr(element: ET.Element, name: str, path, default=None) -> int:
    value = element.get(name)
    if value is None:
        if default is None:
            raise ValueError(f'{path}: <{element.tag}> without {name}')
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f'{path}: <{element.tag}> has non-integer {name}={value!r}') from None


def parse_flowmon_xml(path) -> List[FlowRecord]:
    """Flow records from a FlowMonitor XML file (needs the Ipv4FlowClassifier section)"""

    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as e:
        raise ValueError(f'{path}: not a FlowMonitor XML file ({e})') from e

    stats: Dict[int, ET.Element] = {}
    for flow in root.iter('Flow'):
        if 'rxBytes' in flow.attrib:
            stats[_int_attr(flow, 'flowId', path)] = flow

    classifier = root.find('Ipv4FlowClassifier')
    if classifier is None:
        raise ValueError(f'{path}: no Ipv4FlowClassifier section')

    records = []
    for flow in classifier.findall('Flow'):
        flow_id = _int_attr(flow, 'flowId', path)
        flow_stats = stats.get(flow_id)
        if flow_stats is None:
            logger.warning(f'{path}: flow {flow_id} has no statistics, skipped')
            continue
        records.append(FlowRecord(
            flow_id=flow_id,
            destination_port=_int_attr(flow, 'destinationPort', path),
            rx_bytes=_int_attr(flow_stats, 'rxBytes', path),
            source_address=flow.get('sourceAddress', ''),
            destination_address=flow.get('destinationAddress', ''),
            protocol=_int_attr(flow, 'protocol', path, 6),
            source_port=_int_attr(flow, 'sourcePort', path, 0),
            tx_bytes=_int_attr(flow_stats, 'txBytes', path, 0),
            tx_packets=_int_attr(flow_stats, 'txPackets', path, 0),
            rx_packets=_int_attr(flow_stats, 'rxPackets', path, 0),
        ))

    logger.info(f'Parsed {len(records)} flows from {Path(path).name}')
    return records


def reduce_recorded_run(flowmon_xml, trace_log, number_of_ues: int, duration_s: float,
                        dl_port: int = 10000, ul_port: int = 20000) -> RunMetrics:
    """Recompute RunMetrics from a FlowMonitor dump and a trace log"""

    records = parse_flowmon_xml(flowmon_xml)
    aggregator = replay_events(parse_trace_log(trace_log))
    return reduce_run_metrics(records, aggregator.completed_handovers, number_of_ues,
                              duration_s, dl_port, ul_port)
