"""Metrics reduction: throughput, ANOH and optimization ratio"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .network import FlowRecord, RunMetrics
from .traffic import port_range

logger = logging.getLogger(__name__)


def sum_rx_bytes(flow_records: Iterable[FlowRecord], base_port: int, num_terminals: int) -> int:
    """Received bytes over flows whose destination port is in the direction's range"""
    ports = port_range(base_port, num_terminals)
    return sum(int(record.rx_bytes) for record in flow_records if record.destination_port in ports)


def throughput_mbps(total_bytes: int, duration_s: float) -> float:
    if duration_s <= 0:
        return 0.0
    return (total_bytes * 8.0) / (duration_s * 1e6)


def average_handovers(completed_handovers: int, num_terminals: int, duration_s: float) -> float:
    """ANOH: completed handovers per terminal per second"""
    if num_terminals > 0 and duration_s > 0:
        return float(completed_handovers) / (num_terminals * duration_s)
    return 0.0


def reduce_run_metrics(flow_records: Iterable[FlowRecord], completed_handovers: int,
                       num_terminals: int, duration_s: float, dl_port: int,
                       ul_port: Optional[int] = None) -> RunMetrics:
    """Reduce final flow counters and the handover count into RunMetrics.

    The optimization ratio is None when no handover completed; no numeric
    stand-in is invented for that case.
    """

    flow_records = list(flow_records)

    total_dl_bytes = sum_rx_bytes(flow_records, dl_port, num_terminals)
    dl_throughput = throughput_mbps(total_dl_bytes, duration_s)

    ul_throughput = 0.0
    if ul_port is not None:
        ul_throughput = throughput_mbps(sum_rx_bytes(flow_records, ul_port, num_terminals), duration_s)

    anoh = average_handovers(completed_handovers, num_terminals, duration_s)
    optimization_ratio = dl_throughput / anoh if anoh > 0.0 else None

    return RunMetrics(
        total_downlink_throughput_mbps=dl_throughput,
        anoh=anoh,
        optimization_ratio=optimization_ratio,
        total_downlink_bytes=total_dl_bytes,
        total_uplink_throughput_mbps=ul_throughput,
        completed_handovers=completed_handovers,
        number_of_ues=num_terminals,
        duration_s=duration_s,
    )


def format_run_metrics(metrics: RunMetrics) -> List[str]:
    """The three published result lines"""

    lines = [
        f'Total Downlink Throughput: {metrics.total_downlink_throughput_mbps:g} Mbps',
        f'ANOH (Avg handovers per UE per second): {metrics.anoh:g}',
    ]
    if metrics.optimization_ratio is not None:
        lines.append(f'Optimization Ratio (Throughput/ANOH): {metrics.optimization_ratio:g}')
    else:
        lines.append('Optimization Ratio: N/A (no handovers occurred)')
    return lines


def metrics_to_dict(metrics: RunMetrics) -> Dict[str, Any]:
    return {
        'total_downlink_throughput_mbps': metrics.total_downlink_throughput_mbps,
        'anoh': metrics.anoh,
        'optimization_ratio': metrics.optimization_ratio,
        'total_downlink_bytes': metrics.total_downlink_bytes,
        'total_uplink_throughput_mbps': metrics.total_uplink_throughput_mbps,
        'completed_handovers': metrics.completed_handovers,
        'number_of_ues': metrics.number_of_ues,
        'duration_s': metrics.duration_s,
    }


def write_results(path: str, metrics: RunMetrics, extra: Optional[Dict[str, Any]] = None):
    """Write metrics (plus any extra sections) as JSON"""

    payload = {'metrics': metrics_to_dict(metrics)}
    if extra:
        payload.update(extra)

    out_path = Path(path)
    if out_path.parent and not out_path.parent.exists():
        out_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f'Created directory: {out_path.parent}')

    with open(out_path, 'w') as f:
        json.dump(payload, f, indent=2)

    logger.info(f'Results written to {out_path}')
