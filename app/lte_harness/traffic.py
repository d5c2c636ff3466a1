"""Full-buffer traffic plan: per-terminal downlink/uplink flows and ports"""

import logging
from typing import List, Optional

import numpy as np

from .network import FlowDescriptor, FlowDirection
from .scenario_loader import ExperimentConfig

logger = logging.getLogger(__name__)


def port_range(base_port: int, num_terminals: int) -> range:
    """Ports of one direction; terminal ``i`` owns ``base_port + i``"""
    return range(base_port, base_port + num_terminals)


def flow_direction(destination_port: int, config: ExperimentConfig) -> Optional[FlowDirection]:
    """Classify a flow by destination port, or None for foreign traffic"""
    if destination_port in port_range(config.dl_port, config.number_of_ues):
        return FlowDirection.DOWNLINK
    if destination_port in port_range(config.ul_port, config.number_of_ues):
        return FlowDirection.UPLINK
    return None


def build_traffic_plan(config: ExperimentConfig, rng: np.random.RandomState) -> List[FlowDescriptor]:
    """Schedule one full-buffer flow per terminal and enabled direction.

    Source and sink start times are drawn independently from
    U[0, start_jitter] so flows do not start in lockstep; every flow stops at
    the end of the run.
    """

    directions = []
    if not config.disable_dl:
        directions.append((FlowDirection.DOWNLINK, config.dl_port))
    if not config.disable_ul:
        directions.append((FlowDirection.UPLINK, config.ul_port))

    plan = []
    for terminal_id in range(config.number_of_ues):
        for direction, base_port in directions:
            start_time = rng.uniform(0, config.start_jitter)
            sink_start_time = rng.uniform(0, config.start_jitter)
            plan.append(FlowDescriptor(
                terminal_id=terminal_id,
                direction=direction,
                port=base_port + terminal_id,
                data_rate=config.data_rate,
                packet_size=config.packet_size,
                start_time=float(start_time),
                sink_start_time=float(sink_start_time),
                stop_time=config.sim_time,
            ))

    if not directions:
        logger.warning('Both downlink and uplink traffic are disabled')
    logger.debug(f'Planned {len(plan)} flows for {config.number_of_ues} terminals')
    return plan
