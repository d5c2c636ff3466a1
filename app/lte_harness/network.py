"""Network entities: Sites, Sectors, Terminals, events and flow records"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
import numpy as np


@dataclass(frozen=True)
class Sector:
    id: int  # cell id, 1-based
    site_id: int
    sector_index: int
    x: float
    y: float
    z: float
    orientation_deg: float
    beamwidth_deg: float
    tx_power_dbm: float

    @property
    def position(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class Site:
    id: int
    x: float
    y: float
    sectors: Tuple[Sector, ...] = ()


@dataclass
class Terminal:
    id: int
    x: float
    y: float
    speed_mps: float
    heading: float  # radians, [0, 2*pi)

    @property
    def position(self) -> Tuple[float, float, float]:
        return (self.x, self.y, 0.0)

    @property
    def velocity(self) -> Tuple[float, float, float]:
        return (self.speed_mps * np.cos(self.heading),
                self.speed_mps * np.sin(self.heading),
                0.0)


class EventKind(Enum):
    CONNECTION_ESTABLISHED = 'ConnectionEstablished'
    HANDOVER_START = 'HandoverStart'
    HANDOVER_END_OK = 'HandoverEndOk'
    HANDOVER_FAILURE = 'HandoverFailure'


class Reporter(Enum):
    UE = 'LteUeRrc'
    ENB = 'LteEnbRrc'


@dataclass
class HandoverEvent:
    kind: EventKind
    reporter: Reporter
    imsi: int
    cell_id: int
    rnti: int
    timestamp: float
    target_cell_id: Optional[int] = None
    reason: str = ''  # failure cause: no-preamble, max-rach, leaving, joining
    context: str = ''


class FlowDirection(Enum):
    DOWNLINK = 'dl'
    UPLINK = 'ul'


@dataclass
class FlowDescriptor:
    terminal_id: int
    direction: FlowDirection
    port: int
    data_rate: str
    packet_size: int
    start_time: float  # source application start (s)
    sink_start_time: float  # packet sink start (s)
    stop_time: float


@dataclass(frozen=True)
class FlowRecord:
    flow_id: int
    destination_port: int
    rx_bytes: int
    source_address: str = ''
    destination_address: str = ''
    protocol: int = 6
    source_port: int = 0
    tx_bytes: int = 0
    tx_packets: int = 0
    rx_packets: int = 0


@dataclass(frozen=True)
class RunMetrics:
    total_downlink_throughput_mbps: float
    anoh: float
    optimization_ratio: Optional[float]
    total_downlink_bytes: int = 0
    total_uplink_throughput_mbps: float = 0.0
    completed_handovers: int = 0
    number_of_ues: int = 0
    duration_s: float = 0.0
