"""Handover policy selection and handover event bookkeeping"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Union

from .network import EventKind, HandoverEvent, Reporter
from .scenario_loader import ExperimentConfig

logger = logging.getLogger(__name__)
trace_logger = logging.getLogger('lte_harness.trace')


@dataclass(frozen=True)
class A3RsrpPolicy:
    """Strongest-cell handover on RSRP with hysteresis and time-to-trigger"""
    hysteresis_db: float
    time_to_trigger_ms: int

    name: ClassVar[str] = 'A3-RSRP'
    type_id: ClassVar[str] = 'ns3::A3RsrpHandoverAlgorithm'

    def attributes(self) -> Dict[str, Any]:
        return {
            'Hysteresis': self.hysteresis_db,
            'TimeToTrigger': self.time_to_trigger_ms,
        }


@dataclass(frozen=True)
class A2A4RsrqPolicy:
    """Serving-cell RSRQ threshold (A2) plus neighbour offset (A4)"""
    serving_cell_threshold_db: int
    neighbour_cell_offset_db: int

    name: ClassVar[str] = 'A2-A4-RSRQ'
    type_id: ClassVar[str] = 'ns3::A2A4RsrqHandoverAlgorithm'

    def attributes(self) -> Dict[str, Any]:
        return {
            'ServingCellThreshold': self.serving_cell_threshold_db,
            'NeighbourCellOffset': self.neighbour_cell_offset_db,
        }


HandoverPolicy = Union[A3RsrpPolicy, A2A4RsrqPolicy]


def select_handover_policy(config: ExperimentConfig) -> HandoverPolicy:
    """Pick exactly one handover policy; parameters are passed through as-is"""

    if config.use_a2a4:
        policy = A2A4RsrqPolicy(
            serving_cell_threshold_db=config.serving_cell_threshold,
            neighbour_cell_offset_db=config.neighbour_cell_offset,
        )
    else:
        policy = A3RsrpPolicy(
            hysteresis_db=config.hysteresis,
            time_to_trigger_ms=config.time_to_trigger,
        )

    logger.info(f'Handover policy {policy.name}: {policy.attributes()}')
    return policy


FAILURE_REASONS = {
    'HandoverFailureNoPreamble': 'no-preamble',
    'HandoverFailureMaxRach': 'max-rach',
    'HandoverFailureLeaving': 'leaving',
    'HandoverFailureJoining': 'joining',
}


def format_trace_line(event: HandoverEvent) -> str:
    """Human readable trace line for one event"""

    prefix = f'+{event.timestamp:.6f}s {event.context or "-"}'
    kind = event.kind

    if kind == EventKind.HANDOVER_FAILURE:
        return (f'{prefix} eNB CellId {event.cell_id} IMSI {event.imsi} '
                f'handover failure (RNTI {event.rnti}, {event.reason})')

    if event.reporter == Reporter.UE:
        if kind == EventKind.CONNECTION_ESTABLISHED:
            text = f'connected to CellId {event.cell_id} with RNTI {event.rnti}'
        elif kind == EventKind.HANDOVER_START:
            text = f'starting handover from CellId {event.cell_id} to CellId {event.target_cell_id}'
        else:
            text = f'completed handover to CellId {event.cell_id}'
        return f'{prefix} UE IMSI {event.imsi}: {text}'

    if kind == EventKind.CONNECTION_ESTABLISHED:
        text = f'UE IMSI {event.imsi} connected with RNTI {event.rnti}'
    elif kind == EventKind.HANDOVER_START:
        text = f'initiating handover of UE IMSI {event.imsi} to CellId {event.target_cell_id}'
    else:
        text = f'successful handover of UE IMSI {event.imsi}'
    return f'{prefix} eNB CellId {event.cell_id}: {text}'


class EventAggregator:
    """Consumes RRC notifications from the radio stack.

    Only a UE-reported HandoverEndOk counts as a completed handover: the eNB
    side reports the same handover a second time. Everything else is kept
    for tracing and per-kind statistics. Callbacks are delivered from a
    single-threaded event loop, so no locking is done.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None,
                 trace: bool = False, keep_events: bool = False):
        self._clock = clock
        self.trace = trace
        self.keep_events = keep_events
        self.reset()

    def reset(self):
        self.completed_handovers = 0
        self.handover_starts = 0
        self.connections = 0
        self.failures: Counter = Counter()
        self.events: List[HandoverEvent] = []

    def set_clock(self, clock: Callable[[], float]):
        self._clock = clock

    def now(self) -> float:
        return float(self._clock()) if self._clock is not None else 0.0

    @property
    def total_failures(self) -> int:
        return sum(self.failures.values())

    def notify(self, event: HandoverEvent):
        """Account for one event; the single entry point for all handlers"""

        if event.reporter == Reporter.UE:
            if event.kind == EventKind.HANDOVER_END_OK:
                self.completed_handovers += 1
            elif event.kind == EventKind.HANDOVER_START:
                self.handover_starts += 1
            elif event.kind == EventKind.CONNECTION_ESTABLISHED:
                self.connections += 1

        if event.kind == EventKind.HANDOVER_FAILURE:
            self.failures[event.reason] += 1
            logger.warning(f'Handover failure ({event.reason}) for IMSI {event.imsi} '
                           f'at CellId {event.cell_id}, t={event.timestamp:.3f}s')

        if self.keep_events:
            self.events.append(event)
        if self.trace:
            trace_logger.info(format_trace_line(event))

    def on_connection_established(self, reporter: Reporter, imsi: int, cell_id: int,
                                  rnti: int, context: str = ''):
        self.notify(HandoverEvent(EventKind.CONNECTION_ESTABLISHED, reporter, imsi,
                                  cell_id, rnti, self.now(), context=context))

    def on_handover_start(self, reporter: Reporter, imsi: int, cell_id: int, rnti: int,
                          target_cell_id: int, context: str = ''):
        self.notify(HandoverEvent(EventKind.HANDOVER_START, reporter, imsi, cell_id, rnti,
                                  self.now(), target_cell_id=target_cell_id, context=context))

    def on_handover_end_ok(self, reporter: Reporter, imsi: int, cell_id: int,
                           rnti: int, context: str = ''):
        self.notify(HandoverEvent(EventKind.HANDOVER_END_OK, reporter, imsi, cell_id,
                                  rnti, self.now(), context=context))

    def on_handover_failure(self, imsi: int, cell_id: int, rnti: int,
                            reason: str, context: str = ''):
        self.notify(HandoverEvent(EventKind.HANDOVER_FAILURE, Reporter.ENB, imsi, cell_id,
                                  rnti, self.now(), reason=reason, context=context))

    def notify_from_context(self, context: str, imsi: int, cell_id: int, rnti: int,
                            target_cell_id: Optional[int] = None):
        """Route a trace-source notification by its config path.

        ``context`` looks like ``/NodeList/3/DeviceList/0/LteUeRrc/HandoverEndOk``.
        """

        parts = context.rstrip('/').split('/')
        if len(parts) < 2:
            raise ValueError(f'Unrecognised trace context: {context}')
        reporter_name, source = parts[-2], parts[-1]

        if source in FAILURE_REASONS:
            self.on_handover_failure(imsi, cell_id, rnti, FAILURE_REASONS[source], context)
            return

        try:
            reporter = Reporter(reporter_name)
        except ValueError:
            raise ValueError(f'Unrecognised trace context: {context}') from None

        if source == 'ConnectionEstablished':
            self.on_connection_established(reporter, imsi, cell_id, rnti, context)
        elif source == 'HandoverStart':
            self.on_handover_start(reporter, imsi, cell_id, rnti, target_cell_id, context)
        elif source == 'HandoverEndOk':
            self.on_handover_end_ok(reporter, imsi, cell_id, rnti, context)
        else:
            raise ValueError(f'Unrecognised trace context: {context}')
