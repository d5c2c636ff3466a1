"""ns-3 LTE backend for the RadioStack interface.

Uses the official ns-3 Python bindings (``from ns import ns``), which are
imported on first use so the rest of the package works without ns-3.
"""

import logging
from typing import List, Optional

from .handover import EventAggregator, HandoverPolicy
from .network import FlowDescriptor, FlowDirection, FlowRecord, Sector, Terminal
from .scenario_loader import ExperimentConfig
from .stack import RadioStack, StackSetupError

logger = logging.getLogger(__name__)

# UE subnet assigned by the EPC helper
UE_NETWORK = ('7.0.0.0', '255.0.0.0')
CORE_NETWORK = ('1.0.0.0', '255.0.0.0')

TRACE_SOURCES = (
    ('LteEnbRrc', 'ConnectionEstablished'),
    ('LteUeRrc', 'ConnectionEstablished'),
    ('LteEnbRrc', 'HandoverStart'),
    ('LteUeRrc', 'HandoverStart'),
    ('LteEnbRrc', 'HandoverEndOk'),
    ('LteUeRrc', 'HandoverEndOk'),
    ('LteEnbRrc', 'HandoverFailureNoPreamble'),
    ('LteEnbRrc', 'HandoverFailureMaxRach'),
    ('LteEnbRrc', 'HandoverFailureLeaving'),
    ('LteEnbRrc', 'HandoverFailureJoining'),
)

# Trace sinks with the exact C++ signatures of the RRC trace sources. They
# forward to one Python callable as (context, imsi, cellId, rnti, targetCellId).
_TRAMPOLINES = r'''
#include <cstdint>
#include <functional>
#include <string>

namespace lte_harness {

std::function<void(std::string, uint64_t, uint16_t, uint16_t, uint16_t)> g_notify;

void SetNotify(std::function<void(std::string, uint64_t, uint16_t, uint16_t, uint16_t)> notify)
{
    g_notify = notify;
}

void RrcNotify(std::string context, uint64_t imsi, uint16_t cellId, uint16_t rnti)
{
    g_notify(context, imsi, cellId, rnti, 0);
}

void RrcHandoverStart(std::string context, uint64_t imsi, uint16_t cellId, uint16_t rnti,
                      uint16_t targetCellId)
{
    g_notify(context, imsi, cellId, rnti, targetCellId);
}

// HandoverFailure* sources report (imsi, rnti, cellId)
void RrcHandoverFailure(std::string context, uint64_t imsi, uint16_t rnti, uint16_t cellId)
{
    g_notify(context, imsi, cellId, rnti, 0);
}

}
'''


def _import_ns():
    try:
        from ns import ns
    except ImportError as e:
        raise StackSetupError(
            'ns-3 Python bindings are not available; install them with "pip install ns3"') from e
    return ns


def _address_text(address) -> str:
    value = int(address.Get())
    return '.'.join(str((value >> shift) & 0xFF) for shift in (24, 16, 8, 0))


class Ns3LteStack(RadioStack):
    """LTE/EPC network on ns-3: 7 sites x 3 sectors, a remote host behind the PGW"""

    def __init__(self):
        self.ns = None
        self.config: Optional[ExperimentConfig] = None
        self.flowmon_xml = ''
        self._notify = None
        self.monitor = None

    def configure(self, config: ExperimentConfig, policy: HandoverPolicy):
        ns = self.ns = _import_ns()
        self.config = config
        self.flowmon_xml = config.flowmon_xml

        try:
            ns.RngSeedManager.SetSeed(config.seed)
            ns.RngSeedManager.SetRun(config.run)

            ns.Config.SetDefault('ns3::UdpClient::Interval', ns.TimeValue(ns.MilliSeconds(10)))
            ns.Config.SetDefault('ns3::UdpClient::MaxPackets', ns.UintegerValue(1000000))
            ns.Config.SetDefault('ns3::LteHelper::UseIdealRrc', ns.BooleanValue(config.use_ideal_rrc))
            ns.Config.SetDefault('ns3::TcpSocket::SegmentSize', ns.UintegerValue(config.tcp_segment_size))
            ns.Config.SetDefault('ns3::LteEnbPhy::TxPower', ns.DoubleValue(config.tx_power))

            self.lte_helper = ns.CreateObject('LteHelper')
            self.epc_helper = ns.CreateObject('PointToPointEpcHelper')
            self.lte_helper.SetEpcHelper(self.epc_helper)
            self.lte_helper.SetSchedulerType(config.scheduler)

            self.lte_helper.SetHandoverAlgorithmType(policy.type_id)
            for name, value in policy.attributes().items():
                self.lte_helper.SetHandoverAlgorithmAttribute(name, self._attribute_value(name, value))

            if config.enable_fading:
                self.lte_helper.SetAttribute('FadingModel', ns.StringValue('ns3::TraceFadingLossModel'))
                self.lte_helper.SetFadingModelAttribute('TraceFilename', ns.StringValue(config.fading_trace))
                self.lte_helper.SetFadingModelAttribute('WindowSize', ns.TimeValue(ns.Seconds(config.fading_window)))
                self.lte_helper.SetFadingModelAttribute('SamplesNum', ns.UintegerValue(config.fading_samples))

            self.lte_helper.SetEnbDeviceAttribute('DlEarfcn', ns.UintegerValue(config.dl_earfcn))
            self.lte_helper.SetEnbDeviceAttribute('UlEarfcn', ns.UintegerValue(config.ul_earfcn))
            self.lte_helper.SetEnbDeviceAttribute('DlBandwidth', ns.UintegerValue(config.dl_bandwidth))
            self.lte_helper.SetEnbDeviceAttribute('UlBandwidth', ns.UintegerValue(config.ul_bandwidth))

            self._create_remote_host()
        except StackSetupError:
            raise
        except Exception as e:
            raise StackSetupError(f'ns-3 rejected the configuration: {e}') from e

        logger.info(f'ns-3 LTE stack configured ({policy.name}, scheduler {config.scheduler})')

    def _attribute_value(self, name, value):
        ns = self.ns
        wrappers = {
            'Hysteresis': lambda v: ns.DoubleValue(float(v)),
            'TimeToTrigger': lambda v: ns.TimeValue(ns.MilliSeconds(int(v))),
            'ServingCellThreshold': lambda v: ns.UintegerValue(int(v)),
            'NeighbourCellOffset': lambda v: ns.UintegerValue(int(v)),
        }
        if name not in wrappers:
            raise StackSetupError(f'Unknown handover algorithm attribute: {name}')
        return wrappers[name](value)

    def _create_remote_host(self):
        """Remote host behind the PGW over a 100 Gb/s point-to-point link"""
        ns = self.ns

        pgw = self.epc_helper.GetPgwNode()
        self.remote_hosts = ns.NodeContainer()
        self.remote_hosts.Create(1)
        self.remote_host = self.remote_hosts.Get(0)

        self.internet = ns.InternetStackHelper()
        self.internet.Install(self.remote_hosts)

        p2ph = ns.PointToPointHelper()
        p2ph.SetDeviceAttribute('DataRate', ns.DataRateValue(ns.DataRate('100Gb/s')))
        p2ph.SetDeviceAttribute('Mtu', ns.UintegerValue(1500))
        p2ph.SetChannelAttribute('Delay', ns.TimeValue(ns.MicroSeconds(10)))
        internet_devices = p2ph.Install(pgw, self.remote_host)

        ipv4h = ns.Ipv4AddressHelper()
        ipv4h.SetBase(ns.Ipv4Address(CORE_NETWORK[0]), ns.Ipv4Mask(CORE_NETWORK[1]))
        internet_ifaces = ipv4h.Assign(internet_devices)
        self.remote_host_addr = internet_ifaces.GetAddress(1)

        self.routing_helper = ns.Ipv4StaticRoutingHelper()
        remote_routing = self.routing_helper.GetStaticRouting(self.remote_host.GetObject[ns.Ipv4]())
        remote_routing.AddNetworkRouteTo(ns.Ipv4Address(UE_NETWORK[0]), ns.Ipv4Mask(UE_NETWORK[1]), 1)

    def install_topology(self, sectors: List[Sector]):
        ns = self.ns

        self.enb_nodes = ns.NodeContainer()
        self.enb_nodes.Create(len(sectors))

        positions = ns.CreateObject('ListPositionAllocator')
        for sector in sectors:
            positions.Add(ns.Vector(sector.x, sector.y, sector.z))

        mobility = ns.MobilityHelper()
        mobility.SetMobilityModel('ns3::ConstantPositionMobilityModel')
        mobility.SetPositionAllocator(positions)
        mobility.Install(self.enb_nodes)

        self.lte_helper.SetEnbAntennaModelType('ns3::CosineAntennaModel')
        self.enb_devs = ns.NetDeviceContainer()
        for i, sector in enumerate(sectors):
            self.lte_helper.SetEnbAntennaModelAttribute('HorizontalBeamwidth', ns.DoubleValue(sector.beamwidth_deg))
            self.lte_helper.SetEnbAntennaModelAttribute('Orientation', ns.DoubleValue(sector.orientation_deg))
            devices = self.lte_helper.InstallEnbDevice(ns.NodeContainer(self.enb_nodes.Get(i)))
            self.enb_devs.Add(devices.Get(0))
        self.lte_helper.SetEnbAntennaModelAttribute('Orientation', ns.DoubleValue(0.0))

        logger.info(f'Installed {len(sectors)} eNB sectors')

    def install_terminals(self, terminals: List[Terminal]):
        ns = self.ns

        self.ue_nodes = ns.NodeContainer()
        self.ue_nodes.Create(len(terminals))

        mobility = ns.MobilityHelper()
        mobility.SetMobilityModel('ns3::ConstantVelocityMobilityModel')
        mobility.Install(self.ue_nodes)
        for i, terminal in enumerate(terminals):
            model = self.ue_nodes.Get(i).GetObject[ns.ConstantVelocityMobilityModel]()
            model.SetPosition(ns.Vector(*(float(v) for v in terminal.position)))
            model.SetVelocity(ns.Vector(*(float(v) for v in terminal.velocity)))

        self.ue_devs = self.lte_helper.InstallUeDevice(self.ue_nodes)
        self.internet.Install(self.ue_nodes)
        self.ue_ifaces = self.epc_helper.AssignUeIpv4Address(ns.NetDeviceContainer(self.ue_devs))

        gateway = self.epc_helper.GetUeDefaultGatewayAddress()
        for i in range(self.ue_nodes.GetN()):
            node = self.ue_nodes.Get(i)
            self.routing_helper.GetStaticRouting(node.GetObject[ns.Ipv4]()).SetDefaultRoute(gateway, 1)
            # initial cell selection picks the strongest eNB
            self.lte_helper.Attach(self.ue_devs.Get(i))

        self.lte_helper.AddX2Interface(self.enb_nodes)
        logger.info(f'Installed and attached {len(terminals)} UEs')

    def install_traffic(self, plan: List[FlowDescriptor]):
        ns = self.ns

        for flow in plan:
            ue_node = self.ue_nodes.Get(flow.terminal_id)
            if flow.direction == FlowDirection.DOWNLINK:
                remote = ns.InetSocketAddress(self.ue_ifaces.GetAddress(flow.terminal_id), flow.port)
                source_node, sink_node = self.remote_host, ue_node
            else:
                remote = ns.InetSocketAddress(self.remote_host_addr, flow.port)
                source_node, sink_node = ue_node, self.remote_host

            client = ns.OnOffHelper('ns3::TcpSocketFactory', remote.ConvertTo())
            client.SetAttribute('DataRate', ns.DataRateValue(ns.DataRate(flow.data_rate)))
            client.SetAttribute('PacketSize', ns.UintegerValue(flow.packet_size))
            # always on: full-buffer source
            client.SetAttribute('OnTime', ns.StringValue('ns3::ConstantRandomVariable[Constant=1]'))
            client.SetAttribute('OffTime', ns.StringValue('ns3::ConstantRandomVariable[Constant=0]'))
            client_apps = client.Install(source_node)

            sink = ns.PacketSinkHelper(
                'ns3::TcpSocketFactory',
                ns.InetSocketAddress(ns.Ipv4Address.GetAny(), flow.port).ConvertTo())
            sink_apps = sink.Install(sink_node)

            client_apps.Start(ns.Seconds(flow.start_time))
            sink_apps.Start(ns.Seconds(flow.sink_start_time))
            client_apps.Stop(ns.Seconds(flow.stop_time))
            sink_apps.Stop(ns.Seconds(flow.stop_time))

        logger.info(f'Installed {len(plan)} full-buffer flows')

    def connect_notifications(self, aggregator: EventAggregator):
        ns = self.ns
        cppyy = ns.cppyy

        if not hasattr(cppyy.gbl, 'lte_harness'):
            cppyy.cppdef(_TRAMPOLINES)
        trampolines = cppyy.gbl.lte_harness

        def notify(context, imsi, cell_id, rnti, target_cell_id):
            aggregator.notify_from_context(str(context), int(imsi), int(cell_id), int(rnti),
                                           int(target_cell_id) or None)

        # keep a reference, the C++ side only holds a wrapper
        self._notify = notify
        trampolines.SetNotify(notify)
        aggregator.set_clock(self.now)

        for reporter, source in TRACE_SOURCES:
            if source == 'HandoverStart':
                sink = trampolines.RrcHandoverStart
            elif source.startswith('HandoverFailure'):
                sink = trampolines.RrcHandoverFailure
            else:
                sink = trampolines.RrcNotify
            ns.Config.Connect(f'/NodeList/*/DeviceList/*/{reporter}/{source}', ns.MakeCallback(sink))

        self.flowmon_helper = ns.FlowMonitorHelper()
        self.monitor = self.flowmon_helper.InstallAll()

    def run(self, duration_s: float):
        ns = self.ns
        logger.info(f'Running ns-3 for {duration_s:g} s of simulated time')
        ns.Simulator.Stop(ns.Seconds(duration_s))
        ns.Simulator.Run()

    def now(self) -> float:
        return float(self.ns.Simulator.Now().GetSeconds())

    def collect_flow_records(self) -> List[FlowRecord]:
        self.monitor.CheckForLostPackets()
        classifier = self.flowmon_helper.GetClassifier()

        records = []
        for flow_id, stats in self.monitor.GetFlowStats():
            t = classifier.FindFlow(flow_id)
            records.append(FlowRecord(
                flow_id=int(flow_id),
                destination_port=int(t.destinationPort),
                rx_bytes=int(stats.rxBytes),
                source_address=_address_text(t.sourceAddress),
                destination_address=_address_text(t.destinationAddress),
                protocol=int(t.protocol),
                source_port=int(t.sourcePort),
                tx_bytes=int(stats.txBytes),
                tx_packets=int(stats.txPackets),
                rx_packets=int(stats.rxPackets),
            ))

        if self.flowmon_xml:
            self.monitor.SerializeToXmlFile(self.flowmon_xml, True, True)
            logger.info(f'FlowMonitor statistics written to {self.flowmon_xml}')

        return records

    def destroy(self):
        if self.ns is not None:
            self.ns.Simulator.Destroy()
