"""Experiment configuration: defaults, scenario files and validation"""

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Invalid or contradictory experiment parameters."""


# 7 sites in a 2/3/2 row grid with 500 m spacing
SITE_ANCHORS = (
    (0.0, 0.0), (500.0, 0.0),
    (0.0, 500.0), (500.0, 500.0), (1000.0, 500.0),
    (500.0, 1000.0), (1000.0, 1000.0),
)
SECTORS_PER_SITE = 3


@dataclass
class ExperimentConfig:
    # Basic information
    name: str = 'LTE handover experiment'
    description: str = ''

    # Network topology
    number_of_enbs: int = 21
    antenna_beamwidth: float = 65.0
    tx_power: float = 46.0
    dl_earfcn: int = 100
    ul_earfcn: int = 18100
    dl_bandwidth: int = 100
    ul_bandwidth: int = 100
    scheduler: str = 'ns3::RrFfMacScheduler'
    use_ideal_rrc: bool = True

    # User parameters
    number_of_ues: int = 41
    min_speed: float = 20.0  # km/h
    max_speed: float = 120.0  # km/h
    area_min_x: float = 0.0
    area_max_x: float = 1000.0
    area_min_y: float = 0.0
    area_max_y: float = 1000.0

    # Handover policy
    use_a2a4: bool = False
    hysteresis: float = 2.0  # dB, A3-RSRP
    time_to_trigger: int = 480  # ms, A3-RSRP
    serving_cell_threshold: int = 30  # A2-A4-RSRQ
    neighbour_cell_offset: int = 2  # A2-A4-RSRQ

    # Fading
    enable_fading: bool = False
    fading_trace: str = 'src/lte/model/fading-traces/fading_trace_EVA_60kmph.fad'
    fading_window: float = 0.5  # s
    fading_samples: int = 100000

    # Traffic parameters
    disable_dl: bool = False
    disable_ul: bool = False
    dl_port: int = 10000
    ul_port: int = 20000
    start_jitter: float = 0.010  # s
    data_rate: str = '10Gbps'
    packet_size: int = 1400
    tcp_segment_size: int = 1024

    # Simulation parameters
    sim_time: float = 50.0  # s
    seed: int = 1
    run: int = 1
    backend: str = 'ns3'

    # Output and logging
    enable_trace: bool = True
    log_level: str = 'INFO'
    flowmon_xml: str = ''
    results_file: str = ''
    plot_file: str = ''


# External (file / command line) key -> ExperimentConfig field
CONFIG_KEYS = {
    'name': 'name',
    'description': 'description',
    'numberOfEnbs': 'number_of_enbs',
    'antennaBeamwidth': 'antenna_beamwidth',
    'txPower': 'tx_power',
    'dlEarfcn': 'dl_earfcn',
    'ulEarfcn': 'ul_earfcn',
    'dlBandwidth': 'dl_bandwidth',
    'ulBandwidth': 'ul_bandwidth',
    'scheduler': 'scheduler',
    'useIdealRrc': 'use_ideal_rrc',
    'numberOfUes': 'number_of_ues',
    'minSpeed': 'min_speed',
    'maxSpeed': 'max_speed',
    'areaMinX': 'area_min_x',
    'areaMaxX': 'area_max_x',
    'areaMinY': 'area_min_y',
    'areaMaxY': 'area_max_y',
    'useA2A4': 'use_a2a4',
    'hysteresis': 'hysteresis',
    'timeToTrigger': 'time_to_trigger',
    'servingCellThreshold': 'serving_cell_threshold',
    'neighbourCellOffset': 'neighbour_cell_offset',
    'enableFading': 'enable_fading',
    'fadingTrace': 'fading_trace',
    'fadingWindow': 'fading_window',
    'fadingSamples': 'fading_samples',
    'disableDl': 'disable_dl',
    'disableUl': 'disable_ul',
    'dlPort': 'dl_port',
    'ulPort': 'ul_port',
    'startJitter': 'start_jitter',
    'dataRate': 'data_rate',
    'packetSize': 'packet_size',
    'tcpSegmentSize': 'tcp_segment_size',
    'simTime': 'sim_time',
    'seed': 'seed',
    'run': 'run',
    'backend': 'backend',
    'enableTrace': 'enable_trace',
    'logLevel': 'log_level',
    'flowmonXml': 'flowmon_xml',
    'resultsFile': 'results_file',
    'plotFile': 'plot_file',
}

SCENARIO_SUFFIXES = ('.json', '.yaml', '.yml')

_TRUE_STRINGS = {'1', 'true', 'yes', 'on'}
_FALSE_STRINGS = {'0', 'false', 'no', 'off'}


def default_scenarios_dir() -> Path:
    return Path(__file__).parent.parent / 'scenarios'


def parse_bool(value: Any) -> bool:
    """Parse booleans the way ns-3 CommandLine does (true/false/1/0)"""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ConfigurationError(f'Invalid boolean value: {value!r}')


def parse_duration(value: Any) -> float:
    """Parse a duration in seconds; accepts 50, '50', '50s', '500ms', '1min'"""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = str(value).strip().lower()
    units = (('ms', 1e-3), ('us', 1e-6), ('min', 60.0), ('h', 3600.0), ('s', 1.0))
    for suffix, scale in units:
        if text.endswith(suffix):
            number = text[:-len(suffix)]
            break
    else:
        number, scale = text, 1.0
    try:
        return float(number) * scale
    except ValueError:
        raise ConfigurationError(f'Invalid duration: {value!r}') from None


def _parse_int(value: Any) -> int:
    """Integer fields accept ints, integral floats (5.0) and numeric strings"""
    if isinstance(value, bool):
        raise ValueError(f'boolean is not an integer: {value!r}')
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f'not an integer: {value!r}')
        return int(value)
    return int(value)


def _coerce(field_name: str, value: Any) -> Any:
    """Convert a raw value to the type of the named config field"""
    default = getattr(ExperimentConfig, field_name)
    if field_name == 'sim_time':
        return parse_duration(value)
    try:
        if isinstance(default, bool):
            return parse_bool(value)
        if isinstance(default, int):
            return _parse_int(value)
        if isinstance(default, float):
            return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f'Invalid value for {field_name}: {value!r}') from None
    return str(value)


def config_from_mapping(cfg: Dict[str, Any],
                        base: Optional[ExperimentConfig] = None) -> ExperimentConfig:
    """Build a config from external keys, overriding ``base`` (or defaults)"""

    unknown = sorted(key for key in cfg if key not in CONFIG_KEYS)
    if unknown:
        raise ConfigurationError(f'Unknown configuration keys: {", ".join(unknown)}')

    overrides = {CONFIG_KEYS[key]: _coerce(CONFIG_KEYS[key], value)
                 for key, value in cfg.items()}
    return replace(base or ExperimentConfig(), **overrides)


def config_to_mapping(config: ExperimentConfig) -> Dict[str, Any]:
    """Inverse of config_from_mapping, used for result export"""
    by_field = {field_name: key for key, field_name in CONFIG_KEYS.items()}
    return {by_field[f.name]: getattr(config, f.name) for f in fields(config)}


def load_experiment_config(scenario_input: str,
                           scenarios_dir: Optional[Path] = None,
                           validate: bool = True) -> ExperimentConfig:
    """Load a scenario from a JSON or YAML file.

    With ``validate=False`` the caller is expected to layer further overrides
    and run validate_config on the merged result.
    """

    if scenarios_dir is None:
        scenarios_dir = default_scenarios_dir()

    path = _resolve_scenario_path(scenario_input, Path(scenarios_dir))

    with open(path, 'r') as f:
        if path.suffix == '.json':
            cfg = json.load(f)
        else:
            cfg = yaml.safe_load(f)

    if cfg is None:
        cfg = {}
    if not isinstance(cfg, dict):
        raise ConfigurationError(f'Scenario file {path} must contain a mapping')

    config = config_from_mapping(cfg)
    if validate:
        validate_config(config)
    logger.info(f'Loaded scenario: {config.name} ({path})')
    return config


def _resolve_scenario_path(scenario_input: str, scenarios_dir: Path) -> Path:
    """Resolve scenario input to an actual file path"""

    path = Path(scenario_input)

    # Direct file path provided
    if path.is_file():
        return path

    # Try known extensions inside the scenarios directory
    for suffix in SCENARIO_SUFFIXES:
        candidate = scenarios_dir / f'{scenario_input}{suffix}'
        if candidate.is_file():
            return candidate

    available = ', '.join(sorted(list_scenarios(scenarios_dir))) or 'none'
    raise ConfigurationError(f'Unknown scenario: {scenario_input}\nAvailable scenarios: {available}')


def list_scenarios(scenarios_dir: Optional[Path] = None) -> Dict[str, Path]:
    """Map scenario name -> file for every scenario file in a directory"""
    scenarios_dir = Path(scenarios_dir or default_scenarios_dir())
    if not scenarios_dir.is_dir():
        return {}
    return {p.stem: p for p in sorted(scenarios_dir.iterdir())
            if p.suffix in SCENARIO_SUFFIXES}


def port_ranges_overlap(config: ExperimentConfig) -> bool:
    n = config.number_of_ues
    return config.dl_port < config.ul_port + n and config.ul_port < config.dl_port + n


def validate_config(config: ExperimentConfig) -> ExperimentConfig:
    """Fail fast on locally checkable configuration errors.

    Handover policy parameters are passed to the radio stack unchecked.
    """

    expected_enbs = len(SITE_ANCHORS) * SECTORS_PER_SITE
    if config.number_of_enbs != expected_enbs:
        raise ConfigurationError(
            f'numberOfEnbs must be {expected_enbs} '
            f'({len(SITE_ANCHORS)} sites x {SECTORS_PER_SITE} sectors), got {config.number_of_enbs}')
    if config.number_of_ues < 0:
        raise ConfigurationError('numberOfUes must not be negative')
    if config.sim_time < 0:
        raise ConfigurationError('simTime must not be negative')
    if config.min_speed < 0:
        raise ConfigurationError('minSpeed must not be negative')
    if config.min_speed > config.max_speed:
        raise ConfigurationError(
            f'minSpeed ({config.min_speed}) exceeds maxSpeed ({config.max_speed})')
    if config.area_min_x >= config.area_max_x or config.area_min_y >= config.area_max_y:
        raise ConfigurationError('Deployment area must have positive width and height')
    if config.start_jitter < 0:
        raise ConfigurationError('startJitter must not be negative')

    for key, base in (('dlPort', config.dl_port), ('ulPort', config.ul_port)):
        if base < 1 or base + config.number_of_ues - 1 > 65535:
            raise ConfigurationError(f'{key} range does not fit in 1..65535')
    if port_ranges_overlap(config):
        raise ConfigurationError(
            f'Downlink ports [{config.dl_port}, {config.dl_port + config.number_of_ues}) '
            f'overlap uplink ports [{config.ul_port}, {config.ul_port + config.number_of_ues})')

    if not isinstance(logging.getLevelName(config.log_level.upper()), int):
        raise ConfigurationError(f'Unknown logLevel: {config.log_level}')

    return config
