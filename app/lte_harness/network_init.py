"""Network initialization: site/sector layout and terminal kinematics"""

import logging
from typing import List, Sequence, Tuple

import numpy as np

from .network import Site, Sector, Terminal
from .scenario_loader import (ExperimentConfig, ConfigurationError,
                              SITE_ANCHORS, SECTORS_PER_SITE)

logger = logging.getLogger(__name__)

KMH_TO_MPS = 1000.0 / 3600.0


def create_layout(num_sectors: int = 21,
                  site_anchors: Sequence[Tuple[float, float]] = SITE_ANCHORS,
                  sectors_per_site: int = SECTORS_PER_SITE,
                  beamwidth_deg: float = 65.0,
                  tx_power_dbm: float = 46.0,
                  height: float = 0.0) -> List[Site]:
    """Create the co-located multi-sector site layout.

    Sites keep the order of ``site_anchors``; sector ids run 1..num_sectors
    site-major, and the boresight of sector ``i`` within a site is
    ``i * 360 / sectors_per_site`` degrees. No randomness is involved.
    """

    if sectors_per_site <= 0 or num_sectors != len(site_anchors) * sectors_per_site:
        raise ConfigurationError(
            f'{num_sectors} sectors do not fit {len(site_anchors)} sites '
            f'x {sectors_per_site} sectors per site')

    sites = []
    cell_id = 1

    for site_id, (x, y) in enumerate(site_anchors, start=1):
        sectors = []
        for sector_index in range(sectors_per_site):
            sectors.append(Sector(
                id=cell_id,
                site_id=site_id,
                sector_index=sector_index,
                x=float(x),
                y=float(y),
                z=float(height),
                orientation_deg=sector_index * (360.0 / sectors_per_site),
                beamwidth_deg=beamwidth_deg,
                tx_power_dbm=tx_power_dbm,
            ))
            cell_id += 1
        sites.append(Site(id=site_id, x=float(x), y=float(y), sectors=tuple(sectors)))

    logger.debug(f'Created {len(sites)} sites with {num_sectors} sectors')
    return sites


def create_layout_for_config(config: ExperimentConfig) -> List[Site]:
    return create_layout(
        num_sectors=config.number_of_enbs,
        beamwidth_deg=config.antenna_beamwidth,
        tx_power_dbm=config.tx_power,
    )


def sector_sequence(sites: List[Site]) -> List[Sector]:
    """Flatten sites into the ordered sector list (site-major, sector-minor)"""
    return [sector for site in sites for sector in site.sectors]


def antenna_plan(sites: List[Site]) -> List[Tuple[Tuple[float, float, float], float]]:
    """Ordered (position, orientation) pairs, one per sector"""
    return [(sector.position, sector.orientation_deg) for sector in sector_sequence(sites)]


def initialize_terminals(num_terminals: int,
                         bounds: Tuple[float, float, float, float],
                         speed_range_kmh: Tuple[float, float],
                         rng: np.random.RandomState) -> List[Terminal]:
    """Draw initial position and constant velocity for each terminal.

    ``bounds`` is (min_x, max_x, min_y, max_y). Per terminal the draws are
    x, y, speed (km/h) and heading, in that order.
    """

    min_speed, max_speed = speed_range_kmh
    if min_speed < 0 or min_speed > max_speed:
        raise ConfigurationError(
            f'Invalid speed range [{min_speed}, {max_speed}] km/h')

    min_x, max_x, min_y, max_y = bounds
    terminals = []

    for terminal_id in range(num_terminals):
        x = rng.uniform(min_x, max_x)
        y = rng.uniform(min_y, max_y)
        speed_kmh = rng.uniform(min_speed, max_speed)
        heading = rng.uniform(0, 2 * np.pi)

        terminals.append(Terminal(
            id=terminal_id,
            x=float(x),
            y=float(y),
            speed_mps=float(speed_kmh * KMH_TO_MPS),
            heading=float(heading),
        ))

    logger.debug(f'Initialized {len(terminals)} terminals')
    return terminals


def initialize_terminals_for_config(config: ExperimentConfig,
                                    rng: np.random.RandomState) -> List[Terminal]:
    return initialize_terminals(
        config.number_of_ues,
        (config.area_min_x, config.area_max_x, config.area_min_y, config.area_max_y),
        (config.min_speed, config.max_speed),
        rng,
    )
