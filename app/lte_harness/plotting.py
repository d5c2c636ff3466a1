"""Topology plot: sites, sector boresights and terminal start states"""

import logging
from pathlib import Path
from typing import List

import numpy as np
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from .network import Site, Terminal

logger = logging.getLogger(__name__)


def plot_topology(sites: List[Site], terminals: List[Terminal], out_path: str,
                  boresight_length: float = 120.0, title: str = ''):
    """Save a PNG of the deployment.

    Sectors are drawn as boresight arrows from their site, terminals as dots
    with their velocity vector (scaled to 10 s of travel).
    """

    fig, ax = plt.subplots(figsize=(8, 8))

    for site in sites:
        ax.plot(site.x, site.y, marker='^', color='tab:red', markersize=10)
        ax.annotate(f'S{site.id}', (site.x, site.y), textcoords='offset points',
                    xytext=(6, 6), fontsize=8)
        for sector in site.sectors:
            angle = np.deg2rad(sector.orientation_deg)
            ax.arrow(sector.x, sector.y,
                     boresight_length * np.cos(angle), boresight_length * np.sin(angle),
                     width=2.0, head_width=18.0, color='tab:red', alpha=0.6,
                     length_includes_head=True)

    if terminals:
        xs = np.array([t.x for t in terminals])
        ys = np.array([t.y for t in terminals])
        velocities = np.array([t.velocity[:2] for t in terminals]) * 10.0
        ax.scatter(xs, ys, s=12, color='tab:blue', label='UE start')
        ax.quiver(xs, ys, velocities[:, 0], velocities[:, 1], angles='xy',
                  scale_units='xy', scale=1, color='tab:blue', alpha=0.5, width=0.003)

    ax.set_xlabel('x (m)')
    ax.set_ylabel('y (m)')
    ax.set_aspect('equal')
    ax.grid(True, alpha=0.3)
    ax.set_title(title or f'{len(sites)} sites, {sum(len(s.sectors) for s in sites)} sectors, '
                          f'{len(terminals)} UEs')
    if terminals:
        ax.legend(loc='upper left')

    out_path = Path(out_path)
    if not out_path.parent.exists():
        out_path.parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(out_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    logger.info(f'Topology plot saved to {out_path}')
