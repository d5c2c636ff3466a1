#!/usr/bin/env python3
"""
Run one handover experiment with ns-3 style flags, e.g.

    python app/main_run_experiment.py --numberOfUes=41 --simTime=50 --useA2A4
"""

import sys
from pathlib import Path

# Add app directory to path
sys.path.insert(0, str(Path(__file__).parent))

from lte_harness.cli import main

if __name__ == '__main__':
    sys.exit(main())
