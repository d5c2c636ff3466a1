"""Logging setup for the harness and the event trace"""

import logging
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = 'INFO', trace: bool = False) -> logging.Logger:
    """Console logging for the package, plus the optional event trace.

    The trace goes to stdout as bare lines so it reads like the program
    output; diagnostics go to stderr with timestamps.
    """

    logger = logging.getLogger('lte_harness')
    logger.setLevel(level.upper())

    # Clear any existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level.upper())
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    trace_logger = logging.getLogger('lte_harness.trace')
    trace_logger.handlers.clear()
    trace_logger.propagate = False
    if trace:
        trace_handler = logging.StreamHandler(sys.stdout)
        trace_handler.setFormatter(logging.Formatter('%(message)s'))
        trace_logger.addHandler(trace_handler)
        trace_logger.setLevel(logging.INFO)
    else:
        trace_logger.addHandler(logging.NullHandler())

    return logger
