"""
Package logger for DXTREE.

DXTREE uses the standard library `logging` module with a single named
logger. The library itself never installs handlers; parse summaries and
the differentiation rules that fire are reported at DEBUG level.

Calling applications configure it the usual way:

    import logging
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )
"""

import logging

logger_name = "dxtree"
dxtree_logger = logging.getLogger(logger_name)
