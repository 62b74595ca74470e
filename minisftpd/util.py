# minisftpd/util.py
# -*- coding: utf-8 -*-

import logging
import sys

from paramiko.util import PFilter, get_logger  # noqa: F401

# Gleiches Zeilenformat wie paramiko.util.log_to_file.
LOG_FORMAT = "%(levelname)-.3s [%(asctime)s.%(msecs)03d] thr=%(_threadid)-3d %(name)s: %(message)s"
LOG_DATEFMT = "%Y%m%d-%H:%M:%S"


def log_to_stderr(level=logging.INFO, paramiko_level=logging.WARNING):
    """Schreibt die Logs von minisftpd und Paramiko nach stderr."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATEFMT))
    handler.addFilter(PFilter())

    for name, lvl in (("minisftpd", level), ("paramiko", paramiko_level)):
        logger = logging.getLogger(name)
        logger.setLevel(lvl)
        logger.addHandler(handler)
    return handler
