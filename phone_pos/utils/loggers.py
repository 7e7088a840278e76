import logging

from ..config import LOG_LEVEL

PACKAGE_LOGGER = "phone_pos"


def get_logger(name=PACKAGE_LOGGER):
    """
    Module loggers propagate to the package logger, which owns the one
    stream handler; asking for `phone_pos.modules.sales.controller` never
    adds a second handler.
    """
    root = logging.getLogger(PACKAGE_LOGGER)
    if not root.handlers:
        level = logging.getLevelName(LOG_LEVEL)
        root.setLevel(level if isinstance(level, int) else logging.INFO)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(ch)
    return logging.getLogger(name)
