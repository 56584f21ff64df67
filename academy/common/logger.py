import logging

from academy.common.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """
    Module logger that plays well with uvicorn.

    One stream handler per logger, level from ACADEMY_LOG_LEVEL,
    no propagation (uvicorn's root config is left alone).
    """

    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger.addHandler(handler)
    level = getattr(logging, LOG_LEVEL, None)
    logger.setLevel(level if isinstance(level, int) else logging.INFO)
    logger.propagate = False

    return logger
