"""Simple logger utility."""
import logging
import os
from typing import Optional

logger = logging.getLogger("orderbot")
if not logger.handlers:
    h = logging.StreamHandler()
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    h.setFormatter(fmt)
    logger.addHandler(h)
    logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if not name:
        return logger
    if name.startswith("orderbot."):
        name = name[len("orderbot."):]
    return logger.getChild(name)
