"""Process-wide logging setup."""

import logging

LOG_FORMAT = "[%(asctime)s] <%(levelname)s> %(message)s - (%(filename)s:%(lineno)d)"
DATE_FORMAT = "%b. %d | %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger.

    Safe to call more than once; later calls only adjust the level.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(getattr(h, "_billing_handler", False) for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler._billing_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
