import logging
import sys


def setup_logger(name: str = "scalargrad", level: int = logging.INFO) -> logging.Logger:
    """
    Send ``name``'s records to stdout.

    Safe to call repeatedly: the handler is only attached once.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)

    return logger
