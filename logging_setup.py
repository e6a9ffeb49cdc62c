import logging
import os
import sys

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = LOG_LEVEL) -> logging.Logger:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format=LOG_FORMAT, stream=sys.stdout, level=numeric_level)

    vault_logger = logging.getLogger("vault")
    vault_logger.setLevel(numeric_level)
    return vault_logger


logger = setup_logging()
