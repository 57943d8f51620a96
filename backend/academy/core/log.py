"""
Logging setup for the Academy backend.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once for the whole process."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("academy").setLevel(level)
    # SQL echo is controlled by the engine, keep the driver quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
