"""
Logging setup.
"""

from __future__ import annotations

import logging
import os

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("uvicorn.access",)


def setup_logging(log_path: str, log_level: str) -> None:
    log_dir = os.path.dirname(log_path)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    level = getattr(logging, str(log_level).upper(), None)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler(),
        ],
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if logging.getLevelName(level) != str(log_level).upper():
        logging.warning(f"Unknown log level '{log_level}', using INFO")
