"""
core/logs.py -- Process-wide logging configuration.

Console plus two file sinks under LOG_DIR:
  app.log    -- everything at INFO and above
  error.log  -- ERROR and above only, so incidents are easy to find

The directory is created on first call if it does not exist. Every module
logs through a named "studyshala.*" logger and never configures handlers
itself.
"""

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(log_dir: str, level: int = logging.INFO) -> Path:
    """Install console and file handlers on the root logger.

    Safe to call more than once: nothing is added when the root logger
    already has handlers. Returns the resolved log directory.
    """
    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    if logging.getLogger().handlers:
        return path.resolve()

    error_handler = logging.FileHandler(path / "error.log", encoding="utf-8")
    error_handler.setLevel(logging.ERROR)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(path / "app.log", encoding="utf-8"),
            error_handler,
        ],
    )
    return path.resolve()
