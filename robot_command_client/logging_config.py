"""
Logging setup for scripts and the command line client.

Library modules only create their module logger; handlers are installed by
the application through configure_logging().
"""

import logging
import pathlib
from datetime import datetime
from typing import List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level=logging.INFO, log_dir=None) -> Optional[pathlib.Path]:
    """
    Install a console handler and, optionally, a timestamped log file.

    Args:
        level: Root log level (int or name such as "DEBUG")
        log_dir: Directory for robot_client_YYYYmmdd_HHMMSS.log files, created if missing

    Returns:
        Path of the log file, or None when logging to the console only
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    filename = None
    if log_dir is not None:
        log_path = pathlib.Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)  # Create it if it doesn't exist
        filename = log_path / f'robot_client_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log'
        handlers.insert(0, logging.FileHandler(filename))

    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    return filename
