"""Process-wide logging configuration."""

import logging
import os
import sys
from typing import List, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure root logging for the bot.

    Args:
        level: Logging level name
        log_file: Optional path of an additional log file
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    # The file handler is optional; fall back to console output only
    if log_file:
        try:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            handlers.append(logging.FileHandler(log_file, mode='a'))
        except OSError as e:
            print(f"Could not open log file {log_file}: {e}", file=sys.stderr)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )

    logging.getLogger('websockets').setLevel(logging.WARNING)
    logging.getLogger('aiohttp').setLevel(logging.WARNING)
