import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure the root logger once for the whole process.

    Calling it again replaces the handlers instead of stacking duplicates, so
    both entrypoint.py and app.py may call it.
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # uvicorn access logs are noisy at DEBUG
    logging.getLogger("uvicorn.access").setLevel(max(level, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
