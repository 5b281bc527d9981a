import logging
from logging.handlers import RotatingFileHandler
import os

from config import LOG_FILE


class _PollingNoiseFilter(logging.Filter):
    """Drop the per-poll chatter that drowns out configuration events."""

    _NOISY_FRAGMENTS = ("Starting new HTTP connection", "Resetting dropped connection")

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(fragment in message for fragment in self._NOISY_FRAGMENTS)


_NOISE_FILTER = _PollingNoiseFilter()


def setup_logger(name: str) -> logging.Logger:
    """Configure and return a module-level logger.

    Logs are written to both console and a rotating file to persist
    information for debugging. Subsequent calls with the same name
    return the already configured logger.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(logging.INFO)
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # Ensure the log directory exists before creating the handler
    directory = os.path.dirname(LOG_FILE)
    if directory:
        os.makedirs(directory, exist_ok=True)
    # Rotating file handler keeps last 5 logs of ~1MB each
    file_handler = RotatingFileHandler(LOG_FILE, maxBytes=1_000_000, backupCount=5)
    file_handler.setFormatter(formatter)
    file_handler.addFilter(_NOISE_FILTER)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_NOISE_FILTER)
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    return logger


def read_logs(tail: int = 100) -> str:
    """Return the last ``tail`` lines from the log file.

    If the log file does not exist, an empty string is returned.

    Parameters
    ----------
    tail : int, optional
        The number of lines from the end of the log to return. Defaults
        to 100.

    Returns
    -------
    str
        The concatenated log lines.
    """
    if not os.path.exists(LOG_FILE):
        return ""
    with open(LOG_FILE, "r") as f:
        lines = f.readlines()
    if tail <= 0:
        return "".join(lines)
    return "".join(lines[-tail:])
