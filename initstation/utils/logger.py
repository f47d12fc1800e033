"""Logging utilities for initstation."""

import logging
import os
from collections import deque

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class RunNameFormatter(logging.Formatter):
    """Custom formatter to include the run name in every log message."""
    def format(self, record):
        if hasattr(record, "run_name"):
            record = logging.makeLogRecord(record.__dict__)
            record.msg = f"{record.run_name} - {record.msg}"
        return super().format(record)


def setup_logger(run_name, log_file=None, caller_log=None, debug=False):
    """
    Set up a logger with the run name included in every message.
    :param run_name: Name to include in log messages, usually the application name.
    :param log_file: Path to the log file. Only the console is used when None.
    :param caller_log: Optional second log file, typically the calling script's log.
    :param debug: Log at DEBUG instead of INFO.
    :return: A logger instance.
    """
    logger = logging.getLogger(run_name)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Avoid adding duplicate handlers
    if not logger.handlers:
        formatter = RunNameFormatter(LOG_FORMAT)
        handlers = [logging.StreamHandler()]
        try:
            for path in filter(None, (log_file, caller_log)):
                ensure_dir(os.path.dirname(path))
                handlers.append(logging.FileHandler(path, encoding="utf-8"))
        except OSError:
            for handler in handlers:
                handler.close()
            raise

        for handler in handlers:
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    # Use a LoggerAdapter to inject the run name
    return logging.LoggerAdapter(logger, {"run_name": run_name})


def close_logger(run_name):
    """Detach and close every handler of the named logger."""
    logger = logging.getLogger(run_name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def ensure_dir(path):
    """Create a log directory if it is missing."""
    if path and not os.path.isdir(path):
        os.makedirs(path, exist_ok=True)


def trim_log_file(log_path, max_lines):
    """Keep only the newest max_lines lines of a log file."""
    if not max_lines or not os.path.isfile(log_path):
        return
    try:
        with open(log_path, "r", encoding="utf-8", errors="replace") as f:
            tail = deque(f, maxlen=max_lines + 1)
        if len(tail) <= max_lines:
            return
        tail.popleft()
        with open(log_path, "w", encoding="utf-8") as f:
            f.writelines(tail)
    except OSError as e:
        logger.warning(f"could not trim log file {log_path}: {e}")
