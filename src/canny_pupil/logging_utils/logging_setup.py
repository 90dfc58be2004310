# logging_setup.py
"""
Application logging for canny_pupil.
- All modules log through children of the 'canny_pupil' logger (get_logger).
- start_logging() installs a QueueHandler on that logger; a QueueListener
  thread owns the RotatingFileHandler and the console handler, so the frame
  loop never blocks on disk writes.
- Without start_logging() nothing is configured and records propagate to
  whatever the host application set up (pytest's caplog, for instance).
"""

from __future__ import annotations
import atexit
import logging
import queue
import sys
import threading
from datetime import datetime
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path

# ------------------------- Paths & constants -------------------------

DEFAULT_LOG_DIR = Path.home() / "CannyPupilLogs"

# Main logger name used across the app
LOGGER_NAME = "canny_pupil"

logging_fmt_console = logging.Formatter("[%(levelname)s] %(message)s")
logging_fmt_file = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s %(message)s")

# ------------------------- Module-level state -------------------------

_queue: queue.Queue | None = None
_listener: QueueListener | None = None
_log_path: Path | None = None


# ------------------------- Public API -------------------------

def start_logging(log_dir: Path | str | None = None,
                  level: int = logging.INFO,
                  console: bool = True) -> Path:
    """
    Start the background log listener and attach a QueueHandler to the app logger.
    Safe to call more than once; later calls return the already active log file.
    """
    global _queue, _listener, _log_path

    if _listener is not None:
        return _log_path

    log_dir = Path(log_dir) if log_dir is not None else DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    _log_path = log_dir / f"canny_pupil_{timestamp}.log"

    fh = RotatingFileHandler(_log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    fh.setFormatter(logging_fmt_file)
    handlers: list[logging.Handler] = [fh]

    if console:
        sh = logging.StreamHandler(sys.stderr)
        sh.setFormatter(logging_fmt_console)
        handlers.append(sh)

    _queue = queue.Queue(-1)
    _listener = QueueListener(_queue, *handlers, respect_handler_level=True)
    _listener.start()

    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)
    if not any(isinstance(h, QueueHandler) for h in lg.handlers):
        lg.addHandler(QueueHandler(_queue))

    atexit.register(shutdown_logging)
    return _log_path


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Return the root app logger ('canny_pupil') or a child under it,
    so all children inherit the QueueHandler attached to 'canny_pupil'.
    """
    if not name or name == LOGGER_NAME:
        return logging.getLogger(LOGGER_NAME)

    if name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)

    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def get_log_path() -> Path | None:
    return _log_path


def shutdown_logging() -> None:
    """
    Flush and stop the listener thread. Safe to call multiple times.
    """
    global _queue, _listener, _log_path

    lg = logging.getLogger(LOGGER_NAME)
    for h in list(lg.handlers):
        if isinstance(h, QueueHandler):
            lg.removeHandler(h)
            h.close()

    if _listener is not None:
        _listener.stop()
        for h in _listener.handlers:
            h.flush()
            h.close()

    _listener = None
    _queue = None
    _log_path = None


def install_crash_hooks() -> None:
    """
    Mirror uncaught exceptions (main thread and worker threads) to the app logger.
    Call this once in your entry script after start_logging().
    """

    def _excepthook(exc_type, exc, tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        get_logger().critical("UNCAUGHT EXCEPTION", exc_info=(exc_type, exc, tb))

    def _thread_excepthook(args):
        _excepthook(args.exc_type, args.exc_value, args.exc_traceback)

    sys.excepthook = _excepthook
    threading.excepthook = _thread_excepthook
