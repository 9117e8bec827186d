import logging
import sys
import threading
from datetime import datetime
from dotenv import load_dotenv
from os import getenv, makedirs, path
from typing import Optional
from pythonjsonlogger import jsonlogger

from ..utils.files import clear_latest_items

# Constants
LOG_FILES_HORIZON = 5
EVENTS_LOGGER = "delimload.events"
FIELDS = [
    "name",
    "process",
    "processName",
    "threadName",
    "taskName",
    "asctime",
    "created",
    "module",
    "filename",
    "funcName",
    "levelname",
    "message",
]

load_dotenv()


class LoggingConfigurator:
    """
    Configure-once logging setup.

    Diagnostics always go to stderr. When a log directory is configured, JSON
    records are also written to `<log_dir>/<date>/<time>/{info,error}_log.log`.
    """

    def __init__(self, environment: str = None, log_dir: Optional[str] = None):
        self.environment = environment or getenv("ENVIRONMENT", "development")
        self.log_dir = log_dir if log_dir is not None else getenv("DELIMLOAD_LOG_DIR")
        self.root_logger = logging.getLogger()
        self._configured = False
        self._lock = threading.Lock()

    def configure(self, level: int = logging.INFO):
        """Configure logging once globally (thread-safe)."""
        with self._lock:
            if self._configured:
                return

            self.root_logger.handlers.clear()
            self.root_logger.setLevel(logging.DEBUG)

            self.root_logger.addHandler(self._create_console_handler(self._create_console_formatter(), level))

            if self.log_dir:
                error_handler, info_handler = self._create_file_handlers(self._create_json_formatter())
                self.root_logger.addHandler(error_handler)
                self.root_logger.addHandler(info_handler)

            self._configured = True

    def _create_json_formatter(self) -> jsonlogger.JsonFormatter:
        json_format = " ".join(map(lambda field_name: f"%({field_name})s", FIELDS))
        return jsonlogger.JsonFormatter(json_format)

    def _create_console_formatter(self) -> logging.Formatter:
        if self.environment == "development":
            return logging.Formatter('%(levelname)s:%(name)s:%(message)s')
        return logging.Formatter('%(message)s')

    def _create_console_handler(self, formatter: logging.Formatter, level: int) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        handler.setLevel(level)
        # structured events belong to the JSON files only
        handler.addFilter(lambda record: record.name != EVENTS_LOGGER)
        return handler

    def _create_file_handlers(self, formatter: jsonlogger.JsonFormatter) -> tuple:
        """Create error and info file handlers, pruning old run directories."""
        now = datetime.now()
        log_root_path = path.join(self.log_dir, now.strftime("%Y-%m-%d"))

        if path.exists(log_root_path):
            clear_latest_items(log_root_path, LOG_FILES_HORIZON)

        base_path = path.join(log_root_path, now.strftime("%H_%M"))
        makedirs(base_path, exist_ok=True)

        error_handler = logging.FileHandler(path.join(base_path, "error_log.log"), mode="a")
        error_handler.setFormatter(formatter)
        error_handler.setLevel(logging.ERROR)

        info_handler = logging.FileHandler(path.join(base_path, "info_log.log"), mode="a")
        info_handler.setFormatter(formatter)
        info_handler.setLevel(logging.INFO)

        return error_handler, info_handler

    def get_logger(self, name: str) -> logging.Logger:
        self.configure()
        return logging.getLogger(name)

    def reconfigure(self, environment: str = None, log_dir: Optional[str] = None, level: int = logging.INFO):
        """Reconfigure logging (useful for testing or runtime changes)."""
        if environment:
            self.environment = environment
        if log_dir is not None:
            self.log_dir = log_dir
        self._configured = False
        self.configure(level)


_configurator = LoggingConfigurator()


def configure_logging(environment: str = None, log_dir: Optional[str] = None, verbose: bool = False):
    """Configure the process-wide logging used by the CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    if environment or log_dir is not None:
        _configurator.reconfigure(environment, log_dir, level)
    else:
        _configurator.configure(level)


def get_logger(name: str) -> logging.Logger:
    return _configurator.get_logger(name)


def emit_log(event: str, **kwargs):
    """Log a structured event; the JSON file handlers keep the payload as a dict."""
    payload = {"event": event}
    payload.update(kwargs)
    logging.getLogger(EVENTS_LOGGER).info(payload)
