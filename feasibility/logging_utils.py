import logging
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List

from feasibility.constants import (
    DEFAULT_LOG_SINK_ID,
    LOG_FORMAT,
    PACKAGE_LOGGER_NAME,
)
from feasibility.errors import LogSinkError


class AutoFlushHandler(logging.StreamHandler):
    def emit(self, record):
        super().emit(record)
        self.flush()


@dataclass(frozen=True)
class LogSink:
    """Handle for one registered file sink."""
    sink_id: str
    file_path: str
    handler: logging.Handler


class LogSinkRegistry:
    """Named file sinks attached to the package logger.

    One sink per id: registering an id that is already active is an error, so two
    runs can never share a sink slot.
    """

    def __init__(self, logger_name: str = PACKAGE_LOGGER_NAME):
        self.logger_name = logger_name
        self._sinks: Dict[str, LogSink] = {}
        # logger level before the first active sink, restored after the last
        self._base_level = logging.NOTSET
        self._lock = threading.Lock()

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(self.logger_name)

    def register(self, sink_id: str, file_path: str, level: int = logging.INFO) -> LogSink:
        file_path = str(file_path)
        with self._lock:
            if sink_id in self._sinks:
                raise LogSinkError(
                    f"Log sink '{sink_id}' is already registered "
                    f"(writing to {self._sinks[sink_id].file_path})"
                )
            handler = logging.FileHandler(file_path, mode="a", encoding="utf-8")
            handler.setLevel(level)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger = self.logger
            if not self._sinks:
                self._base_level = logger.level
            logger.addHandler(handler)
            if logger.level == logging.NOTSET or logger.level > level:
                logger.setLevel(level)
            sink = LogSink(sink_id=sink_id, file_path=file_path, handler=handler)
            self._sinks[sink_id] = sink
        return sink

    def unregister(self, sink_id: str) -> bool:
        """Detach and close the sink. Returns False if the id was not registered."""
        with self._lock:
            sink = self._sinks.pop(sink_id, None)
            if sink is None:
                return False
            logger = self.logger
            logger.removeHandler(sink.handler)
            if not self._sinks:
                logger.setLevel(self._base_level)
        sink.handler.close()
        return True

    def is_registered(self, sink_id: str) -> bool:
        return sink_id in self._sinks

    def registered_sinks(self) -> List[str]:
        return sorted(self._sinks)

    @contextmanager
    def scoped(self, sink_id: str, file_path: str, level: int = logging.INFO):
        sink = self.register(sink_id, file_path, level=level)
        try:
            yield sink
        finally:
            self.unregister(sink.sink_id)


# Process-wide registry
default_registry = LogSinkRegistry()


def add_default_file_logger(file_path: str, sink_id: str = DEFAULT_LOG_SINK_ID) -> LogSink:
    return default_registry.register(sink_id, file_path)


def unregister_logger(sink_id: str = DEFAULT_LOG_SINK_ID) -> bool:
    return default_registry.unregister(sink_id)


def setup_console_logging(level: int = logging.INFO, stream=None) -> logging.Logger:
    """Attach an auto-flushing console handler (stderr by default) to the package logger."""
    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    logger.setLevel(level)

    # Clear existing console handlers, leave registered file sinks alone
    for h in list(logger.handlers):
        if isinstance(h, AutoFlushHandler):
            logger.removeHandler(h)

    console_handler = AutoFlushHandler(stream or sys.stderr)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler.setLevel(level)
    logger.addHandler(console_handler)
    return logger

