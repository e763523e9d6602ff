"""
Unified logging system for RelayChat application.

Every line the server emits carries a timestamp and the name of the
execution context that produced it: the asyncio task name inside the
event loop (``Chat server``, ``SocketThread 127.0.0.1:53412`` ...), or the
thread name outside of it.

Usage:
    from RelayChat.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Server thread started")

Configuration:
    from RelayChat.core.logging import configure_logging, LogConfig

    config = LogConfig(
        level="DEBUG",
        file_output=False,
        sink=window.append_line,  # optional external consumer
    )
    configure_logging(config)
"""

import asyncio
import logging
import logging.handlers
import os
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union


@dataclass
class LogConfig:
    """
    Configuration for the logging system.

    Attributes:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files
        console_output: Whether to output to console
        file_output: Whether to output to file
        max_bytes: Maximum size of log file before rotation (bytes)
        backup_count: Number of backup files to keep
        format_string: Custom format string for log messages
        date_format: Custom date format string
        component_levels: Dict mapping component names to log levels
        sink: Callable receiving every formatted line (log window, UI...)
    """
    level: str = "INFO"
    log_dir: str = "./logs"
    console_output: bool = True
    file_output: bool = True
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    format_string: Optional[str] = None
    date_format: str = "%H:%M:%S"
    component_levels: Dict[str, str] = field(default_factory=dict)
    sink: Optional[Callable[[str], None]] = None


def current_context_name() -> str:
    """Name of the task running the caller, or of its thread."""
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    if task is not None:
        return task.get_name()
    return threading.current_thread().name


class ExecutionContextFilter(logging.Filter):
    """
    Stamps each record with a ``context`` attribute.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "context"):
            record.context = current_context_name()
        return True


class ColoredFormatter(logging.Formatter):
    """
    Formatter that adds color to console output.
    """

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def __init__(self, fmt: str, datefmt: str = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and sys.platform != 'win32'

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class SinkHandler(logging.Handler):
    """
    Handler forwarding formatted lines to an external callable.
    """

    def __init__(self, sink: Callable[[str], None], level: int = logging.NOTSET):
        super().__init__(level)
        self._sink = sink
        self.addFilter(ExecutionContextFilter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._sink(self.format(record))
        except Exception:
            self.handleError(record)


def get_default_format() -> str:
    """Get the default log format string: ``HH:MM:SS context: message``."""
    return "%(asctime)s %(context)s: %(message)s"


def get_detailed_format() -> str:
    """Get a detailed log format string with more context."""
    return (
        "%(asctime)s - %(context)s - %(name)s - %(levelname)s - "
        "[%(filename)s:%(lineno)d] - %(message)s"
    )


class LoggingManager:
    """
    Centralized logging manager for the application.

    Handles configuration, setup, and management of loggers across
    all components.
    """

    _instance: Optional['LoggingManager'] = None
    _initialized: bool = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config: Optional[LogConfig] = None
        self._handlers: List[logging.Handler] = []
        self._initialized = True

    @property
    def config(self) -> Optional[LogConfig]:
        return self._config

    def configure(self, config: LogConfig) -> None:
        """
        Configure the logging system.

        Args:
            config: Logging configuration
        """
        self._config = config
        level = getattr(logging, config.level.upper())

        if config.file_output:
            Path(config.log_dir).mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        # Only drop the handlers installed by a previous configure() call
        for handler in self._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers = []

        fmt = config.format_string or get_default_format()

        if config.console_output:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.addFilter(ExecutionContextFilter())
            console_handler.setFormatter(ColoredFormatter(fmt, config.date_format))
            self.add_handler(console_handler)

        if config.file_output:
            log_file = os.path.join(config.log_dir, "relaychat.log")
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=config.max_bytes,
                backupCount=config.backup_count,
                encoding='utf-8'
            )
            file_handler.setLevel(level)
            file_handler.addFilter(ExecutionContextFilter())
            file_handler.setFormatter(
                logging.Formatter(config.format_string or get_detailed_format(), config.date_format)
            )
            self.add_handler(file_handler)

        if config.sink is not None:
            sink_handler = SinkHandler(config.sink, level)
            sink_handler.setFormatter(logging.Formatter(fmt, config.date_format))
            self.add_handler(sink_handler)

        for component, component_level in config.component_levels.items():
            logging.getLogger(component).setLevel(getattr(logging, component_level.upper()))

        logging.getLogger(__name__).debug("Logging system configured with level: %s", config.level)

    def get_logger(self, name: str) -> logging.Logger:
        """
        Get a logger instance.

        Args:
            name: Logger name (typically __name__)

        Returns:
            Configured logger instance
        """
        return logging.getLogger(name)

    def set_level(self, level: Union[str, int]) -> None:
        """
        Set the global log level.

        Args:
            level: Log level (string or logging constant)
        """
        if isinstance(level, str):
            level = getattr(logging, level.upper())

        logging.getLogger().setLevel(level)
        for handler in self._handlers:
            handler.setLevel(level)

    def add_handler(self, handler: logging.Handler) -> None:
        """
        Add a custom handler to the logging system.

        Args:
            handler: Handler to add
        """
        logging.getLogger().addHandler(handler)
        self._handlers.append(handler)

    def shutdown(self) -> None:
        """Shutdown the logging system gracefully."""
        logging.getLogger(__name__).info("Shutting down logging system")
        logging.shutdown()


# Global logging manager instance
_logging_manager = LoggingManager()


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return _logging_manager.get_logger(name)


def configure_logging(config: LogConfig) -> None:
    """
    Configure the logging system.

    Args:
        config: Logging configuration
    """
    _logging_manager.configure(config)


def get_logging_manager() -> LoggingManager:
    """Get the global logging manager instance."""
    return _logging_manager


def create_development_config() -> LogConfig:
    """
    Create a logging configuration for development environment.

    Returns:
        Development logging configuration
    """
    return LogConfig(
        level="DEBUG",
        log_dir="./logs/dev",
        console_output=True,
        file_output=True,
        max_bytes=5 * 1024 * 1024,  # 5MB
        backup_count=3,
        component_levels={
            "websockets": "WARNING",
        }
    )


def create_production_config() -> LogConfig:
    """
    Create a logging configuration for production environment.

    Returns:
        Production logging configuration
    """
    return LogConfig(
        level="INFO",
        log_dir="./logs/prod",
        console_output=True,
        file_output=True,
        max_bytes=50 * 1024 * 1024,  # 50MB
        backup_count=10,
        component_levels={
            "websockets": "ERROR",
        }
    )


def create_testing_config() -> LogConfig:
    """
    Create a logging configuration for testing environment.

    Returns:
        Testing logging configuration
    """
    return LogConfig(
        level="DEBUG",
        log_dir="./logs/test",
        console_output=True,
        file_output=False,
        format_string="%(levelname)s - %(context)s: %(message)s",
        component_levels={
            "websockets": "ERROR",
        }
    )


def auto_configure(env: Optional[str] = None, sink: Optional[Callable[[str], None]] = None) -> LogConfig:
    """
    Automatically configure logging based on environment.

    Args:
        env: Environment name (development, production, testing).
             If None, reads RELAYCHAT_ENV.
        sink: Optional external consumer of formatted lines

    Returns:
        The configuration that was applied
    """
    if env is None:
        env = os.environ.get("RELAYCHAT_ENV", "development").lower()

    configs = {
        "development": create_development_config,
        "dev": create_development_config,
        "production": create_production_config,
        "prod": create_production_config,
        "testing": create_testing_config,
        "test": create_testing_config,
    }

    config = configs.get(env, create_development_config)()
    config.sink = sink
    configure_logging(config)

    get_logger(__name__).debug("Logging auto-configured for environment: %s", env)
    return config


__all__ = [
    'LogConfig',
    'LoggingManager',
    'ColoredFormatter',
    'ExecutionContextFilter',
    'SinkHandler',
    'current_context_name',
    'get_logger',
    'configure_logging',
    'get_logging_manager',
    'create_development_config',
    'create_production_config',
    'create_testing_config',
    'auto_configure',
    'get_default_format',
    'get_detailed_format',
]
