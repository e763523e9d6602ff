"""
Tests for the logging setup.
"""

import asyncio
import logging
import threading

import pytest

from RelayChat.core.logging import (
    ExecutionContextFilter,
    LogConfig,
    SinkHandler,
    auto_configure,
    configure_logging,
    current_context_name,
    get_logging_manager,
)


@pytest.fixture
def restore_logging():
    """Drop whatever handlers the test made the manager install."""
    root = logging.getLogger()
    level = root.level
    yield
    configure_logging(LogConfig(level=logging.getLevelName(level), console_output=False, file_output=False))
    root.setLevel(level)


def make_record(message: str = "hello") -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, message, None, None)


class TestExecutionContext:

    def test_thread_name_outside_tasks(self):
        assert current_context_name() == threading.current_thread().name

    @pytest.mark.asyncio
    async def test_task_name_inside_tasks(self):
        async def named():
            return current_context_name()

        name = await asyncio.create_task(named(), name="SocketThread 127.0.0.1:1")
        assert name == "SocketThread 127.0.0.1:1"

    def test_filter_stamps_record(self):
        record = make_record()
        assert ExecutionContextFilter().filter(record) is True
        assert record.context == threading.current_thread().name


class TestSinkHandler:

    def test_sink_receives_formatted_line(self):
        lines = []
        handler = SinkHandler(lines.append)
        handler.setFormatter(logging.Formatter("%(context)s: %(message)s"))

        handler.handle(make_record("Server thread started"))

        assert lines == [f"{threading.current_thread().name}: Server thread started"]

    def test_configured_sink_gets_timestamped_lines(self, restore_logging):
        lines = []
        configure_logging(LogConfig(level="INFO", console_output=False, file_output=False, sink=lines.append))

        logging.getLogger("RelayChat.test").info("Client connected")

        assert len(lines) == 1
        timestamp, rest = lines[0].split(" ", 1)
        assert len(timestamp.split(":")) == 3
        assert rest.endswith(": Client connected")

    def test_reconfigure_replaces_own_handlers_only(self, restore_logging):
        foreign = logging.NullHandler()
        root = logging.getLogger()
        root.addHandler(foreign)
        try:
            first, second = [], []
            configure_logging(LogConfig(console_output=False, file_output=False, sink=first.append))
            configure_logging(LogConfig(console_output=False, file_output=False, sink=second.append))

            logging.getLogger("RelayChat.test").warning("once")

            assert first == []
            assert len(second) == 1
            assert foreign in root.handlers
        finally:
            root.removeHandler(foreign)


class TestAutoConfigure:

    def test_testing_environment(self, restore_logging):
        lines = []
        config = auto_configure("testing", sink=lines.append)

        assert config.file_output is False
        assert get_logging_manager().config is config
        logging.getLogger("RelayChat.test").debug("configured at debug")
        assert any(line.endswith("configured at debug") for line in lines)
