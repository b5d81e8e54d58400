import logging

from relaycord.util import logger as relay_logging
from relaycord.util.logger import (
    ROOT_LOGGER_NAME,
    ColorFormatter,
    console_level,
    get_log_filepath,
    get_logger,
    handle_exception,
    should_use_color,
)


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TtyStream:
    def isatty(self):
        return True


def test_component_loggers_share_root_handlers():
    router = get_logger("relay_router")
    store = get_logger("store")
    root = logging.getLogger(ROOT_LOGGER_NAME)

    assert router.name == "relaycord.relay_router"
    assert store.parent is root
    assert not router.handlers
    assert root.handlers
    assert root.propagate is False


def test_root_setup_is_idempotent():
    get_logger("first")
    count = len(logging.getLogger(ROOT_LOGGER_NAME).handlers)
    get_logger("second")
    assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == count


def test_qualified_names_are_not_nested_twice():
    assert get_logger("relaycord.main").name == "relaycord.main"


def test_color_formatter_applies_level_color():
    formatter = ColorFormatter("%(levelname)s %(message)s")
    record = logging.LogRecord("test", logging.ERROR, "", 0, "[RELAY ROUTER] delivery failed", None, None)
    formatted = formatter.format(record)
    assert formatted.startswith("\033[31m")
    assert "delivery failed" in formatted


def test_should_use_color(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.setattr("sys.stderr", TtyStream())
    assert should_use_color() is True

    monkeypatch.setenv("NO_COLOR", "1")
    assert should_use_color() is False


def test_console_level_from_environment(monkeypatch):
    monkeypatch.setenv("RELAYCORD_LOG_LEVEL", "debug")
    assert console_level() == logging.DEBUG
    monkeypatch.setenv("RELAYCORD_LOG_LEVEL", "chatty")
    assert console_level() == logging.INFO


def test_log_filepath_is_stable_for_the_session():
    path = get_log_filepath()
    assert path.parent == relay_logging.LOGS_DIR
    assert path.name.startswith("relaycord-")
    assert path.suffix == ".log"
    assert get_log_filepath() == path


def test_handle_exception_logs_uncaught_errors():
    handler = ListHandler()
    crash = get_logger("crash")
    crash.addHandler(handler)
    try:
        try:
            raise ValueError("fail")
        except ValueError as exc:
            handle_exception(ValueError, exc, exc.__traceback__)
    finally:
        crash.removeHandler(handler)

    assert [r.getMessage() for r in handler.records] == ["Uncaught exception"]
    assert handler.records[0].exc_info[0] is ValueError


def test_handle_exception_passes_keyboard_interrupt(monkeypatch):
    seen = []
    monkeypatch.setattr("sys.__excepthook__", lambda *args: seen.append(args[0]))
    handle_exception(KeyboardInterrupt, KeyboardInterrupt(), None)
    assert seen == [KeyboardInterrupt]
