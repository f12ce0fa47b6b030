import logging
import sys
from uuid import uuid4

from recontrack.utils.logger import LOG_FORMAT, apply_log_level, get_logger


def _cleanup_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


def test_get_logger_reuses_stdout_handler():
    name = f"recontrack_test_{uuid4()}"
    first = get_logger(name)
    second = get_logger(name)

    assert first is second
    stdout_handlers = [h for h in first.handlers if getattr(h, "stream", None) is sys.stdout]
    assert len(stdout_handlers) == 1
    assert stdout_handlers[0].formatter._fmt == LOG_FORMAT

    _cleanup_handlers(first)


def test_get_logger_leaves_other_handlers(monkeypatch):
    name = f"recontrack_test_{uuid4()}"
    logger = logging.getLogger(name)
    stderr_handler = logging.StreamHandler(sys.stderr)
    logger.addHandler(stderr_handler)

    get_logger(name)

    assert stderr_handler in logger.handlers
    assert sum(1 for h in logger.handlers if getattr(h, "stream", None) is sys.stdout) == 1
    _cleanup_handlers(logger)


def test_level_from_env(monkeypatch):
    monkeypatch.setenv("RECONTRACK_LOG_LEVEL", "debug")
    logger = get_logger(f"recontrack_test_{uuid4()}")
    assert logger.level == logging.DEBUG
    assert get_logger(f"recontrack_test_{uuid4()}", level="bogus").level == logging.INFO
    _cleanup_handlers(logger)


def test_applied_level_reaches_existing_and_new_package_loggers():
    existing = get_logger(f"recontrack.test_{uuid4().hex}")
    try:
        apply_log_level("WARNING")
        created_later = get_logger(f"recontrack.test_{uuid4().hex}")
        assert existing.level == logging.WARNING
        assert created_later.level == logging.WARNING
        assert logging.getLogger("recontrack").level == logging.WARNING
    finally:
        apply_log_level("INFO")
        _cleanup_handlers(existing)
