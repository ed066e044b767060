import logging
import sys

sys.path.append("src")

from physlab.logging_utils import get_logger


def test_logger_is_namespaced_and_isolated():
    logger = get_logger("probe", level=logging.DEBUG)
    assert logger.name == "physlab.probe"
    assert logger.level == logging.DEBUG
    assert logger.propagate is False
    assert len(logger.handlers) == 1


def test_repeated_calls_do_not_stack_handlers():
    get_logger("again")
    logger = get_logger("again")
    assert len(logger.handlers) == 1


def test_level_from_environment(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    assert get_logger("env").level == logging.WARNING


def test_unknown_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    assert get_logger("fallback").level == logging.INFO
