from __future__ import annotations

import logging

from camledger.utils.logger import STDOUT_HANDLER_NAME, configure_logging, get_logger


def _ledger_handlers() -> list[logging.Handler]:
    return [
        handler
        for handler in logging.getLogger().handlers
        if handler.get_name() == STDOUT_HANDLER_NAME
    ]


def test_repeated_setup_reuses_one_handler():
    first = configure_logging()
    second = configure_logging()
    get_logger("camledger.tests")

    assert first is second
    assert _ledger_handlers() == [first]


def test_forced_setup_replaces_handler_and_level():
    root = logging.getLogger()
    previous_level = root.level
    original = configure_logging()
    try:
        replaced = configure_logging(level="warning", force=True)

        assert replaced is not original
        assert _ledger_handlers() == [replaced]
        assert root.level == logging.WARNING
    finally:
        configure_logging(force=True)
        root.setLevel(previous_level)
