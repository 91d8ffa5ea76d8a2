"""Process-wide logging setup for the CAM ledger."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from camledger.utils.config import get_settings


STDOUT_HANDLER_NAME = "camledger-stdout"


def _find_stdout_handler(root: logging.Logger) -> Optional[logging.Handler]:
    for handler in root.handlers:
        if handler.get_name() == STDOUT_HANDLER_NAME:
            return handler
    return None


def configure_logging(level: Optional[str] = None, force: bool = False) -> logging.Handler:
    """Attach the ledger's stdout handler to the root logger.

    The handler is identified by name, so repeated calls reuse it; ``force``
    swaps it for a fresh one built from the current settings.
    """
    root = logging.getLogger()
    handler = _find_stdout_handler(root)
    if handler is not None and not force:
        return handler
    if handler is not None:
        root.removeHandler(handler)
        handler.close()

    settings = get_settings()
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(STDOUT_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(settings.log_format))
    root.addHandler(handler)
    root.setLevel((level or settings.log_level).upper())
    return handler


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
