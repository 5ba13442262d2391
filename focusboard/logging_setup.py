from __future__ import annotations

import logging
import sys

LOGGER_NAME = 'focusboard'
_HANDLER_NAME = 'focusboard-console'


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """
    Attach one console handler to the package logger.

    Safe to call once per app instance: an existing handler is reused, and the
    root logger is left alone so host applications and pytest keep theirs.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(
            logging.Formatter(
                fmt='%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S',
            )
        )
        logger.addHandler(handler)
    return logger
