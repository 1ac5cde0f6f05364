"""Logging setup for the keyston logger hierarchy."""

import logging

APP_LOGGER = "keyston"
_HTTP_LOGGERS = ("httpx", "httpcore")
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(debug: bool = False) -> logging.Logger:
    """Attach one stream handler to ``keyston`` and set levels for ``debug``.

    Repeated calls only adjust levels. Per-request logs from httpx are shown
    in debug mode only.
    """
    logger = logging.getLogger(APP_LOGGER)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    return logger
