import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the package logger.

    Safe to call more than once (the app factory runs in every test client).
    """
    package_logger = logging.getLogger("paddle_tournaments")
    package_logger.setLevel(level.upper())
    if not any(getattr(h, "_paddle_handler", False) for h in package_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._paddle_handler = True
        package_logger.addHandler(handler)
