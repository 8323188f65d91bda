import logging

from quizproctor.core import config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging(level: str | None = None) -> None:
    global _configured

    if _configured:
        return

    logging.basicConfig(level=level or config.LOG_LEVEL, format=LOG_FORMAT)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
