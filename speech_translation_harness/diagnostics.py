import logging
from datetime import datetime
from typing import Optional

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    """Configureer basis logging om de flow van een test te kunnen volgen."""
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)


def log_test_start(name: str) -> datetime:
    started = datetime.now()
    logger.info(f"------------------Starting test case: {name}-------------------------")
    logger.info(f"Start Time: {started.strftime('%Y-%m-%d %H:%M:%S')}")
    return started


def log_test_end(name: str, started: Optional[datetime] = None, outcome: str = "") -> None:
    ended = datetime.now()
    logger.info(f"End Time: {ended.strftime('%Y-%m-%d %H:%M:%S')}")
    if started is not None:
        duration = (ended - started).total_seconds()
        logger.info(f"Test case {name} finished in {duration:.2f}s {outcome}".rstrip())
