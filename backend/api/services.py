"""
Process-wide engine instance for the HTTP layer.

Built lazily on first use so importing the URLconf never starts threads.
"""
import logging
from functools import lru_cache

from dispatch.engine import Engine, build_engine

logger = logging.getLogger(__name__)

_sweepers = []


@lru_cache(maxsize=None)
def get_engine() -> Engine:
    return build_engine()


def start_sweepers() -> None:
    if _sweepers:
        return
    for task in get_engine().sweepers():
        task.start()
        _sweepers.append(task)
    logger.info("Started %d background sweepers", len(_sweepers))


def stop_sweepers() -> None:
    while _sweepers:
        _sweepers.pop().stop(timeout=1)
