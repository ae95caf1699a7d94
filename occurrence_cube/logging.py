import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


def log_action[T](action: str, func: Callable[[], T]) -> T:
    """Run one pipeline step, logging when it starts, ends or aborts."""
    logger.info(f"Starting: {action}")
    start_time = time.monotonic()
    try:
        result = func()
    except Exception:
        logger.error(f"{action} failed after {time.monotonic() - start_time:.4f}s")
        raise
    logger.info(f"Finished: {action} in {time.monotonic() - start_time:.4f}s")
    return result
