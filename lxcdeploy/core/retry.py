"""Retry and polling helpers with exponential backoff."""
import functools
import threading
import time
from typing import Callable, Optional, Tuple, Type

from lxcdeploy.core.logger import get_logger
from lxcdeploy.errors import OperationCancelled

logger = get_logger(__name__)


def retry(
    max_attempts: int = 3,
    delay: float = 2.0,
    backoff: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
):
    """Retry decorator with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts
        delay: Initial delay in seconds between attempts
        backoff: Backoff multiplier for each retry
        exceptions: Exception types that trigger a retry

    Example:
        @retry(max_attempts=3, delay=5, exceptions=(subprocess.CalledProcessError,))
        def download(self, template):
            ...
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay

            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        logger.error(
                            f"{func.__name__} failed after {max_attempts} attempts: {e}"
                        )
                        raise

                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt}/{max_attempts}): {e}"
                    )
                    logger.info(f"Retrying in {current_delay:.1f}s...")
                    time.sleep(current_delay)
                    current_delay *= backoff

            return None

        return wrapper

    return decorator


def wait_for(
    probe: Callable[[], bool],
    timeout: float,
    initial_delay: float = 1.0,
    backoff: float = 2.0,
    max_delay: float = 10.0,
    cancel: Optional[threading.Event] = None,
    description: str = "condition",
) -> bool:
    """Poll ``probe`` until it returns True or ``timeout`` seconds elapse.

    The delay between probes starts at ``initial_delay`` and grows by
    ``backoff`` up to ``max_delay``. Sleeping happens on ``cancel`` when one
    is given so a caller can interrupt the wait from another thread.

    Returns:
        True if the probe succeeded, False on timeout

    Raises:
        OperationCancelled: If ``cancel`` was set while waiting
    """
    deadline = time.monotonic() + timeout
    current_delay = initial_delay
    attempt = 0

    while True:
        if cancel is not None and cancel.is_set():
            raise OperationCancelled(f"Wait for {description} cancelled")

        attempt += 1
        if probe():
            logger.debug(f"{description} satisfied after {attempt} probe(s)")
            return True

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug(f"{description} not satisfied after {attempt} probe(s)")
            return False

        pause = min(current_delay, remaining)
        if cancel is not None:
            if cancel.wait(pause):
                raise OperationCancelled(f"Wait for {description} cancelled")
        else:
            time.sleep(pause)
        current_delay = min(current_delay * backoff, max_delay)
