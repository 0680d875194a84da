"""Retry logic with exponential backoff"""

import time
from typing import Callable, Any, Tuple, Type
from src.utils.logging import get_logger
from src.utils.errors import FraudScoringError

logger = get_logger(__name__)


def retry_with_exponential_backoff(
    func: Callable,
    *args,
    max_retries: int = 3,
    base_delay: float = 0.005,
    max_delay: float = 0.05,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    **kwargs
) -> Any:
    """
    Retry function with exponential backoff

    Delays are in seconds and sized for the per-request latency budget.

    Args:
        func: Function to retry
        *args, **kwargs: Arguments to pass to func
        max_retries: Maximum attempts
        base_delay: Delay after the first failure (5ms)
        max_delay: Delay cap (50ms)
        retry_on: Exception types worth retrying; anything else propagates

    Returns:
        Function result

    Raises:
        FraudScoringError: If all retries exhausted
    """
    for attempt in range(max_retries):
        try:
            return func(*args, **kwargs)

        except retry_on as e:
            if attempt == max_retries - 1:
                logger.error(f"All {max_retries} retry attempts exhausted")
                raise FraudScoringError(f"Failed after {max_retries} attempts: {e}") from e

            delay = min(base_delay * (2 ** attempt), max_delay)
            logger.warning(f"Attempt {attempt + 1} failed, retrying in {delay:.3f}s: {e}")
            time.sleep(delay)
