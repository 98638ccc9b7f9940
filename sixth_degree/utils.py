"""
Utility functions for the application
"""
import time


def elapsed_ms(started: float) -> int:
    """
    Whole milliseconds elapsed since a ``time.perf_counter()`` reading

    Args:
        started: Value returned by time.perf_counter() at the start

    Returns:
        Elapsed time in milliseconds, truncated
    """
    return int((time.perf_counter() - started) * 1000)
