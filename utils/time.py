import time


def now_ms() -> int:
    """Current time as epoch milliseconds, the timestamp format stored in documents."""
    return int(time.time() * 1000)


def minutes_ms(minutes: float) -> int:
    return int(minutes * 60 * 1000)
