"""Wall-clock source for reward and lock projections."""
import time


def unix_now() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())
