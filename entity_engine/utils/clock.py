import time
from typing import Callable

Clock = Callable[[], int]


def epoch_ms() -> int:
    return time.time_ns() // 1_000_000
