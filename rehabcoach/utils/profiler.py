from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque


class FrameClock:
    """Rolling FPS estimate plus detection-lag checks for the capture loop."""

    def __init__(self, window: int = 30, clock: Callable[[], float] = time.perf_counter) -> None:
        self.window = max(1, window)
        self.clock = clock
        self.buffer: Deque[float] = deque(maxlen=self.window)
        self.last_time = clock()

    def tick(self) -> float:
        now = self.clock()
        delta = now - self.last_time
        self.last_time = now
        fps = 0.0 if delta <= 0 else 1.0 / delta
        self.buffer.append(fps)
        return fps

    def get_fps(self) -> float:
        if not self.buffer:
            return 0.0
        return float(sum(self.buffer) / len(self.buffer))

    def lag_ms(self, captured_at: float) -> float:
        return max(0.0, (self.clock() - captured_at) * 1000.0)

    def is_stale(self, captured_at: float, max_lag_ms: float) -> bool:
        if max_lag_ms <= 0:
            return False
        return self.lag_ms(captured_at) > max_lag_ms
