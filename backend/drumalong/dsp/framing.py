from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Frame:
    start: int  # sample index of the first sample
    samples: np.ndarray


class Framer:
    """Fixed-size overlapping analysis windows over a sample buffer.

    Frames cover ``[i, i + frame_size)`` for ``i = 0, hop, 2*hop, ...`` while
    the window fits entirely inside the buffer. Iterating again starts over,
    so a framer can be scanned more than once. Frames are views into the
    buffer, not copies.
    """

    def __init__(self, samples: np.ndarray, frame_size: int, hop_size: int) -> None:
        if frame_size <= 0 or hop_size <= 0:
            raise ValueError(f"frame_size and hop_size must be positive, got {frame_size}/{hop_size}")
        self.samples = samples
        self.frame_size = frame_size
        self.hop_size = hop_size

    def __len__(self) -> int:
        n = len(self.samples)
        if n < self.frame_size:
            return 0
        return (n - self.frame_size) // self.hop_size + 1

    def __iter__(self) -> Iterator[Frame]:
        last_start = len(self.samples) - self.frame_size
        for start in range(0, last_start + 1, self.hop_size):
            yield Frame(start=start, samples=self.samples[start : start + self.frame_size])
