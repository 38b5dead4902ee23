"""
morphology.py: selection filters that pick a whole neighbour pixel by luma.

Unlike convolution nothing is blended: the output colour is always one of the
source colours found in the neighbourhood.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import numpy as np

from raster import Raster, luma
from registry import REGISTRY, BaseTransform, TransformKind

# 4-connected cross plus centre, in scan order (dy outer, dx inner).
PLUS_OFFSETS: List[Tuple[int, int]] = [
    (dx, dy)
    for dy in (-1, 0, 1)
    for dx in (-1, 0, 1)
    if dx == 0 or dy == 0
]

# Full 3x3 window, gathered column by column (dx outer, dy inner).
WINDOW_OFFSETS: List[Tuple[int, int]] = [(dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1)]


def gather(source: Raster, y: int, offsets: List[Tuple[int, int]]) -> np.ndarray:
    """Stack the clamped neighbours of row y: shape (len(offsets), W, 3)."""
    return np.stack([source.neighbor_row(y, dx, dy) for dx, dy in offsets], axis=0)


def _pick(samples: np.ndarray, index: np.ndarray) -> np.ndarray:
    cols = np.arange(samples.shape[1])
    return samples[index, cols]


@dataclass
class DilateTransform(BaseTransform):
    """Brightest pixel of the plus-shaped neighbourhood; first one wins ties."""
    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        samples = gather(source, y, PLUS_OFFSETS)
        return _pick(samples, np.argmax(luma(samples), axis=0))


@dataclass
class ErodeTransform(BaseTransform):
    """Darkest pixel of the plus-shaped neighbourhood; first one wins ties."""
    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        samples = gather(source, y, PLUS_OFFSETS)
        return _pick(samples, np.argmin(luma(samples), axis=0))


@dataclass
class MedianTransform(BaseTransform):
    """3x3 median by luma. The full colour of the median sample is kept.

    Samples are ranked brightest first with a stable sort, so equal lumas keep
    their gathering order; rank 4 of 9 is the median.
    """
    rank: int = 4

    def __post_init__(self) -> None:
        if not 0 <= int(self.rank) < len(WINDOW_OFFSETS):
            raise ValueError(f"median rank must be in [0, {len(WINDOW_OFFSETS) - 1}], got {self.rank}")

    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        samples = gather(source, y, WINDOW_OFFSETS)
        order = np.argsort(-luma(samples), axis=0, kind="stable")
        return _pick(samples, order[int(self.rank)])


REGISTRY.register(TransformKind.DILATE, DilateTransform)
REGISTRY.register(TransformKind.ERODE, ErodeTransform)
REGISTRY.register(TransformKind.MEDIAN, MedianTransform)
