"""
levels.py: two-pass colour corrections driven by whole-image statistics.

`prepare` scans the full source once per pass; `compute_row` then rescales
each channel. A channel whose statistic would divide by zero (flat channel,
all-zero channel) is passed through unchanged.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from raster import Raster, clamp_u8, round_half_away
from registry import REGISTRY, BaseTransform, TransformKind


# =============== Statistics ===============
@dataclass(frozen=True)
class ChannelMeans:
    means: Tuple[float, float, float]

    @property
    def overall(self) -> float:
        return sum(self.means) / 3.0


@dataclass(frozen=True)
class ChannelRange:
    lows: Tuple[int, int, int]
    highs: Tuple[int, int, int]


def channel_means(source: Raster) -> ChannelMeans:
    rgb = source.rgb.reshape(-1, 3).astype(np.float64)
    return ChannelMeans(tuple(float(v) for v in rgb.mean(axis=0)))


def channel_range(source: Raster) -> ChannelRange:
    rgb = source.rgb.reshape(-1, 3)
    return ChannelRange(
        tuple(int(v) for v in rgb.min(axis=0)),
        tuple(int(v) for v in rgb.max(axis=0)),
    )


def _rescale(row: np.ndarray, offset, numer, denom) -> np.ndarray:
    """(row - offset) * numer / denom per channel; channels with denom == 0 stay as they are."""
    src = row.astype(np.float64)
    offset = np.broadcast_to(np.asarray(offset, np.float64), (3,))
    numer = np.broadcast_to(np.asarray(numer, np.float64), (3,))
    denom = np.broadcast_to(np.asarray(denom, np.float64), (3,))
    usable = denom > 0
    safe = np.where(usable, denom, 1.0)
    out = (src - offset[None, :]) * numer[None, :] / safe[None, :]
    out = np.where(usable[None, :], round_half_away(out), src)
    return clamp_u8(out)


# =============== Transforms ===============
@dataclass
class GrayWorldTransform(BaseTransform):
    """Scale each channel so its mean matches the mean of all three."""
    def prepare(self, source: Raster) -> ChannelMeans:
        return channel_means(source)

    def compute_row(self, source: Raster, y: int, stats: Optional[ChannelMeans] = None) -> np.ndarray:
        stats = stats if stats is not None else self.prepare(source)
        return _rescale(source.row(y), 0.0, stats.overall, stats.means)


@dataclass
class AutolevelsTransform(BaseTransform):
    """Stretch each channel's [min, max] onto [0, 255]."""
    def prepare(self, source: Raster) -> ChannelRange:
        return channel_range(source)

    def compute_row(self, source: Raster, y: int, stats: Optional[ChannelRange] = None) -> np.ndarray:
        stats = stats if stats is not None else self.prepare(source)
        spans = np.subtract(stats.highs, stats.lows)
        return _rescale(source.row(y), stats.lows, 255.0, spans)


@dataclass
class IdealReflectorTransform(BaseTransform):
    """Treat each channel's brightest value as white."""
    def prepare(self, source: Raster) -> ChannelRange:
        return channel_range(source)

    def compute_row(self, source: Raster, y: int, stats: Optional[ChannelRange] = None) -> np.ndarray:
        stats = stats if stats is not None else self.prepare(source)
        return _rescale(source.row(y), 0.0, 255.0, stats.highs)


REGISTRY.register(TransformKind.GRAY_WORLD, GrayWorldTransform)
REGISTRY.register(TransformKind.AUTOLEVELS, AutolevelsTransform)
REGISTRY.register(TransformKind.IDEAL_REFLECTOR, IdealReflectorTransform)
