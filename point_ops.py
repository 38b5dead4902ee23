# point_ops.py: per-pixel colour rules and the horizontal shift family
# -----------------------------------------------------------------------------
# Every transform here reads one source pixel per output pixel. The colour
# rules use the pixel at the same coordinate; the shift family reads a pixel
# a fixed distance away and fills the uncovered strip with a constant colour
# (no edge clamping).
#
#   python main.py run --url in.png --pipeline "sepia" --out out.png --extra sepia.k=30
#   python main.py run --url in.png --pipeline "shift_right|shift_left" --out out.png
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from raster import BLACK, WHITE, Raster, clamp_u8, luma
from registry import REGISTRY, BaseTransform, TransformKind

__all__ = [
    "InvertTransform",
    "GrayscaleTransform",
    "SepiaTransform",
    "BrightenTransform",
    "ShiftRightTransform",
    "ShiftLeftTransform",
]


@dataclass
class InvertTransform(BaseTransform):
    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        return 255 - source.row(y).astype(np.int64)


@dataclass
class GrayscaleTransform(BaseTransform):
    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        i = luma(source.row(y))
        return np.repeat(i[:, None], 3, axis=1)


@dataclass
class SepiaTransform(BaseTransform):
    """Luma tinted warm: R + 2k, G + k/2, B - k."""
    k: int = 20

    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        i = luma(source.row(y))
        k = int(self.k)
        offsets = np.array([2 * k, int(0.5 * k), -k], np.int64)
        return clamp_u8(i[:, None] + offsets[None, :])


@dataclass
class BrightenTransform(BaseTransform):
    delta: int = 20

    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        return clamp_u8(source.row(y).astype(np.int64) + int(self.delta))


def _shifted_row(source: Raster, y: int, offset: int, fill) -> np.ndarray:
    """Row y sampled at x + offset; samples falling off the raster take `fill`."""
    w = source.width
    xs = np.arange(w) + offset
    inside = (xs >= 0) & (xs < w)
    out = np.empty((w, 3), np.int64)
    out[:] = np.asarray(fill, np.int64)
    out[inside] = source.row(y)[xs[inside]]
    return out


@dataclass
class ShiftRightTransform(BaseTransform):
    """out(x, y) = src(x + shift, y); the last `shift` columns turn white."""
    shift: int = 50

    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        return _shifted_row(source, y, int(self.shift), WHITE)


@dataclass
class ShiftLeftTransform(BaseTransform):
    """out(x, y) = src(x - shift, y); the first `shift` columns turn black."""
    shift: int = 50

    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        return _shifted_row(source, y, -int(self.shift), BLACK)


REGISTRY.register(TransformKind.INVERT, InvertTransform)
REGISTRY.register(TransformKind.GRAYSCALE, GrayscaleTransform)
REGISTRY.register(TransformKind.SEPIA, SepiaTransform)
REGISTRY.register(TransformKind.BRIGHTEN, BrightenTransform)
REGISTRY.register(TransformKind.SHIFT_RIGHT, ShiftRightTransform)
REGISTRY.register(TransformKind.SHIFT_LEFT, ShiftLeftTransform)
