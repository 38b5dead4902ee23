from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

import numpy as np
from PIL import Image

Color = Tuple[int, ...]

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)


# =============== Scalar & array helpers ===============
def clamp(value, lo, hi):
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


def clamp_u8(values: np.ndarray) -> np.ndarray:
    return np.clip(values, 0, 255).astype(np.uint8)


def round_half_away(values: np.ndarray) -> np.ndarray:
    """Round to nearest integer, halves away from zero (numpy rounds halves to even)."""
    values = np.asarray(values, dtype=np.float64)
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


def luma(rgb: np.ndarray) -> np.ndarray:
    """Integer intensity 0.299R + 0.587G + 0.114B, truncated.

    Works on any array whose last axis holds at least R, G, B.
    Integer weights keep e.g. pure white at exactly 255.
    """
    rgb = np.asarray(rgb, dtype=np.int64)
    return (299 * rgb[..., 0] + 587 * rgb[..., 1] + 114 * rgb[..., 2]) // 1000


# =============== Border policy ===============
def clamp_coords(indices, size: int):
    """Clamp-to-edge: map every index onto [0, size-1]. No wrap, no mirror."""
    return np.clip(indices, 0, size - 1)


# =============== Raster ===============
@dataclass(frozen=True, eq=False)
class Raster:
    """Read-only H x W x C (C = 3 or 4) uint8 pixel grid."""
    pixels: np.ndarray

    def __post_init__(self) -> None:
        arr = self.pixels
        if not isinstance(arr, np.ndarray) or arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise ValueError(f"Raster expects an HxWx3 or HxWx4 array, got shape {getattr(arr, 'shape', None)}")
        if arr.dtype != np.uint8:
            raise ValueError(f"Raster expects uint8 pixels, got {arr.dtype}")
        if arr.flags.writeable:
            arr = arr.copy()
            arr.setflags(write=False)
            object.__setattr__(self, "pixels", arr)

    # ---- constructors ----
    @classmethod
    def blank(cls, width: int, height: int, *, channels: int = 3, fill: Sequence[int] = BLACK) -> "Raster":
        if width < 0 or height < 0:
            raise ValueError(f"Raster size must be non-negative, got {width}x{height}")
        color = tuple(fill) + (255,) * (channels - len(fill))
        arr = np.empty((height, width, channels), np.uint8)
        arr[...] = np.asarray(color[:channels], np.uint8)
        return cls(arr)

    @classmethod
    def from_rows(cls, rows: Iterable[Iterable[Sequence[int]]]) -> "Raster":
        """Build from nested rows of (R, G, B) or (R, G, B, A) tuples, top row first."""
        rows = [list(r) for r in rows]
        if not rows or not rows[0]:
            return cls.blank(0, len(rows))
        arr = np.asarray(rows, dtype=np.int64)
        if arr.ndim != 3:
            raise ValueError("Rows must all have the same width and channel count")
        if arr.min() < 0 or arr.max() > 255:
            raise ValueError("Channel values must lie in [0, 255]")
        return cls(arr.astype(np.uint8))

    @classmethod
    def from_pil(cls, img: Image.Image) -> "Raster":
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
        return cls(np.array(img, dtype=np.uint8))

    def to_pil(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.pixels))

    # ---- shape ----
    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[..., :3]

    # ---- access ----
    def pixel(self, x: int, y: int) -> Color:
        return tuple(int(v) for v in self.pixels[y, x])

    def row(self, y: int) -> np.ndarray:
        """RGB values of row y, shape (W, 3)."""
        return self.pixels[y, :, :3]

    def neighbor_row(self, y: int, dx: int, dy: int) -> np.ndarray:
        """RGB of the neighbour at offset (dx, dy) for every pixel of row y.

        Neighbour coordinates are resolved with the clamp-to-edge policy, so
        the result always has shape (W, 3).
        """
        ys = clamp_coords(y + dy, self.height)
        xs = clamp_coords(np.arange(self.width) + dx, self.width)
        return self.pixels[ys, xs, :3]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Raster):
            return NotImplemented
        return self.pixels.shape == other.pixels.shape and bool(np.array_equal(self.pixels, other.pixels))
