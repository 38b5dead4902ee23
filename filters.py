# filters.py: kernel convolution transforms (registers itself)
# -----------------------------------------------------------------------------
# Emboss, diagonal blur and the two gradient-magnitude operators. Kernels are
# indexed [dy + r, dx + r] with r = size // 2; neighbours outside the raster
# are clamped to the nearest edge pixel by Raster.neighbor_row.
#
# Usage (examples):
#   python main.py run --url input.jpg --pipeline "emboss" --out out.png --extra emboss.bias=80
#   python main.py run --url input.jpg --pipeline "grayscale|sobel" --out edges.png
#   python main.py run --url input.jpg --pipeline "blur" --out soft.png --extra blur.size=5
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from raster import Raster, clamp_u8, luma, round_half_away
from registry import REGISTRY, BaseTransform, TransformKind

__all__ = [
    "EMBOSS_KERNEL",
    "SOBEL_X",
    "SOBEL_Y",
    "SCHARR_X",
    "SCHARR_Y",
    "convolve_row",
    "EmbossTransform",
    "BlurTransform",
    "SobelTransform",
    "ScharrTransform",
]

# ============================ kernels ============================

EMBOSS_KERNEL = np.array([[0, -1, 0],
                          [1, 0, -1],
                          [0, 1, 0]], np.float64)

SOBEL_X = np.array([[-1, 0, 1],
                    [-2, 0, 2],
                    [-1, 0, 1]], np.float64)
SOBEL_Y = SOBEL_X.T.copy()

SCHARR_X = np.array([[-3, 0, 3],
                     [-10, 0, 10],
                     [-3, 0, 3]], np.float64)
SCHARR_Y = SCHARR_X.T.copy()


def convolve_row(source: Raster, y: int, kernel: np.ndarray) -> np.ndarray:
    """Per-channel weighted neighbourhood sums for row y, float64 (W, 3)."""
    kernel = np.asarray(kernel, np.float64)
    if kernel.ndim != 2 or kernel.shape[0] != kernel.shape[1] or kernel.shape[0] % 2 == 0:
        raise ValueError(f"Kernel must be square with odd size, got shape {kernel.shape}")
    r = kernel.shape[0] // 2
    acc = np.zeros((source.width, 3), np.float64)
    for dy in range(-r, r + 1):
        for dx in range(-r, r + 1):
            w = kernel[dy + r, dx + r]
            if w == 0:
                continue
            acc += w * source.neighbor_row(y, dx, dy)
    return acc


# ============================ transforms ============================

@dataclass
class EmbossTransform(BaseTransform):
    """Directional relief: clamp channel sums, take luma, lift by `bias`."""
    bias: int = 100

    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        sums = np.clip(convolve_row(source, y, EMBOSS_KERNEL), 0, 255)
        i = np.clip(luma(sums) + int(self.bias), 0, 255)
        return np.repeat(i[:, None], 3, axis=1)


@dataclass
class BlurTransform(BaseTransform):
    """Identity-matrix kernel of `size`, normalised by its weight total.

    The result averages the pixels along the main diagonal through each
    coordinate, which reads as a diagonal motion blur.
    """
    size: int = 9

    def __post_init__(self) -> None:
        if int(self.size) < 1 or int(self.size) % 2 == 0:
            raise ValueError(f"blur size must be a positive odd integer, got {self.size}")

    def kernel(self) -> np.ndarray:
        return np.eye(int(self.size), dtype=np.float64)

    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        kernel = self.kernel()
        total = float(kernel.sum()) or 1.0
        return clamp_u8(round_half_away(convolve_row(source, y, kernel) / total))


@dataclass
class GradientMagnitudeTransform(BaseTransform):
    """round(sqrt(Gx^2 + Gy^2)) per channel, clamped to [0, 255]."""
    kernel_x = SOBEL_X
    kernel_y = SOBEL_Y

    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:
        gx = convolve_row(source, y, self.kernel_x)
        gy = convolve_row(source, y, self.kernel_y)
        return clamp_u8(round_half_away(np.sqrt(gx * gx + gy * gy)))


@dataclass
class SobelTransform(GradientMagnitudeTransform):
    kernel_x = SOBEL_X
    kernel_y = SOBEL_Y


@dataclass
class ScharrTransform(GradientMagnitudeTransform):
    kernel_x = SCHARR_X
    kernel_y = SCHARR_Y


# Register with the shared registry so `--pipeline sobel` etc. work
REGISTRY.register(TransformKind.EMBOSS, EmbossTransform)
REGISTRY.register(TransformKind.BLUR, BlurTransform)
REGISTRY.register(TransformKind.SOBEL, SobelTransform)
REGISTRY.register(TransformKind.SCHARR, ScharrTransform)
