import numpy as np
import pytest

from driver import apply
from morphology import PLUS_OFFSETS, WINDOW_OFFSETS
from raster import Raster
from registry import REGISTRY

RED = (255, 0, 0)      # luma 76
GREEN = (0, 130, 0)    # luma 76 as well
GREY = (50, 50, 50)


def _grid(fill, **cells):
    """3x3 raster of `fill` with named cells overridden: c<x><y>=color."""
    rows = [[fill] * 3 for _ in range(3)]
    for name, color in cells.items():
        x, y = int(name[1]), int(name[2])
        rows[y][x] = color
    return Raster.from_rows(rows)


def test_offsets():
    assert PLUS_OFFSETS == [(0, -1), (-1, 0), (0, 0), (1, 0), (0, 1)]
    assert len(WINDOW_OFFSETS) == 9
    assert WINDOW_OFFSETS[4] == (0, 0)


def test_dilate_picks_brightest_in_cross():
    img = _grid(GREY, c11=(10, 10, 10), c10=(200, 0, 0), c01=(0, 200, 0))
    assert apply("dilate", img).pixel(1, 1) == (0, 200, 0)


def test_dilate_ignores_diagonals():
    img = _grid((0, 0, 0), c00=(255, 255, 255))
    assert apply("dilate", img).pixel(1, 1) == (0, 0, 0)


def test_erode_picks_darkest_in_cross():
    img = _grid(GREY, c11=(10, 10, 10), c10=(200, 0, 0), c01=(0, 200, 0))
    out = apply("erode", img)
    assert out.pixel(1, 1) == (10, 10, 10)
    assert out.pixel(0, 0) == GREY


@pytest.mark.parametrize("top,bottom", [(RED, GREEN), (GREEN, RED)])
def test_dilate_tie_goes_to_first_in_scan_order(top, bottom):
    img = _grid((0, 0, 0), c10=top, c12=bottom)
    assert apply("dilate", img).pixel(1, 1) == top


def test_erode_tie_goes_to_first_in_scan_order():
    img = _grid((255, 255, 255), c10=GREEN, c12=RED)
    assert apply("erode", img).pixel(1, 1) == GREEN


def test_median_uniform_is_identity():
    img = Raster.blank(4, 3, fill=(3, 140, 220))
    assert apply("median", img) == img


def test_median_of_distinct_greys():
    values = np.array([[80, 10, 60], [0, 70, 30], [50, 20, 40]], np.uint8)
    img = Raster(np.repeat(values[:, :, None], 3, axis=2))
    assert apply("median", img).pixel(1, 1) == (40, 40, 40)


def test_median_keeps_colour_of_tied_centre_sample():
    img = _grid(RED, c11=GREEN)
    assert apply("median", img).pixel(1, 1) == GREEN


@pytest.mark.parametrize("rank", [-1, 9])
def test_median_rejects_rank_outside_window(rank):
    with pytest.raises(ValueError):
        REGISTRY.create("median", rank=rank)


def test_median_removes_isolated_speck():
    img = _grid((20, 20, 20), c11=(255, 255, 255))
    out = apply("median", img)
    assert (out.pixels == 20).all()


@pytest.mark.parametrize("kind", ["dilate", "erode", "median"])
def test_single_pixel_resolves_to_itself(kind):
    img = Raster.from_rows([[(12, 34, 56)]])
    assert apply(kind, img) == img
