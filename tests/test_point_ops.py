import numpy as np
import pytest

from driver import apply
from raster import Raster


@pytest.fixture
def noisy() -> Raster:
    rng = np.random.default_rng(7)
    return Raster(rng.integers(0, 256, size=(6, 9, 3), dtype=np.uint8))


def test_invert_is_an_involution(noisy):
    once = apply("invert", noisy)
    assert once.pixel(0, 0) == tuple(255 - v for v in noisy.pixel(0, 0))
    assert apply("invert", once) == noisy


def test_grayscale_two_by_two_by_hand():
    img = Raster.from_rows([[(255, 0, 0), (0, 255, 0)],
                            [(0, 0, 255), (255, 255, 255)]])
    out = apply("grayscale", img)
    assert out.pixel(0, 0) == (76, 76, 76)
    assert out.pixel(1, 0) == (149, 149, 149)
    assert out.pixel(0, 1) == (29, 29, 29)
    assert out.pixel(1, 1) == (255, 255, 255)


def test_grayscale_channels_equal(noisy):
    px = apply("grayscale", noisy).pixels
    assert np.array_equal(px[..., 0], px[..., 1])
    assert np.array_equal(px[..., 1], px[..., 2])


def test_sepia_offsets_and_clamping():
    img = Raster.from_rows([[(100, 100, 100), (255, 255, 255), (0, 0, 0)]])
    out = apply("sepia", img)
    assert out.pixel(0, 0) == (140, 110, 80)
    assert out.pixel(1, 0) == (255, 255, 235)
    assert out.pixel(2, 0) == (40, 10, 0)


def test_sepia_custom_k():
    out = apply("sepia", Raster.from_rows([[(100, 100, 100)]]), k=10)
    assert out.pixel(0, 0) == (120, 105, 90)


def test_brighten_clamps_each_channel():
    out = apply("brighten", Raster.from_rows([[(250, 0, 100)]]))
    assert out.pixel(0, 0) == (255, 20, 120)


class TestShift:
    row = [(10, 10, 10), (20, 20, 20), (30, 30, 30)]

    def test_shift_right_fills_white(self):
        out = apply("shift_right", Raster.from_rows([self.row]), shift=1)
        assert [out.pixel(x, 0) for x in range(3)] == [(20, 20, 20), (30, 30, 30), (255, 255, 255)]

    def test_shift_left_fills_black(self):
        out = apply("shift_left", Raster.from_rows([self.row]), shift=1)
        assert [out.pixel(x, 0) for x in range(3)] == [(0, 0, 0), (10, 10, 10), (20, 20, 20)]

    def test_shift_right_narrower_than_shift_is_all_white(self, noisy):
        out = apply("shift_right", noisy)
        assert (out.pixels == 255).all()

    def test_shift_left_narrower_than_shift_is_all_black(self, noisy):
        out = apply("shift_left", noisy)
        assert (out.pixels == 0).all()

    def test_default_shift_is_fifty(self):
        img = Raster(np.arange(60, dtype=np.uint8).reshape(1, 60, 1).repeat(3, axis=2))
        out = apply("shift_right", img)
        assert out.pixel(0, 0) == (50, 50, 50)
        assert out.pixel(9, 0) == (59, 59, 59)
        assert out.pixel(10, 0) == (255, 255, 255)


def test_alpha_is_left_alone():
    img = Raster.from_rows([[(10, 20, 30, 77), (40, 50, 60, 0)]])
    out = apply("invert", img)
    assert out.pixel(0, 0) == (245, 235, 225, 77)
    assert out.pixel(1, 0) == (215, 205, 195, 0)
