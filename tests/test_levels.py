import pytest

from driver import apply
from levels import ChannelMeans, channel_means, channel_range
from raster import Raster


def test_statistics():
    img = Raster.from_rows([[(10, 20, 30), (110, 220, 30)]])
    rng = channel_range(img)
    assert rng.lows == (10, 20, 30)
    assert rng.highs == (110, 220, 30)
    assert channel_means(img).means == (60.0, 120.0, 30.0)
    assert ChannelMeans((30.0, 60.0, 90.0)).overall == pytest.approx(60.0)


class TestAutolevels:
    def test_stretches_each_channel(self):
        img = Raster.from_rows([[(10, 20, 30), (60, 120, 30), (110, 220, 30)]])
        out = apply("autolevels", img)
        assert out.pixel(0, 0) == (0, 0, 30)
        # 127.5 rounds half away from zero
        assert out.pixel(1, 0) == (128, 128, 30)
        assert out.pixel(2, 0) == (255, 255, 30)

    def test_uniform_image_is_unchanged(self):
        img = Raster.blank(4, 4, fill=(90, 90, 200))
        assert apply("autolevels", img) == img


class TestGrayWorld:
    def test_balances_channel_means(self):
        img = Raster.from_rows([[(100, 50, 0), (100, 150, 0)]])
        out = apply("gray_world", img)
        assert out.pixel(0, 0) == (67, 33, 0)
        assert out.pixel(1, 0) == (67, 100, 0)

    def test_neutral_image_is_unchanged(self):
        img = Raster.from_rows([[(40, 40, 40), (200, 200, 200)]])
        assert apply("gray_world", img) == img

    def test_black_image_does_not_divide_by_zero(self):
        img = Raster.blank(3, 2)
        assert apply("gray_world", img) == img

    def test_clamps_overflow(self):
        img = Raster.from_rows([[(200, 100, 100), (0, 100, 100), (0, 100, 100), (0, 100, 100)]])
        out = apply("gray_world", img)
        assert out.pixel(0, 0) == (255, 83, 83)
        assert out.pixel(1, 0) == (0, 83, 83)


class TestIdealReflector:
    def test_scales_max_to_white_with_zero_guard(self):
        img = Raster.from_rows([[(50, 0, 10), (100, 0, 20)]])
        out = apply("ideal_reflector", img)
        assert out.pixel(0, 0) == (128, 0, 128)
        assert out.pixel(1, 0) == (255, 0, 255)

    def test_black_image_is_unchanged(self):
        img = Raster.blank(2, 2)
        assert apply("ideal_reflector", img) == img

