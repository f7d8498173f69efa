"""Tests for tone mapping and image export.

Tests cover:
- Tone mapping functions (clamp, Reinhard, exposure)
- Exposure scaling and gamma correction
- The display pipeline keeps every value finite and in [0, 1]
- PNG export through Pillow
- RMSE computation
"""

import numpy as np
import pytest
from PIL import Image as PILImage


class TestToneMapping:
    def test_reinhard_preserves_black(self):
        from pathtracer.imaging.tonemap import tone_map_reinhard

        assert np.all(tone_map_reinhard(np.zeros((4, 4, 3), dtype=np.float32)) == 0.0)

    def test_reinhard_maps_one_to_half(self):
        from pathtracer.imaging.tonemap import tone_map_reinhard

        result = tone_map_reinhard(np.ones((2, 2, 3), dtype=np.float32))
        assert np.allclose(result, 0.5)

    def test_reinhard_is_monotonic_and_below_one(self):
        from pathtracer.imaging.tonemap import tone_map_reinhard

        values = np.linspace(0.0, 1000.0, 50, dtype=np.float32).reshape(1, 50, 1)
        result = tone_map_reinhard(np.repeat(values, 3, axis=2))
        assert np.all(np.diff(result[0, :, 0]) > 0.0)
        assert result.max() < 1.0

    def test_exposure_curve(self):
        from pathtracer.imaging.tonemap import tone_map_exposure

        result = tone_map_exposure(np.full((1, 1, 3), 1.0, dtype=np.float32), exposure=2.0)
        assert np.allclose(result, 1.0 - np.exp(-2.0))

    def test_clamp(self):
        from pathtracer.imaging.tonemap import tone_map_clamp

        image = np.array([[[-1.0, 0.5, 3.0]]], dtype=np.float32)
        assert np.allclose(tone_map_clamp(image), [[[0.0, 0.5, 1.0]]])


class TestExposureAndGamma:
    def test_exposure_is_linear(self):
        from pathtracer.imaging.tonemap import apply_exposure

        image = np.array([[[0.1, 0.2, 0.4]]], dtype=np.float32)
        assert np.allclose(apply_exposure(image, 2.5), [[[0.25, 0.5, 1.0]]])

    @pytest.mark.parametrize("exposure", [-1.0, float("nan"), float("inf")])
    def test_invalid_exposure(self, exposure):
        from pathtracer.imaging.tonemap import apply_exposure

        with pytest.raises(ValueError):
            apply_exposure(np.zeros((1, 1, 3), dtype=np.float32), exposure)

    def test_gamma_endpoints_and_midtone(self):
        from pathtracer.imaging.tonemap import apply_gamma

        image = np.array([[[0.0, 0.5, 1.0]]], dtype=np.float32)
        result = apply_gamma(image, 2.2)
        assert result[0, 0, 0] == 0.0
        assert result[0, 0, 2] == pytest.approx(1.0)
        assert result[0, 0, 1] == pytest.approx(0.5 ** (1.0 / 2.2), rel=1e-5)

    def test_gamma_one_is_identity(self):
        from pathtracer.imaging.tonemap import apply_gamma

        image = np.random.default_rng(0).random((3, 3, 3)).astype(np.float32)
        assert np.array_equal(apply_gamma(image, 1.0), image)

    @pytest.mark.parametrize("gamma", [0.0, -2.2])
    def test_invalid_gamma(self, gamma):
        from pathtracer.imaging.tonemap import apply_gamma

        with pytest.raises(ValueError):
            apply_gamma(np.zeros((1, 1, 3), dtype=np.float32), gamma)


class TestDisplayPipeline:
    @pytest.mark.parametrize("tone_map", ["none", "clamp", "reinhard", "exposure"])
    def test_output_finite_and_in_range(self, tone_map):
        from pathtracer.imaging.tonemap import process_image_for_display

        image = np.array(
            [[[0.0, 0.5, 2.0], [np.nan, np.inf, -np.inf]], [[-3.0, 1e30, 1.0], [0.2, 0.3, 0.4]]],
            dtype=np.float32,
        )
        result = process_image_for_display(image, tone_map=tone_map, gamma=2.2, exposure=1.5)
        assert result.shape == image.shape
        assert result.dtype == np.float32
        assert np.all(np.isfinite(result))
        assert result.min() >= 0.0 and result.max() <= 1.0
        # Non-finite input is treated as black
        assert np.all(result[0, 1] == 0.0)

    def test_unknown_method_raises(self):
        from pathtracer.imaging.tonemap import process_image_for_display

        with pytest.raises(ValueError, match="Unknown tone mapping"):
            process_image_for_display(np.zeros((1, 1, 3)), tone_map="filmic")

    def test_exposure_zero_gives_black(self):
        from pathtracer.imaging.tonemap import process_image_for_display

        result = process_image_for_display(np.full((2, 2, 3), 5.0), exposure=0.0)
        assert np.all(result == 0.0)


class TestExport:
    def test_image_to_uint8_rounds(self):
        from pathtracer.imaging.export import image_to_uint8

        result = image_to_uint8(np.array([[[0.0, 0.5, 1.0]]]))
        assert result.dtype == np.uint8
        assert result.tolist() == [[[0, 128, 255]]]

    def test_save_png(self, tmp_path):
        from pathtracer.imaging.export import save_png

        image = np.zeros((4, 6, 3), dtype=np.float32)
        image[0, :, 0] = 10.0
        path = tmp_path / "out.png"
        save_png(image, path)

        with PILImage.open(path) as loaded:
            assert loaded.size == (6, 4)
            assert loaded.mode == "RGB"
            pixels = np.asarray(loaded)
        # Row 0 is the top row of the file
        assert np.all(pixels[0, :, 0] == 255)
        assert np.all(pixels[1:] == 0)

    def test_save_display_values(self, tmp_path):
        from pathtracer.imaging.export import save_png

        path = tmp_path / "display.png"
        save_png(np.full((2, 2, 3), 0.5, dtype=np.float32), path, linear=False)
        with PILImage.open(path) as loaded:
            assert np.all(np.asarray(loaded) == 128)

    def test_save_png_rejects_bad_shape(self, tmp_path):
        from pathtracer.imaging.export import save_png

        with pytest.raises(ValueError):
            save_png(np.zeros((4, 4)), tmp_path / "bad.png")

    def test_rmse(self):
        from pathtracer.imaging.export import compute_rmse

        a = np.zeros((2, 2, 3), dtype=np.float32)
        b = np.full((2, 2, 3), 0.5, dtype=np.float32)
        assert compute_rmse(a, a) == 0.0
        assert compute_rmse(a, b) == pytest.approx(0.5)
        with pytest.raises(ValueError):
            compute_rmse(a, np.zeros((3, 3, 3)))
