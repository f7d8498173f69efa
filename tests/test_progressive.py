"""Tests for the progressive renderer.

This module tests the ProgressiveRenderer class including:
- Initialization and setup
- Batched accumulation reproduces a one-shot render exactly
- Progress callbacks and generators
- Reset functionality
- Image output in various formats

Note: Imports are done inside test methods to avoid Taichi initialization issues.
The conftest.py fixture initializes Taichi before tests run.
"""

import numpy as np
import pytest


def _small_scene():
    """A lit diffuse sphere in front of a sky-colored background."""
    from pathtracer.camera.pinhole import PinholeCamera
    from pathtracer.scene.manager import SceneManager

    manager = SceneManager()
    white = manager.add_diffuse_material(albedo=(0.8, 0.8, 0.8))
    lamp = manager.add_emissive_material(emission=(5.0, 5.0, 5.0))
    manager.add_sphere((0.0, 0.0, 0.0), 1.0, white)
    manager.add_sphere((0.0, 3.0, 1.0), 0.5, lamp)
    manager.set_background((0.3, 0.4, 0.5))
    return manager.build(PinholeCamera(lookfrom=(0.0, 0.0, 4.0), lookat=(0.0, 0.0, 0.0)))


class TestProgressiveRendererInit:
    """Test ProgressiveRenderer initialization."""

    def test_init_creates_render_target(self):
        from pathtracer.core.integrator import get_image_dimensions
        from pathtracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(_small_scene(), 12, 8)
        assert renderer.width == 12
        assert renderer.height == 8
        assert renderer.sample_count == 0
        assert get_image_dimensions() == (12, 8)
        assert "samples=0" in repr(renderer)

    @pytest.mark.parametrize("size", [(4096, 16), (16, 4096), (0, 16)])
    def test_init_rejects_bad_dimensions(self, size):
        from pathtracer.core.progressive import ProgressiveRenderer

        with pytest.raises(ValueError):
            ProgressiveRenderer(_small_scene(), *size)

    def test_init_rejects_stale_scene(self):
        from pathtracer.core.progressive import ProgressiveRenderer

        scene = _small_scene()
        _small_scene()
        with pytest.raises(RuntimeError, match="no longer resident"):
            ProgressiveRenderer(scene, 8, 8)


class TestProgressiveAccumulation:
    def test_batches_match_single_render(self):
        """Sample indices continue across batches, so the result is identical."""
        from pathtracer.core.config import RenderConfig
        from pathtracer.core.integrator import render_image
        from pathtracer.core.progressive import ProgressiveRenderer

        scene = _small_scene()
        config = RenderConfig(seed=3, max_depth=4)

        renderer = ProgressiveRenderer(scene, 8, 6, config)
        renderer.render(12, batch_size=5)
        batched = renderer.get_image_numpy()

        single = render_image(scene, 8, 6, samples_per_pixel=12, max_depth=4, config=config)
        assert np.array_equal(batched, single)

    def test_callback_reports_progress(self):
        from pathtracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(_small_scene(), 4, 4)
        calls = []
        renderer.render(7, batch_size=3, callback=lambda cur, tot: calls.append((cur, tot)))
        assert calls == [(3, 7), (6, 7), (7, 7)]
        assert renderer.sample_count == 7

    def test_generator_continues_from_current_count(self):
        from pathtracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(_small_scene(), 4, 4)
        renderer.render(2)
        progress = list(renderer.render_progressive(4, batch_size=2))
        assert progress == [(4, 6), (6, 6)]

    def test_zero_samples_is_a_no_op(self):
        from pathtracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(_small_scene(), 4, 4)
        assert list(renderer.render_progressive(0)) == []
        assert renderer.sample_count == 0

    def test_reset(self):
        from pathtracer.core.integrator import get_sample_counts
        from pathtracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(_small_scene(), 4, 4)
        renderer.render(3)
        first = renderer.get_image_numpy()
        assert np.all(get_sample_counts() == 3)

        renderer.reset()
        assert renderer.sample_count == 0
        assert np.all(renderer.get_image_numpy() == 0.0)

        renderer.render(3)
        assert np.array_equal(renderer.get_image_numpy(), first)


class TestProgressiveOutput:
    def test_display_image_in_range(self):
        from pathtracer.core.config import RenderConfig
        from pathtracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(
            _small_scene(), 6, 6, RenderConfig(tone_map="reinhard", exposure=2.0)
        )
        renderer.render(4, batch_size=4)
        display = renderer.get_display_image()
        assert display.shape == (6, 6, 3)
        assert np.all(np.isfinite(display))
        assert display.min() >= 0.0 and display.max() <= 1.0
        assert renderer.get_image_uint8().dtype == np.uint8
        assert renderer.invalid_sample_count == 0

    def test_save_image(self, tmp_path):
        from PIL import Image as PILImage

        from pathtracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(_small_scene(), 5, 3)
        renderer.render(2)
        path = tmp_path / "progressive.png"
        renderer.save_image(str(path))
        with PILImage.open(path) as loaded:
            assert loaded.size == (5, 3)
            assert np.array_equal(np.asarray(loaded), renderer.get_image_uint8())
