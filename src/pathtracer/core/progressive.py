"""Progressive renderer for iterative sample accumulation.

This module wraps the integrator to support:
- Progressive rendering that refines over time
- Batch rendering (multiple SPP in one call)
- Progress callbacks and a generator interface
- Reset and re-render

Samples are numbered globally per pixel and the sample index is part of each
task's seed, so rendering 64 samples in batches of 8 produces exactly the
same image as rendering 64 samples at once.

Example:
    >>> scene = create_cornell_box_scene()
    >>> renderer = ProgressiveRenderer(scene, 512, 512)
    >>> renderer.render(100, batch_size=10)
    >>> image = renderer.get_image_numpy()
"""

import logging
from collections.abc import Callable, Generator
from dataclasses import replace

import numpy as np
import numpy.typing as npt

from pathtracer.camera.pinhole import setup_camera
from pathtracer.core.config import RenderConfig
from pathtracer.core.integrator import (
    accumulate_samples,
    clear_render_target,
    get_image_numpy,
    get_invalid_sample_count,
    setup_render_target,
)
from pathtracer.imaging.export import image_to_uint8, save_png
from pathtracer.imaging.tonemap import process_image_for_display
from pathtracer.scene.manager import Scene

logger = logging.getLogger(__name__)

# Type alias for progress callback
# Callback receives (current_samples, total_target_samples)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """A progressive renderer that accumulates samples over time.

    The renderer owns the (single, global) render target while it is in use;
    creating another renderer or calling render_image resets it.

    Attributes:
        scene: The scene being rendered.
        config: Render options; width and height come from the constructor.
    """

    def __init__(
        self,
        scene: Scene,
        width: int,
        height: int,
        config: RenderConfig | None = None,
    ) -> None:
        """Initialize the progressive renderer.

        Raises:
            ValueError: If the dimensions or options are out of range.
            RuntimeError: If the scene is no longer resident.
        """
        self.config = replace(config or RenderConfig(), width=width, height=height).validate()
        scene.ensure_resident()
        self.scene = scene
        self._sample_count = 0
        setup_render_target(width, height)

    @property
    def width(self) -> int:
        return self.config.width

    @property
    def height(self) -> int:
        return self.config.height

    @property
    def sample_count(self) -> int:
        """Number of samples accumulated per pixel so far."""
        return self._sample_count

    @property
    def invalid_sample_count(self) -> int:
        return get_invalid_sample_count()

    def reset(self) -> None:
        """Clear the accumulator; the next render starts again at sample 0."""
        clear_render_target()
        self._sample_count = 0

    def _render_batch(self, batch: int) -> None:
        self.scene.ensure_resident()
        camera = self.scene.camera
        setup_camera(camera, aspect_ratio=camera.aspect_ratio or self.config.aspect_ratio)
        accumulate_samples(self.config, self._sample_count, batch)
        self._sample_count += batch

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Render samples progressively with an optional progress callback.

        Args:
            num_samples: Total number of samples to add.
            batch_size: Number of samples to render before each callback.
            callback: Optional callback called after each batch with
                (current_total_samples, target_total_samples).
        """
        for current, target in self.render_progressive(num_samples, batch_size):
            if callback is not None:
                callback(current, target)

    def render_progressive(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Render samples progressively, yielding progress after each batch.

        Yields:
            Tuple of (current_total_samples, target_total_samples).
        """
        if num_samples <= 0:
            return
        batch_size = max(1, batch_size)
        target_samples = self._sample_count + num_samples

        remaining = num_samples
        while remaining > 0:
            batch = min(batch_size, remaining)
            self._render_batch(batch)
            remaining -= batch
            yield (self._sample_count, target_samples)

        invalid = get_invalid_sample_count()
        if invalid:
            logger.warning("Dropped %d invalid (negative or non-finite) samples", invalid)

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Averaged linear radiance, shape (height, width, 3), row 0 at the top."""
        return get_image_numpy()

    def get_display_image(self) -> npt.NDArray[np.float32]:
        """The image after exposure, tone mapping and gamma, values in [0, 1]."""
        return process_image_for_display(
            self.get_image_numpy(),
            tone_map=self.config.tone_map,
            gamma=self.config.gamma,
            exposure=self.config.exposure,
        )

    def get_image_uint8(self) -> npt.NDArray[np.uint8]:
        return image_to_uint8(self.get_display_image())

    def save_image(self, filepath: str) -> None:
        """Save the display image as PNG."""
        save_png(self.get_display_image(), filepath, linear=False)

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )
