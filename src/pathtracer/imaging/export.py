"""Image export utilities for rendered images.

Supported formats:
    - PNG (8-bit, gamma encoded, via Pillow)

Example:
    >>> image = render_image(scene, 256, 256, samples_per_pixel=64, max_depth=8)
    >>> save_png(image, "output.png", tone_map="reinhard")
"""

import logging
from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

from pathtracer.core.config import ToneMapMethod
from pathtracer.imaging.tonemap import process_image_for_display

logger = logging.getLogger(__name__)


def image_to_uint8(display_image: npt.ArrayLike) -> npt.NDArray[np.uint8]:
    """Quantize a display image with values in [0, 1] to 8 bits.

    Values are rounded to the nearest level; anything outside [0, 1] is
    clipped first.
    """
    image = np.clip(np.nan_to_num(np.asarray(display_image, dtype=np.float32)), 0.0, 1.0)
    return np.round(image * 255.0).astype(np.uint8)


def save_png(
    image: npt.ArrayLike,
    filepath: str | Path,
    *,
    tone_map: ToneMapMethod = "clamp",
    gamma: float = 2.2,
    exposure: float = 1.0,
    linear: bool = True,
) -> None:
    """Save an image as an 8-bit RGB PNG file.

    Args:
        image: Image array of shape (H, W, 3), row 0 at the top.
        filepath: Output file path.
        tone_map: Tone mapping method, used when ``linear`` is True.
        gamma: Gamma correction value, used when ``linear`` is True.
        exposure: Linear exposure scale, used when ``linear`` is True.
        linear: True if ``image`` is linear radiance that still has to go
            through the display pipeline, False if it already holds display
            values in [0, 1].

    Raises:
        ValueError: If the image does not have shape (H, W, 3).
    """
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (H, W, 3), got {image.shape}")

    if linear:
        image = process_image_for_display(image, tone_map=tone_map, gamma=gamma, exposure=exposure)

    pil_image = PILImage.fromarray(image_to_uint8(image))
    pil_image.save(str(filepath), format="PNG")
    logger.info("Saved %dx%d image to %s", image.shape[1], image.shape[0], filepath)


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Compute root mean squared error between two images.

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
