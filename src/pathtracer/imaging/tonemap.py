"""Tone mapping and gamma correction for rendered images.

The renderer produces linear radiance with no upper bound. Display output
goes through a fixed pipeline:

1. Non-finite values are replaced by 0 and negative values clipped.
2. Exposure: a linear scale of the radiance.
3. Tone mapping: "clamp", "reinhard", "exposure" or "none".
4. Clamp to [0, 1].
5. Gamma encoding.

Every output value is finite and inside [0, 1], whatever the input.

Example:
    >>> display = process_image_for_display(image, tone_map="reinhard", gamma=2.2)
"""

import numpy as np
import numpy.typing as npt

from pathtracer.core.config import TONE_MAP_METHODS, ToneMapMethod


def sanitize(image: npt.ArrayLike) -> npt.NDArray[np.float32]:
    """Replace NaN and infinities by 0 and clip negative values."""
    image = np.nan_to_num(np.asarray(image, dtype=np.float32), nan=0.0, posinf=0.0, neginf=0.0)
    return np.maximum(image, 0.0).astype(np.float32)


def apply_exposure(
    image: npt.NDArray[np.float32],
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Scale linear radiance by the exposure factor.

    Raises:
        ValueError: If exposure is negative or not finite.
    """
    if not np.isfinite(exposure) or exposure < 0.0:
        raise ValueError(f"Exposure must be a non-negative finite number, got {exposure}")
    return (image * np.float32(exposure)).astype(np.float32)


def tone_map_clamp(image: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Clip every channel into [0, 1]."""
    return np.clip(image, 0.0, 1.0).astype(np.float32)


def tone_map_reinhard(image: npt.NDArray[np.float32]) -> npt.NDArray[np.float32]:
    """Apply Reinhard tone mapping: L / (1 + L)."""
    image = np.maximum(image, 0.0)
    return (image / (1.0 + image)).astype(np.float32)


def tone_map_exposure(
    image: npt.NDArray[np.float32],
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Apply exponential tone mapping: 1 - exp(-c * exposure)."""
    image = np.maximum(image, 0.0)
    return (1.0 - np.exp(-image * exposure)).astype(np.float32)


def apply_gamma(
    image: npt.NDArray[np.float32],
    gamma: float = 2.2,
) -> npt.NDArray[np.float32]:
    """Gamma encode an image in [0, 1]: out = in^(1/gamma).

    Raises:
        ValueError: If gamma is not positive.
    """
    if not gamma > 0.0:
        raise ValueError(f"Gamma must be positive, got {gamma}")
    if gamma == 1.0:
        return image

    # Clamp first, a negative base would give NaN
    image = np.clip(image, 0.0, 1.0)
    return np.power(image, 1.0 / gamma).astype(np.float32)


def process_image_for_display(
    image: npt.ArrayLike,
    tone_map: ToneMapMethod = "clamp",
    gamma: float = 2.2,
    exposure: float = 1.0,
) -> npt.NDArray[np.float32]:
    """Map linear radiance to display values in [0, 1].

    Args:
        image: Linear HDR image array of shape (H, W, 3).
        tone_map: One of "none", "clamp", "reinhard", "exposure".
        gamma: Gamma correction value (2.2 for sRGB).
        exposure: Linear scale applied before tone mapping.

    Returns:
        Float32 image of the same shape with every value in [0, 1].

    Raises:
        ValueError: If the tone mapping method is unknown, gamma is not
            positive or exposure is negative.
    """
    if tone_map not in TONE_MAP_METHODS:
        raise ValueError(f"Unknown tone mapping method: {tone_map}")

    result = apply_exposure(sanitize(image), exposure)

    if tone_map == "reinhard":
        result = tone_map_reinhard(result)
    elif tone_map == "exposure":
        result = tone_map_exposure(result)
    elif tone_map == "clamp":
        result = tone_map_clamp(result)

    result = np.clip(result, 0.0, 1.0)
    result = apply_gamma(result, gamma)
    return np.clip(result, 0.0, 1.0).astype(np.float32)
