"""Tone mapping and image export."""

from .export import compute_rmse, image_to_uint8, save_png
from .tonemap import (
    apply_exposure,
    apply_gamma,
    process_image_for_display,
    sanitize,
    tone_map_clamp,
    tone_map_exposure,
    tone_map_reinhard,
)

__all__ = [
    "apply_exposure",
    "apply_gamma",
    "process_image_for_display",
    "sanitize",
    "tone_map_clamp",
    "tone_map_exposure",
    "tone_map_reinhard",
    "compute_rmse",
    "image_to_uint8",
    "save_png",
]
