"""Pinhole camera model for perspective projection ray generation.

The camera supports look-at positioning (lookfrom, lookat, vup), a vertical
field of view and an arbitrary aspect ratio. It builds an orthonormal basis
(u, v, w) from the view parameters:

- w: points from lookat toward lookfrom (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

Sub-pixel jitter is drawn from the caller's per-task generator, so primary
rays are reproducible for a given seed.

Example:
    >>> camera = PinholeCamera(
    ...     lookfrom=(0.0, 0.0, 3.0),
    ...     lookat=(0.0, 0.0, 0.0),
    ...     vup=(0.0, 1.0, 0.0),
    ...     vfov=60.0,
    ... )
    >>> setup_camera(camera, aspect_ratio=16.0 / 9.0)
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti

from pathtracer.core.config import T_MAX, T_MIN
from pathtracer.core.ray import Ray, make_ray
from pathtracer.core.sampler import next_float

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class PinholeCamera:
    """Configuration for a pinhole (perspective) camera.

    Attributes:
        lookfrom: Camera position in world space (x, y, z).
        lookat: Point the camera is looking at in world space (x, y, z).
        vup: Up direction vector for camera orientation (typically (0, 1, 0)).
        vfov: Vertical field of view in degrees, in (0, 180).
        aspect_ratio: Width divided by height. None means "use the aspect
            ratio of the image being rendered".
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    vfov: float = 40.0
    aspect_ratio: float | None = None

    def validate(self) -> "PinholeCamera":
        """Check the camera parameters and return self.

        Raises:
            ValueError: If the view direction is undefined, the up vector is
                parallel to it, or the field of view is out of range.
        """
        lookfrom = np.asarray(self.lookfrom, dtype=np.float64)
        lookat = np.asarray(self.lookat, dtype=np.float64)
        vup = np.asarray(self.vup, dtype=np.float64)
        if lookfrom.shape != (3,) or lookat.shape != (3,) or vup.shape != (3,):
            raise ValueError("Camera lookfrom, lookat and vup must have 3 components")
        if not (np.all(np.isfinite(lookfrom)) and np.all(np.isfinite(lookat))):
            raise ValueError("Camera position and target must be finite")
        view = lookfrom - lookat
        if np.linalg.norm(view) == 0.0:
            raise ValueError("Camera lookfrom and lookat must differ")
        if np.linalg.norm(np.cross(vup, view)) <= 1e-9 * np.linalg.norm(view):
            raise ValueError("Camera vup must not be parallel to the view direction")
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"Camera vfov must be in (0, 180), got {self.vfov}")
        if self.aspect_ratio is not None and not self.aspect_ratio > 0.0:
            raise ValueError(f"Camera aspect_ratio must be positive, got {self.aspect_ratio}")
        return self

    def to_dict(self) -> dict:
        return {
            "lookfrom": list(self.lookfrom),
            "lookat": list(self.lookat),
            "vup": list(self.vup),
            "vfov": self.vfov,
            "aspect_ratio": self.aspect_ratio,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PinholeCamera":
        try:
            camera = cls(
                lookfrom=tuple(float(x) for x in data["lookfrom"]),
                lookat=tuple(float(x) for x in data["lookat"]),
                vup=tuple(float(x) for x in data.get("vup", (0.0, 1.0, 0.0))),
                vfov=float(data.get("vfov", 40.0)),
                aspect_ratio=data.get("aspect_ratio"),
            )
        except KeyError as exc:
            raise ValueError(f"Camera description is missing {exc.args[0]!r}") from None
        return camera.validate()


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis vectors
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())  # Right
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())  # Up
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())  # Backward (opposite view)

# Viewport vectors for ray computation
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())  # Full width
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())  # Full height
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())  # Lower-left of viewport


# =============================================================================
# Camera Setup (Python-side)
# =============================================================================


def setup_camera(camera: PinholeCamera, aspect_ratio: float | None = None) -> None:
    """Compute the camera basis and viewport and store them in Taichi fields.

    The viewport is a virtual image plane at unit distance from the camera.

    Args:
        camera: Camera configuration with position, orientation, and FOV.
        aspect_ratio: Overrides camera.aspect_ratio when given. If neither is
            set a square image is assumed.

    Raises:
        ValueError: If the camera parameters are invalid.
    """
    camera.validate()
    if aspect_ratio is None:
        aspect_ratio = camera.aspect_ratio if camera.aspect_ratio is not None else 1.0

    theta = math.radians(camera.vfov)
    h = math.tan(theta / 2.0)

    viewport_height = 2.0 * h
    viewport_width = aspect_ratio * viewport_height

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    w = lookfrom - lookat
    w = w / np.linalg.norm(w)
    u = np.cross(vup, w)
    u = u / np.linalg.norm(u)
    v = np.cross(w, u)

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()

    horizontal = viewport_width * u
    vertical = viewport_height * v
    lower_left = lookfrom - w - horizontal / 2.0 - vertical / 2.0

    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()


# =============================================================================
# Ray Generation
# =============================================================================


@ti.func
def get_ray(u: ti.f32, v: ti.f32) -> Ray:
    """Generate a ray through normalized image coordinates (u, v).

    Args:
        u: Horizontal coordinate in [0, 1] (left to right).
        v: Vertical coordinate in [0, 1] (bottom to top).

    Returns:
        A Ray from the camera origin through the point on the image plane,
        with the default [T_MIN, T_MAX] interval.
    """
    point_on_viewport = (
        _lower_left_corner[None] + u * _viewport_horizontal[None] + v * _viewport_vertical[None]
    )
    origin = _camera_origin[None]
    return make_ray(origin, point_on_viewport - origin, T_MIN, T_MAX)


@ti.func
def get_ray_jittered(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32, state):
    """Generate a ray through a uniformly jittered point inside a pixel.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        width: Image width in pixels.
        height: Image height in pixels.
        state: The per-task generator state.

    Returns:
        A tuple (origin, unit_direction, new_state).
    """
    jitter_u, s = next_float(state)
    jitter_v, s = next_float(s)

    u = (ti.cast(pixel_i, ti.f32) + jitter_u) / ti.cast(width, ti.f32)
    v = (ti.cast(pixel_j, ti.f32) + jitter_v) / ti.cast(height, ti.f32)

    ray = get_ray(u, v)
    return ray.origin, ray.direction, s


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Get the current camera state for inspection from Python.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left.
    """
    fields = {
        "origin": _camera_origin,
        "u": _camera_u,
        "v": _camera_v,
        "w": _camera_w,
        "horizontal": _viewport_horizontal,
        "vertical": _viewport_vertical,
        "lower_left": _lower_left_corner,
    }
    info = {}
    for name, field in fields.items():
        vec = field[None]
        info[name] = (float(vec[0]), float(vec[1]), float(vec[2]))
    return info
