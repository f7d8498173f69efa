"""Axis-aligned bounding boxes.

The host-side ``AABB`` is a NumPy value type used while building the BVH.
``hit_aabb`` is the device-side slab test used during traversal; it returns
the entry distance so the traversal can visit the nearer child first.
"""

from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Direction components smaller than this are replaced before inversion
INV_DIR_EPSILON = 1e-12

# Minimum box extent along any axis, planar primitives get padded to it
MIN_EXTENT = 1e-4


@dataclass
class AABB:
    """Axis-Aligned Bounding Box"""

    min: np.ndarray  # [x, y, z]
    max: np.ndarray  # [x, y, z]

    @staticmethod
    def empty() -> "AABB":
        """An inverted box that is the identity for union."""
        return AABB(
            min=np.array([np.inf, np.inf, np.inf], dtype=np.float64),
            max=np.array([-np.inf, -np.inf, -np.inf], dtype=np.float64),
        )

    @staticmethod
    def from_points(lo, hi) -> "AABB":
        return AABB(min=np.asarray(lo, dtype=np.float64), max=np.asarray(hi, dtype=np.float64))

    def is_empty(self) -> bool:
        return bool(np.any(self.min > self.max))

    def extent(self) -> np.ndarray:
        return np.maximum(self.max - self.min, 0.0)

    def surface_area(self) -> float:
        """Surface area, used by the SAH cost function."""
        if self.is_empty():
            return 0.0
        e = self.extent()
        return float(2.0 * (e[0] * e[1] + e[1] * e[2] + e[2] * e[0]))

    def largest_axis(self) -> int:
        return int(np.argmax(self.extent()))

    def centroid(self) -> np.ndarray:
        return 0.5 * (self.min + self.max)

    def union(self, other: "AABB") -> "AABB":
        """Smallest box containing both boxes."""
        return AABB(min=np.minimum(self.min, other.min), max=np.maximum(self.max, other.max))

    def contains(self, other: "AABB", tolerance: float = 0.0) -> bool:
        """True if ``other`` lies entirely inside this box."""
        return bool(
            np.all(self.min <= other.min + tolerance) and np.all(self.max >= other.max - tolerance)
        )

    def pad_to_minimums(self) -> "AABB":
        """Pad thin dimensions so planar primitives get a non-zero volume."""
        lo = self.min.copy()
        hi = self.max.copy()
        for axis in range(3):
            if hi[axis] - lo[axis] < MIN_EXTENT:
                mid = 0.5 * (lo[axis] + hi[axis])
                lo[axis] = min(lo[axis], mid - 0.5 * MIN_EXTENT)
                hi[axis] = max(hi[axis], mid + 0.5 * MIN_EXTENT)
        return AABB(min=lo, max=hi)


@ti.func
def hit_aabb(
    bbox_min: vec3,
    bbox_max: vec3,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
):
    """Slab test of a ray against an axis-aligned box.

    Args:
        bbox_min: Lower corner of the box.
        bbox_max: Upper corner of the box.
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Lower bound of the interval of interest.
        t_max: Upper bound of the interval of interest.

    Returns:
        A tuple (hit, t_entry) where t_entry is the distance at which the
        ray enters the box, clipped to t_min.
    """
    t_lo = t_min
    t_hi = t_max

    for axis in ti.static(range(3)):
        d = ray_direction[axis]
        # Avoid 0 * inf when the origin lies on a slab plane
        if ti.abs(d) < INV_DIR_EPSILON:
            d = ti.select(d < 0.0, -INV_DIR_EPSILON, INV_DIR_EPSILON)
        inv_d = 1.0 / d
        t0 = (bbox_min[axis] - ray_origin[axis]) * inv_d
        t1 = (bbox_max[axis] - ray_origin[axis]) * inv_d
        if inv_d < 0.0:
            t0, t1 = t1, t0
        t_lo = tm.max(t0, t_lo)
        t_hi = tm.min(t1, t_hi)

    hit = 0
    if t_hi >= t_lo:
        hit = 1
    return hit, t_lo
