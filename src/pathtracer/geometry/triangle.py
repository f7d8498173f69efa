"""Triangle primitive with Moller-Trumbore ray intersection.

A triangle is stored as one vertex and two edge vectors plus its unit
geometric normal, which is what the intersection test consumes:

- v0: The first vertex
- edge1: v1 - v0
- edge2: v2 - v0
- normal: normalize(cross(edge1, edge2)), following the right-hand rule

Degenerate triangles (zero area) have a zero determinant for every ray and
therefore never report a hit.

Example:
    >>> tri = make_triangle_host((0, 0, 0), (1, 0, 0), (0, 1, 0))
    >>> tri["normal"]
    (0.0, 0.0, 1.0)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import vec_cross, vec_length, vec_normalize, vec_sub
from pathtracer.core.sampler import sample_triangle_barycentric
from pathtracer.geometry.sphere import HitRecord

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Determinant magnitude below which the ray is treated as parallel
DET_EPSILON = 1e-9

# Triangles with less area than this are treated as degenerate
MIN_TRIANGLE_AREA = 1e-12


@ti.dataclass
class Triangle:
    """A triangle defined by a vertex, two edges and its unit normal.

    Attributes:
        v0: The first vertex (vec3).
        edge1: v1 - v0 (vec3).
        edge2: v2 - v0 (vec3).
        normal: Unit normal, normalize(cross(edge1, edge2)) (vec3).
    """

    v0: vec3
    edge1: vec3
    edge2: vec3
    normal: vec3


@ti.func
def hit_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    tri: Triangle,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-triangle intersection using the Moller-Trumbore algorithm.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        tri: The triangle to test.
        t_min: Exclusive lower bound of valid hits.
        t_max: Exclusive upper bound of valid hits.

    Returns:
        A HitRecord. The normal faces the incoming ray; front_face is 1 when
        the ray arrives against the stored normal.
    """
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0

    h = tm.cross(ray_direction, tri.edge2)
    det = tm.dot(tri.edge1, h)

    # Ray parallel to the triangle, or degenerate triangle
    if ti.abs(det) > DET_EPSILON:
        inv_det = 1.0 / det
        s = ray_origin - tri.v0
        u = inv_det * tm.dot(s, h)

        if u >= 0.0 and u <= 1.0:
            q = tm.cross(s, tri.edge1)
            v = inv_det * tm.dot(ray_direction, q)

            if v >= 0.0 and u + v <= 1.0:
                t = inv_det * tm.dot(tri.edge2, q)

                if t > t_min and t < t_max:
                    did_hit = 1
                    hit_t = t
                    hit_point = ray_origin + t * ray_direction

                    if tm.dot(ray_direction, tri.normal) > 0.0:
                        is_front_face = 0
                        hit_normal = -tri.normal
                    else:
                        is_front_face = 1
                        hit_normal = tri.normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        outward_normal=tri.normal,
        front_face=is_front_face,
    )


@ti.func
def sample_triangle_surface(tri: Triangle, state):
    """Sample a point uniformly over the triangle's area.

    Returns:
        A tuple (point, normal, new_state).
    """
    b1, b2, s = sample_triangle_barycentric(state)
    point = tri.v0 + b1 * tri.edge1 + b2 * tri.edge2
    return point, tri.normal, s


# =============================================================================
# Host-side helpers
# =============================================================================


def triangle_area(v0, v1, v2) -> float:
    """Area of the triangle (v0, v1, v2)."""
    return 0.5 * vec_length(vec_cross(vec_sub(v1, v0), vec_sub(v2, v0)))


def triangle_bounds(v0, v1, v2):
    """Axis-aligned bounds of a triangle as (min_corner, max_corner) tuples."""
    lo = tuple(min(v0[k], v1[k], v2[k]) for k in range(3))
    hi = tuple(max(v0[k], v1[k], v2[k]) for k in range(3))
    return lo, hi


def make_triangle_host(v0, v1, v2) -> dict:
    """Precompute the stored representation of a triangle.

    Returns:
        A dict with keys v0, edge1, edge2, normal and area.
    """
    edge1 = vec_sub(v1, v0)
    edge2 = vec_sub(v2, v0)
    normal = vec_normalize(vec_cross(edge1, edge2))
    return {
        "v0": tuple(float(x) for x in v0),
        "edge1": edge1,
        "edge2": edge2,
        "normal": normal,
        "area": triangle_area(v0, v1, v2),
    }
