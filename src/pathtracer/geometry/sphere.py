"""Sphere primitive with robust ray-sphere intersection.

This module provides the Sphere dataclass, the HitRecord shared by all
primitives, and an intersection routine that follows the robust quadratic of
Ray Tracing Gems: the discriminant is computed from the distance between the
sphere center and the ray line, and the roots are taken in the form that avoids
cancellation, so distant spheres keep their precision.

A sphere with a non-positive radius is degenerate and never reports a hit.

Example:
    >>> sphere = Sphere(center=ti.math.vec3(0, 0, -1), radius=0.5)
    >>> # rec = hit_sphere(origin, direction, sphere, t_min, t_max) inside a kernel
"""

import math

import taichi as ti
import taichi.math as tm

from pathtracer.core.sampler import sample_unit_sphere_surface

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class Sphere:
    """A sphere defined by center point and radius.

    Attributes:
        center: The center point of the sphere (vec3).
        radius: The radius of the sphere (positive float).
    """

    center: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        hit: 1 if the ray intersected the primitive, 0 on a miss.
        t: Distance along the ray. Only valid if hit == 1.
        point: The intersection point. Only valid if hit == 1.
        normal: Unit surface normal facing the incoming ray.
        outward_normal: Unit geometric normal as stored on the primitive.
        front_face: 1 if the ray hit the outside (front) of the surface.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    outward_normal: vec3
    front_face: ti.i32


@ti.func
def make_miss_record() -> HitRecord:
    """A HitRecord describing a miss."""
    return HitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        outward_normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
    )


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve a*t^2 + 2*h*t + c = 0 using a numerically stable method.

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    # q = -(h + sign(h) * sqrt(discriminant))
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0

    if ti.abs(q) < 1e-10:
        # Tangent ray, fall back to the textbook formula
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-sphere intersection using the robust quadratic formula.

    The ray-sphere intersection solves
        |ray_origin + t * ray_direction - center|^2 = radius^2
    in the half-b form a*t^2 + 2*h*t + c = 0.

    A hit is reported only for t strictly inside (t_min, t_max), so an empty
    interval never hits.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        sphere: The sphere to test intersection against.
        t_min: Exclusive lower bound of valid hits.
        t_max: Exclusive upper bound of valid hits.

    Returns:
        A HitRecord containing intersection information.
    """
    oc = ray_origin - sphere.center

    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius

    # h*h - a*c loses every digit when |oc| >> radius. Measure the squared
    # distance from the center to the ray line instead.
    discriminant = 0.0
    if a > 0.0:
        perp = oc - (h / a) * ray_direction
        discriminant = a * (sphere.radius * sphere.radius - tm.dot(perp, perp))

    # Initialize result fields (Taichi requires outer-scope declaration)
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    outward_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0

    if sphere.radius > 0.0 and a > 0.0 and discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        t = t0
        valid = (t > t_min) and (t < t_max)
        if not valid:
            t = t1
            valid = (t > t_min) and (t < t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction
            outward_normal = (hit_point - sphere.center) / sphere.radius

            if tm.dot(ray_direction, outward_normal) > 0.0:
                # Ray is inside the sphere, hitting back face
                is_front_face = 0
                hit_normal = -outward_normal
            else:
                is_front_face = 1
                hit_normal = outward_normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        outward_normal=outward_normal,
        front_face=is_front_face,
    )


@ti.func
def sample_sphere_surface(sphere: Sphere, state):
    """Sample a point uniformly over the sphere's surface.

    The area density is 1 / (4 pi r^2).

    Returns:
        A tuple (point, outward_normal, new_state).
    """
    n, s = sample_unit_sphere_surface(state)
    return sphere.center + sphere.radius * n, n, s


def sphere_area(radius: float) -> float:
    """Surface area of a sphere."""
    return 4.0 * math.pi * radius * radius


def sphere_bounds(center, radius: float):
    """Axis-aligned bounds of a sphere as (min_corner, max_corner) tuples."""
    r = abs(radius)
    return (
        (center[0] - r, center[1] - r, center[2] - r),
        (center[0] + r, center[1] + r, center[2] + r),
    )
