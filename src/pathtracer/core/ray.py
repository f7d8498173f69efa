"""Ray data structure and vector utilities for Monte Carlo path tracing.

This module provides the Ray dataclass and the small vector algebra the rest
of the renderer is built on. The device-side helpers are Taichi functions and
can only be called from inside kernels; the ``vec_*`` helpers operate on plain
Python tuples and are used while a scene is being constructed.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction, t_min=1e-4, t_max=1e10)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import math

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Squared length below which a vector is treated as zero
NORMALIZE_EPSILON = 1e-20


@ti.dataclass
class Ray:
    """A ray with an origin, a unit direction and a valid parametric interval.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The unit direction vector of the ray (vec3).
        t_min: Lower (exclusive) bound of valid hit distances.
        t_max: Upper (exclusive) bound of valid hit distances.
    """

    origin: vec3
    direction: vec3
    t_min: ti.f32
    t_max: ti.f32


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t."""
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3, t_min: ti.f32, t_max: ti.f32) -> Ray:
    """Create a ray, normalizing the direction.

    Args:
        origin: The starting point of the ray.
        direction: The direction vector. A zero vector stays zero.
        t_min: Lower bound of the valid interval.
        t_max: Upper bound of the valid interval.

    Returns:
        A new Ray instance.
    """
    return Ray(origin=origin, direction=normalize(direction), t_min=t_min, t_max=t_max)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length(v: vec3) -> ti.f32:
    """Compute the Euclidean length of a vector."""
    return tm.length(v)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    """Compute the squared length of a vector."""
    return tm.dot(v, v)


@ti.func
def normalize(v: vec3) -> vec3:
    """Normalize a vector to unit length.

    Unlike ``tm.normalize`` this never divides by zero: a vector whose
    length is numerically zero is returned as the zero vector.

    Args:
        v: The input vector.

    Returns:
        A unit vector in the same direction as v, or the zero vector.
    """
    len_sq = tm.dot(v, v)
    result = vec3(0.0, 0.0, 0.0)
    if len_sq > NORMALIZE_EPSILON:
        result = v / ti.sqrt(len_sq)
    return result


@ti.func
def dot(a: vec3, b: vec3) -> ti.f32:
    """Compute the dot product of two vectors."""
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    """Compute the cross product of two vectors."""
    return tm.cross(a, b)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a unit normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (unit length).

    Returns:
        The reflected direction vector.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta: ti.f32) -> vec3:
    """Refract an incident vector through a surface using Snell's law.

    Args:
        incident: The incoming direction vector (unit length).
        normal: The surface normal, facing the incident side (unit length).
        eta: The ratio of refractive indices (n_incident / n_transmitted).

    Returns:
        The refracted direction vector, or the zero vector if total internal
        reflection occurs.
    """
    cos_i = tm.min(-tm.dot(incident, normal), 1.0)
    sin2_t = eta * eta * (1.0 - cos_i * cos_i)
    result = vec3(0.0, 0.0, 0.0)
    if sin2_t <= 1.0:
        cos_t = ti.sqrt(tm.max(1.0 - sin2_t, 0.0))
        result = eta * incident + (eta * cos_i - cos_t) * normal
    return result


@ti.func
def schlick_fresnel(cosine: ti.f32, ref_idx: ti.f32) -> ti.f32:
    """Compute Fresnel reflectance using Schlick's approximation.

    Args:
        cosine: Cosine of the angle between incident direction and normal.
        ref_idx: Ratio of refractive indices.

    Returns:
        The approximate Fresnel reflectance coefficient in [0, 1].
    """
    r0 = ((1.0 - ref_idx) / (1.0 + ref_idx)) ** 2
    c = tm.clamp(1.0 - cosine, 0.0, 1.0)
    return r0 + (1.0 - r0) * (c**5)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """Return 1 if every component of v is near zero."""
    s = 1e-8
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


@ti.func
def max_component(v: vec3) -> ti.f32:
    """Return the largest component of a vector."""
    return tm.max(v.x, tm.max(v.y, v.z))


@ti.func
def luminance(c: vec3) -> ti.f32:
    """Rec. 709 luminance of a linear RGB color."""
    return 0.2126 * c.x + 0.7152 * c.y + 0.0722 * c.z


@ti.func
def clamp01(c: vec3) -> vec3:
    """Clamp each channel of a color to [0, 1]."""
    return tm.clamp(c, 0.0, 1.0)


@ti.func
def is_finite(c: vec3) -> ti.i32:
    """Return 1 if no channel of c is NaN or infinite.

    Tests the exponent bits directly, which fast-math cannot fold away.
    """
    ok = 1
    for k in ti.static(range(3)):
        bits = ti.bit_cast(c[k], ti.u32)
        exponent = bits & ti.cast(0x7F800000, ti.u32)
        if exponent == ti.cast(0x7F800000, ti.u32):
            ok = 0
    return ok


@ti.func
def build_onb_from_normal(normal: vec3):
    """Build an orthonormal basis whose z-axis is the given normal.

    Args:
        normal: The surface normal (unit length).

    Returns:
        A tuple (tangent, bitangent, normal) forming an orthonormal basis.
    """
    # Choose a vector not parallel to normal
    a = vec3(1.0, 0.0, 0.0)
    if ti.abs(normal.x) > 0.9:
        a = vec3(0.0, 1.0, 0.0)
    tangent = normalize(cross(a, normal))
    bitangent = cross(normal, tangent)
    return tangent, bitangent, normal


@ti.func
def local_to_world(local_dir: vec3, tangent: vec3, bitangent: vec3, normal: vec3) -> vec3:
    """Transform a direction from a z-up local frame to world coordinates."""
    return local_dir.x * tangent + local_dir.y * bitangent + local_dir.z * normal


# =============================================================================
# Host-side helpers (plain tuples, used during scene construction)
# =============================================================================


def vec_sub(a, b) -> tuple[float, float, float]:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def vec_cross(a, b) -> tuple[float, float, float]:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def vec_length(a) -> float:
    return math.sqrt(a[0] * a[0] + a[1] * a[1] + a[2] * a[2])


def vec_normalize(a) -> tuple[float, float, float]:
    """Normalize a tuple vector; a zero-length vector is returned as zeros."""
    n = vec_length(a)
    if n < 1e-12:
        return (0.0, 0.0, 0.0)
    return (a[0] / n, a[1] / n, a[2] / n)
