"""Per-task random number generation and Monte Carlo sampling routines.

Every (pixel, sample) task owns a 32-bit generator state that is derived from
the render seed, the pixel index and the sample index. Nothing in the radiance
estimator touches ``ti.random``, so a render is reproducible regardless of how
Taichi schedules the parallel pixel loop.

The state is passed by value: every function that consumes random numbers
takes the current state and returns the advanced one alongside its result.

Example:
    >>> @ti.kernel
    ... def draw():
    ...     state = seed_rng(7, 0, 0)
    ...     u, state = next_float(state)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import build_onb_from_normal, local_to_world, normalize, vec3

# 2^24, the number of distinct floats produced by next_float
FLOAT_SCALE = 16777216.0


@ti.func
def _wang_hash(value):
    """Thomas Wang's 32-bit integer hash."""
    s = ti.cast(value, ti.u32)
    s = (s ^ ti.cast(61, ti.u32)) ^ (s >> 16)
    s = s * ti.cast(9, ti.u32)
    s = s ^ (s >> 4)
    s = s * ti.cast(668265261, ti.u32)
    s = s ^ (s >> 15)
    return s


@ti.func
def seed_rng(seed: ti.i32, pixel_index: ti.i32, sample_index: ti.i32):
    """Derive an independent generator state for one (pixel, sample) task.

    Args:
        seed: The render seed.
        pixel_index: Linear index of the pixel.
        sample_index: Global index of the sample within the pixel.

    Returns:
        A non-zero u32 generator state.
    """
    h = _wang_hash(ti.cast(seed, ti.u32))
    h = _wang_hash(ti.cast(sample_index, ti.u32) ^ h)
    h = _wang_hash(ti.cast(pixel_index, ti.u32) ^ (h * ti.cast(1664525, ti.u32)))
    # xorshift has a fixed point at zero
    if h == ti.cast(0, ti.u32):
        h = ti.cast(1, ti.u32)
    return h


@ti.func
def next_uint(state):
    """Advance an xorshift32 state and return (value, new_state)."""
    s = state
    s = s ^ (s << 13)
    s = s ^ (s >> 17)
    s = s ^ (s << 5)
    return s, s


@ti.func
def next_float(state):
    """Draw a uniform float in [0, 1).

    Returns:
        A tuple (u, new_state).
    """
    bits, s = next_uint(state)
    mantissa = (bits >> 8) & ti.cast(0xFFFFFF, ti.u32)
    u = ti.cast(mantissa, ti.f32) / FLOAT_SCALE
    return u, s


# =============================================================================
# Direction and point samplers
# =============================================================================


@ti.func
def random_cosine_direction(state):
    """Sample a z-up direction with density cos(theta) / pi.

    Returns:
        A tuple (local_direction, new_state).
    """
    r1, s = next_float(state)
    r2, s = next_float(s)
    phi = 2.0 * tm.pi * r1
    sqrt_r2 = ti.sqrt(r2)
    x = ti.cos(phi) * sqrt_r2
    y = ti.sin(phi) * sqrt_r2
    z = ti.sqrt(tm.max(1.0 - r2, 0.0))
    return vec3(x, y, z), s


@ti.func
def sample_cosine_hemisphere(normal: vec3, state):
    """Cosine-weighted hemisphere sampling about a normal.

    Args:
        normal: The surface normal defining the hemisphere (unit length).
        state: The generator state.

    Returns:
        A tuple (direction, pdf, new_state) with pdf = cos(theta) / pi.
    """
    local_dir, s = random_cosine_direction(state)
    tangent, bitangent, n = build_onb_from_normal(normal)
    world_dir = normalize(local_to_world(local_dir, tangent, bitangent, n))
    pdf = tm.max(tm.dot(world_dir, normal), 0.0) / tm.pi
    return world_dir, pdf, s


@ti.func
def sample_phong_lobe(axis: vec3, exponent: ti.f32, state):
    """Sample a direction around ``axis`` with density proportional to cos^n.

    The density is (n + 1) / (2 pi) * cos^n(alpha), where alpha is the
    angle between the sampled direction and the axis.

    Returns:
        A tuple (direction, new_state).
    """
    r1, s = next_float(state)
    r2, s = next_float(s)
    phi = 2.0 * tm.pi * r1
    cos_alpha = tm.pow(tm.max(1.0 - r2, 0.0), 1.0 / (exponent + 1.0))
    sin_alpha = ti.sqrt(tm.max(1.0 - cos_alpha * cos_alpha, 0.0))
    local_dir = vec3(ti.cos(phi) * sin_alpha, ti.sin(phi) * sin_alpha, cos_alpha)
    tangent, bitangent, n = build_onb_from_normal(axis)
    return normalize(local_to_world(local_dir, tangent, bitangent, n)), s


@ti.func
def sample_unit_sphere_surface(state):
    """Sample a point uniformly on the unit sphere.

    Returns:
        A tuple (unit_vector, new_state).
    """
    r1, s = next_float(state)
    r2, s = next_float(s)
    z = 1.0 - 2.0 * r1
    r = ti.sqrt(tm.max(1.0 - z * z, 0.0))
    phi = 2.0 * tm.pi * r2
    return vec3(r * ti.cos(phi), r * ti.sin(phi), z), s


@ti.func
def sample_triangle_barycentric(state):
    """Sample uniform barycentric coordinates (b1, b2) over a triangle.

    Returns:
        A tuple (b1, b2, new_state); the point is v0 + b1 * e1 + b2 * e2.
    """
    r1, s = next_float(state)
    r2, s = next_float(s)
    su = ti.sqrt(r1)
    b1 = 1.0 - su
    b2 = r2 * su
    return b1, b2, s


@ti.func
def random_in_unit_disk(state):
    """Sample a point uniformly inside the unit disk in the xy-plane.

    Uses the polar mapping rather than rejection so the number of draws
    per call is fixed.

    Returns:
        A tuple (point, new_state).
    """
    r1, s = next_float(state)
    r2, s = next_float(s)
    r = ti.sqrt(r1)
    phi = 2.0 * tm.pi * r2
    return vec3(r * ti.cos(phi), r * ti.sin(phi), 0.0), s
