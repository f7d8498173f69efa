"""Core rendering module.

Components:
    ray: Ray data structure and vector utilities
    sampler: Per-task deterministic random number generation and sampling
    config: Render configuration and numeric tolerances
    integrator: Path tracing kernels and the render entry points
    progressive: Progressive accumulation on top of the integrator
"""

from .config import (
    RAY_EPSILON,
    T_MAX,
    T_MIN,
    EstimatorMode,
    RenderConfig,
)
from .ray import (
    Ray,
    build_onb_from_normal,
    cross,
    dot,
    length,
    length_squared,
    local_to_world,
    make_ray,
    near_zero,
    normalize,
    ray_at,
    reflect,
    refract,
    schlick_fresnel,
    vec3,
)
from .sampler import (
    next_float,
    next_uint,
    sample_cosine_hemisphere,
    seed_rng,
)

# Note: integrator and progressive are NOT imported here to avoid circular imports.
# Import them directly:
#   from pathtracer.core.integrator import render_image
#   from pathtracer.core.progressive import ProgressiveRenderer

__all__ = [
    "RAY_EPSILON",
    "T_MIN",
    "T_MAX",
    "EstimatorMode",
    "RenderConfig",
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "reflect",
    "refract",
    "schlick_fresnel",
    "near_zero",
    "build_onb_from_normal",
    "local_to_world",
    "seed_rng",
    "next_uint",
    "next_float",
    "sample_cosine_hemisphere",
]
