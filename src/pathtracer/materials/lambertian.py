"""Lambertian (ideal diffuse) material implementation.

The Lambertian BRDF scatters incident light uniformly, weighted by the cosine
of the angle from the surface normal:

    f_r(wi, wo) = albedo / pi

Directions are importance sampled from the cosine-weighted hemisphere:

    pdf(wi) = cos(theta) / pi

so the per-bounce weight f_r * cos(theta) / pdf reduces exactly to the albedo.

Example:
    >>> # Inside a Taichi kernel:
    >>> # direction, attenuation, pdf, state = scatter_lambertian(albedo, normal, state)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import near_zero
from pathtracer.core.sampler import sample_cosine_hemisphere

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def eval_lambertian(albedo: vec3) -> vec3:
    """Evaluate the Lambertian BRDF, albedo / pi.

    The cosine term is not included; it is applied by the caller.
    """
    return albedo / tm.pi


@ti.func
def pdf_lambertian(normal: vec3, scattered_direction: vec3) -> ti.f32:
    """Density of cosine-weighted sampling for a given direction.

    Args:
        normal: The surface normal (unit length).
        scattered_direction: The scattered direction (unit length).

    Returns:
        cos(theta) / pi, or 0 for directions below the surface.
    """
    cos_theta = tm.dot(normal, scattered_direction)
    pdf = 0.0
    if cos_theta > 0.0:
        pdf = cos_theta / tm.pi
    return pdf


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3, state):
    """Sample a scattered direction for a Lambertian surface.

    The attenuation is computed as:
        attenuation = (BRDF * cos_theta) / pdf = albedo

    because BRDF = albedo / pi and pdf = cos_theta / pi; the cosine terms
    cancel and no cosine factor is applied on top.

    Args:
        albedo: The diffuse reflectance color (RGB, each component in [0, 1]).
        normal: The surface normal facing the incoming ray (unit length).
        state: The per-task generator state.

    Returns:
        A tuple of (scattered_direction, attenuation, pdf, new_state).
    """
    scattered_direction, pdf, s = sample_cosine_hemisphere(normal, state)

    # Degenerate sample (floating point), fall back to the normal
    if near_zero(scattered_direction):
        scattered_direction = normal
        pdf = 1.0 / tm.pi

    attenuation = albedo
    return scattered_direction, attenuation, pdf, s


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of Lambertian materials in the scene
MAX_LAMBERTIAN_MATERIALS = 256

lambertian_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Reset the Lambertian registry."""
    num_lambertian_materials[None] = 0


def validate_albedo(albedo) -> tuple[float, float, float]:
    """Check an albedo for energy conservation and return it as a tuple.

    Raises:
        ValueError: If the albedo does not have three components, or any
            component is outside [0, 1] or not finite.
    """
    if len(albedo) != 3:
        raise ValueError(f"Albedo must have 3 components, got {len(albedo)}")
    for i, component in enumerate(albedo):
        if not 0.0 <= float(component) <= 1.0:
            raise ValueError(
                f"Albedo component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )
    return (float(albedo[0]), float(albedo[1]), float(albedo[2]))


def add_lambertian_material(albedo: tuple[float, float, float]) -> int:
    """Add a Lambertian material to the registry.

    Args:
        albedo: The diffuse reflectance color as (R, G, B).

    Returns:
        The type-local index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any albedo component is outside [0, 1].
    """
    albedo = validate_albedo(albedo)

    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    lambertian_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_albedo(material_idx: ti.i32) -> vec3:
    return lambertian_albedos[material_idx]
