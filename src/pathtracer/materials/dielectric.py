"""Dielectric (glass/water) material implementation.

This module implements the dielectric BSDF, which models transparent materials
like glass and water with refraction and Fresnel reflectance.

Key physics:
    - Snell's law for refraction: n1 * sin(theta1) = n2 * sin(theta2)
    - Schlick's approximation for Fresnel reflectance, evaluated with the
      cosine on the outer side of the interface
    - Total internal reflection when sin(theta_t) > 1

The material chooses between reflection and refraction with the Fresnel
reflectance as the selection probability. Because that probability equals
the Fresnel weight, the bounce weight is white either way.

Example:
    >>> # Inside a Taichi kernel:
    >>> # direction, attenuation, did_scatter, state = scatter_dielectric(
    >>> #     ior, incident_dir, normal, front_face, state
    >>> # )
"""

import math

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import normalize, reflect, refract, schlick_fresnel
from pathtracer.core.sampler import next_float

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def _refraction_ratio(ior: ti.f32, front_face: ti.i32) -> ti.f32:
    # Outside -> inside is 1/ior, inside -> outside is ior
    ratio = 1.0 / ior
    if front_face == 0:
        ratio = ior
    return ratio


@ti.func
def will_reflect(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> ti.i32:
    """Return 1 if total internal reflection will occur."""
    refraction_ratio = _refraction_ratio(ior, front_face)
    cos_theta = tm.clamp(-tm.dot(incident_direction, normal), 0.0, 1.0)
    sin_theta = ti.sqrt(tm.max(1.0 - cos_theta * cos_theta, 0.0))
    return 1 if refraction_ratio * sin_theta > 1.0 else 0


@ti.func
def fresnel_reflectance(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> ti.f32:
    """Fresnel reflectance of the interface for the given incident ray.

    Schlick's approximation takes the cosine on the outer (lower index) side
    of the interface. For a ray leaving the material that is the cosine of
    the transmitted ray, which reaches zero at total internal reflection.
    """
    refraction_ratio = _refraction_ratio(ior, front_face)
    cos_theta = tm.clamp(-tm.dot(incident_direction, normal), 0.0, 1.0)
    cosine = cos_theta
    if front_face == 0:
        sin2_t = refraction_ratio * refraction_ratio * (1.0 - cos_theta * cos_theta)
        cosine = ti.sqrt(tm.max(1.0 - sin2_t, 0.0))
    return schlick_fresnel(cosine, refraction_ratio)


@ti.func
def scatter_dielectric(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    state,
):
    """Reflect or refract a ray at a dielectric interface.

    Args:
        ior: Index of refraction of the material.
        incident_direction: The incoming ray direction (unit length).
        normal: The surface normal facing the incoming ray (unit length).
        front_face: 1 if the ray arrives from outside the material.
        state: The per-task generator state.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter, new_state).
        Dielectrics never absorb, so attenuation is white and did_scatter 1.
    """
    attenuation = vec3(1.0, 1.0, 1.0)
    refraction_ratio = _refraction_ratio(ior, front_face)

    cos_theta = tm.clamp(-tm.dot(incident_direction, normal), 0.0, 1.0)
    sin_theta = ti.sqrt(tm.max(1.0 - cos_theta * cos_theta, 0.0))
    cannot_refract = refraction_ratio * sin_theta > 1.0
    reflectance = fresnel_reflectance(ior, incident_direction, normal, front_face)

    u, s = next_float(state)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    if cannot_refract or u < reflectance:
        scattered_direction = reflect(incident_direction, normal)
    else:
        scattered_direction = refract(incident_direction, normal, refraction_ratio)

    scattered_direction = normalize(scattered_direction)
    # Refraction degenerated numerically, reflect instead
    if tm.dot(scattered_direction, scattered_direction) == 0.0:
        scattered_direction = normalize(reflect(incident_direction, normal))

    did_scatter = 1
    return scattered_direction, attenuation, did_scatter, s


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

MAX_DIELECTRIC_MATERIALS = 256

dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    """Reset the dielectric registry."""
    num_dielectric_materials[None] = 0


def validate_ior(ior) -> float:
    """Return the index of refraction as a float.

    Raises:
        ValueError: If IOR is less than 1.0 or not finite.
    """
    ior = float(ior)
    if not math.isfinite(ior) or ior < 1.0:
        raise ValueError(
            f"Index of refraction = {ior} is less than 1.0. "
            "IOR must be >= 1.0 for physically meaningful materials."
        )
    return ior


def add_dielectric_material(ior: float = 1.5) -> int:
    """Add a dielectric material to the registry.

    Args:
        ior: Index of refraction. Must be finite and >= 1.0.

    Returns:
        The type-local index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If IOR is less than 1.0 or not finite.
    """
    ior = validate_ior(ior)

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_iors[idx] = ior
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    return int(num_dielectric_materials[None])


@ti.func
def get_dielectric_ior(material_idx: ti.i32) -> ti.f32:
    return dielectric_iors[material_idx]
