"""Glossy (normalized Phong) material implementation.

The glossy BRDF is a Phong lobe centred on the mirror direction R of the
incident ray:

    f_r(wi, wo) = albedo * (n + 1) / (2 pi) * cos^n(alpha)

where alpha is the angle between the scattered direction and R and n is the
Phong exponent. Directions are sampled from the lobe itself,

    pdf(wi) = (n + 1) / (2 pi) * cos^n(alpha)

so the per-bounce weight f_r * cos(theta) / pdf is albedo * cos(theta),
which never exceeds the albedo. Samples that fall below the surface are
absorbed.

Unlike the mirror, the glossy lobe has a finite density, so glossy hits take
part in light sampling and multiple importance sampling.
"""

import math

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import reflect
from pathtracer.core.sampler import sample_phong_lobe
from pathtracer.materials.lambertian import validate_albedo

# Type alias for 3D vectors
vec3 = tm.vec3

MAX_GLOSSY_EXPONENT = 1e4


@ti.func
def _lobe(exponent: ti.f32, incident_direction: vec3, normal: vec3, direction: vec3) -> ti.f32:
    """(n + 1) / (2 pi) * cos^n(alpha), zero outside the lobe."""
    r = reflect(incident_direction, normal)
    cos_alpha = tm.max(tm.dot(r, direction), 0.0)
    return (exponent + 1.0) / (2.0 * tm.pi) * tm.pow(cos_alpha, exponent)


@ti.func
def eval_glossy(
    albedo: vec3,
    exponent: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    direction: vec3,
) -> vec3:
    """Evaluate the glossy BRDF for a scattered direction.

    Returns:
        The BRDF value (without the cosine term), zero below the surface.
    """
    value = vec3(0.0, 0.0, 0.0)
    if tm.dot(normal, direction) > 0.0:
        value = albedo * _lobe(exponent, incident_direction, normal, direction)
    return value


@ti.func
def pdf_glossy(exponent: ti.f32, incident_direction: vec3, normal: vec3, direction: vec3) -> ti.f32:
    """Solid-angle density with which scatter_glossy produces ``direction``."""
    pdf = 0.0
    if tm.dot(normal, direction) > 0.0:
        pdf = _lobe(exponent, incident_direction, normal, direction)
    return pdf


@ti.func
def scatter_glossy(
    albedo: vec3,
    exponent: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    state,
):
    """Sample the Phong lobe around the mirror direction.

    Args:
        albedo: Reflectance color.
        exponent: Phong exponent.
        incident_direction: The incoming ray direction (unit length).
        normal: The surface normal facing the incoming ray (unit length).
        state: The per-task generator state.

    Returns:
        A tuple of (scattered_direction, attenuation, pdf, did_scatter,
        new_state). did_scatter is 0 when the sample points into the surface.
    """
    r = reflect(incident_direction, normal)
    direction, s = sample_phong_lobe(r, exponent, state)

    cos_theta = tm.dot(normal, direction)
    attenuation = vec3(0.0, 0.0, 0.0)
    pdf = 0.0
    did_scatter = 0
    if cos_theta > 0.0:
        pdf = _lobe(exponent, incident_direction, normal, direction)
        if pdf > 0.0:
            did_scatter = 1
            attenuation = albedo * cos_theta
    return direction, attenuation, pdf, did_scatter, s


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

MAX_GLOSSY_MATERIALS = 256

glossy_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_GLOSSY_MATERIALS)
glossy_exponents = ti.field(dtype=ti.f32, shape=MAX_GLOSSY_MATERIALS)
num_glossy_materials = ti.field(dtype=ti.i32, shape=())


def clear_glossy_materials() -> None:
    """Reset the glossy registry."""
    num_glossy_materials[None] = 0


def validate_exponent(exponent) -> float:
    exponent = float(exponent)
    if not math.isfinite(exponent) or not 0.0 <= exponent <= MAX_GLOSSY_EXPONENT:
        raise ValueError(f"Phong exponent = {exponent} is outside [0, {MAX_GLOSSY_EXPONENT}]")
    return exponent


def add_glossy_material(albedo: tuple[float, float, float], exponent: float) -> int:
    """Add a glossy material to the registry.

    Args:
        albedo: Reflectance color as (R, G, B), each component in [0, 1].
        exponent: Phong exponent in [0, MAX_GLOSSY_EXPONENT].

    Returns:
        The type-local index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If the albedo or exponent is out of range.
    """
    albedo = validate_albedo(albedo)
    exponent = validate_exponent(exponent)

    idx = num_glossy_materials[None]
    if idx >= MAX_GLOSSY_MATERIALS:
        raise RuntimeError(f"Maximum number of glossy materials ({MAX_GLOSSY_MATERIALS}) exceeded")

    glossy_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    glossy_exponents[idx] = exponent
    num_glossy_materials[None] = idx + 1
    return idx


def get_glossy_material_count() -> int:
    return int(num_glossy_materials[None])


@ti.func
def get_glossy_params(material_idx: ti.i32):
    """Return (albedo, exponent) for a glossy material by index."""
    return glossy_albedos[material_idx], glossy_exponents[material_idx]
