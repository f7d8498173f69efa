"""Mirror (perfect specular) material implementation.

A mirror reflects the incident direction about the surface normal:

    R = I - 2(I . N)N

The reflection is deterministic, so the bounce is specular: its density is a
delta distribution and it cannot be combined with light sampling. The weight
of each bounce is the albedo, which tints the reflected light.

Example:
    >>> # Inside a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_mirror(albedo, incident, normal)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import normalize, reflect
from pathtracer.materials.lambertian import validate_albedo

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_mirror(albedo: vec3, incident_direction: vec3, normal: vec3):
    """Reflect the incident ray about the surface normal.

    Args:
        albedo: The reflective color (RGB, each component in [0, 1]).
        incident_direction: The incoming ray direction (unit length).
        normal: The surface normal facing the incoming ray (unit length).

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter). The ray
        is absorbed (did_scatter == 0) if the reflection does not leave the
        surface, which only happens for grazing rounding errors.
    """
    scattered_direction = normalize(reflect(incident_direction, normal))

    did_scatter = 1
    if tm.dot(scattered_direction, normal) <= 0.0:
        did_scatter = 0
        scattered_direction = vec3(0.0, 0.0, 0.0)

    attenuation = albedo
    return scattered_direction, attenuation, did_scatter


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

MAX_MIRROR_MATERIALS = 256

mirror_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MIRROR_MATERIALS)
num_mirror_materials = ti.field(dtype=ti.i32, shape=())


def clear_mirror_materials() -> None:
    """Reset the mirror registry."""
    num_mirror_materials[None] = 0


def add_mirror_material(albedo: tuple[float, float, float]) -> int:
    """Add a mirror material to the registry.

    Args:
        albedo: The reflective color as (R, G, B), each component in [0, 1].

    Returns:
        The type-local index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any albedo component is outside [0, 1].
    """
    albedo = validate_albedo(albedo)

    idx = num_mirror_materials[None]
    if idx >= MAX_MIRROR_MATERIALS:
        raise RuntimeError(f"Maximum number of mirror materials ({MAX_MIRROR_MATERIALS}) exceeded")

    mirror_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    num_mirror_materials[None] = idx + 1
    return idx


def get_mirror_material_count() -> int:
    return int(num_mirror_materials[None])


@ti.func
def get_mirror_albedo(material_idx: ti.i32) -> vec3:
    return mirror_albedos[material_idx]
