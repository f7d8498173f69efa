"""Light sources and explicit light sampling.

Two kinds of light are supported:

- Area lights: every primitive whose material emits. Emission is two-sided.
- Delta lights: directional lights (a distant source described by the
  direction its light travels and the irradiance it delivers) and point
  lights (a position and a radiant intensity). Delta lights cannot be hit by
  a ray, so they only contribute through next-event estimation.

A light is chosen uniformly among all lights. For an area light a point is
then chosen uniformly over its surface; the returned density is converted to
solid angle so it can be compared against BRDF densities for MIS.
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from pathtracer.core.config import T_MAX
from pathtracer.core.sampler import next_float
from pathtracer.scene.intersection import MAX_PRIMITIVES, prim_areas, sample_primitive_surface

# Type alias for 3D vectors
vec3 = tm.vec3

# Cosine at the light below which a light sample carries no density
MIN_LIGHT_COSINE = 1e-6


class DeltaLightType(IntEnum):
    DIRECTIONAL = 0
    POINT = 1


MAX_AREA_LIGHTS = MAX_PRIMITIVES
MAX_DELTA_LIGHTS = 64

# Area lights: one entry per emitting primitive
area_light_prim_ids = ti.field(dtype=ti.i32, shape=MAX_AREA_LIGHTS)
area_light_emissions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_AREA_LIGHTS)
num_area_lights = ti.field(dtype=ti.i32, shape=())

# Delta lights: vector is the travel direction (directional) or the position (point),
# power is the irradiance (directional) or the intensity (point)
delta_light_types = ti.field(dtype=ti.i32, shape=MAX_DELTA_LIGHTS)
delta_light_vectors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_DELTA_LIGHTS)
delta_light_powers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_DELTA_LIGHTS)
num_delta_lights = ti.field(dtype=ti.i32, shape=())

# Radiance returned for rays that escape the scene
background_color = ti.Vector.field(3, dtype=ti.f32, shape=())


def clear_lights() -> None:
    """Remove every light and reset the background to black."""
    num_area_lights[None] = 0
    num_delta_lights[None] = 0
    background_color[None] = vec3(0.0, 0.0, 0.0)


def add_area_light(prim_id: int, emission) -> int:
    """Register an emitting primitive as an area light.

    Raises:
        RuntimeError: If the maximum number of area lights is exceeded.
    """
    idx = num_area_lights[None]
    if idx >= MAX_AREA_LIGHTS:
        raise RuntimeError(f"Maximum number of area lights ({MAX_AREA_LIGHTS}) exceeded")
    area_light_prim_ids[idx] = prim_id
    area_light_emissions[idx] = vec3(emission[0], emission[1], emission[2])
    num_area_lights[None] = idx + 1
    return idx


def _add_delta_light(light_type: DeltaLightType, vector, power) -> int:
    idx = num_delta_lights[None]
    if idx >= MAX_DELTA_LIGHTS:
        raise RuntimeError(f"Maximum number of delta lights ({MAX_DELTA_LIGHTS}) exceeded")
    delta_light_types[idx] = int(light_type)
    delta_light_vectors[idx] = vec3(vector[0], vector[1], vector[2])
    delta_light_powers[idx] = vec3(power[0], power[1], power[2])
    num_delta_lights[None] = idx + 1
    return idx


def add_directional_light(direction, irradiance) -> int:
    """Add a distant light whose rays travel along ``direction`` (unit length)."""
    return _add_delta_light(DeltaLightType.DIRECTIONAL, direction, irradiance)


def add_point_light(position, intensity) -> int:
    """Add a point light emitting ``intensity`` uniformly in every direction."""
    return _add_delta_light(DeltaLightType.POINT, position, intensity)


def set_background(color) -> None:
    background_color[None] = vec3(color[0], color[1], color[2])


def get_light_count() -> int:
    return int(num_area_lights[None] + num_delta_lights[None])


@ti.func
def get_background() -> vec3:
    return background_color[None]


@ti.func
def light_pdf(prim_id: ti.i32, distance: ti.f32, cos_light: ti.f32) -> ti.f32:
    """Solid-angle density with which sample_light picks a point on an emitter.

    Args:
        prim_id: The emitting primitive that was hit.
        distance: Distance from the shading point to the hit.
        cos_light: Cosine between the emitter normal and the ray.

    Returns:
        The density, or 0 when the configuration cannot be sampled.
    """
    total = num_area_lights[None] + num_delta_lights[None]
    pdf = 0.0
    area = prim_areas[prim_id]
    cos_l = ti.abs(cos_light)
    if total > 0 and area > 0.0 and cos_l > MIN_LIGHT_COSINE:
        pdf = distance * distance / (ti.cast(total, ti.f32) * area * cos_l)
    return pdf


@ti.func
def sample_light(point: vec3, state):
    """Pick a light and a point on it as seen from ``point``.

    Args:
        point: The shading point.
        state: The per-task generator state.

    Returns:
        A tuple (direction, distance, radiance, pdf, is_delta, new_state).
        ``direction`` points from the shading point toward the light,
        ``radiance`` is the incident radiance (area lights) or irradiance
        (delta lights) arriving along it, and ``pdf`` is the solid-angle
        density for area lights or the selection probability for delta
        lights. A pdf of 0 means the sample must be discarded.
    """
    direction = vec3(0.0, 0.0, 0.0)
    distance = 0.0
    radiance = vec3(0.0, 0.0, 0.0)
    pdf = 0.0
    is_delta = 0
    s = state

    n_area = num_area_lights[None]
    total = n_area + num_delta_lights[None]
    if total > 0:
        u, s = next_float(s)
        k = ti.min(ti.cast(u * total, ti.i32), total - 1)
        select_pdf = 1.0 / ti.cast(total, ti.f32)

        if k < n_area:
            prim_id = area_light_prim_ids[k]
            light_point, light_normal, s = sample_primitive_surface(prim_id, s)
            to_light = light_point - point
            dist_sq = tm.dot(to_light, to_light)
            area = prim_areas[prim_id]
            if dist_sq > 0.0 and area > 0.0:
                dist = ti.sqrt(dist_sq)
                wi = to_light / dist
                cos_l = ti.abs(tm.dot(light_normal, wi))
                if cos_l > MIN_LIGHT_COSINE:
                    direction = wi
                    distance = dist
                    radiance = area_light_emissions[k]
                    pdf = select_pdf * dist_sq / (area * cos_l)
        else:
            j = k - n_area
            is_delta = 1
            if delta_light_types[j] == int(DeltaLightType.DIRECTIONAL):
                direction = -tm.normalize(delta_light_vectors[j])
                distance = T_MAX
                radiance = delta_light_powers[j]
                pdf = select_pdf
            else:
                to_light = delta_light_vectors[j] - point
                dist_sq = tm.dot(to_light, to_light)
                if dist_sq > 0.0:
                    distance = ti.sqrt(dist_sq)
                    direction = to_light / distance
                    radiance = delta_light_powers[j] / dist_sq
                    pdf = select_pdf

    return direction, distance, radiance, pdf, is_delta, s
