"""Path tracing integrator for Monte Carlo light transport.

This module implements the rendering kernel: an unbiased path tracer with
material dispatch, optional next-event estimation, Russian roulette
termination and per-pixel sample accumulation.

Each path is traced iteratively with an explicit path state (ray,
throughput, depth, density and specularity of the previous bounce). One
iteration:

1. Intersect the ray with the scene. No hit: add throughput * background
   and stop.
2. Add the emission of the hit surface (MIS weighted in NEE mode when the
   previous bounce was non-specular).
3. NEE mode, non-specular surface: sample a light, trace a shadow ray and
   add its contribution weighted with the power heuristic.
4. Sample the material for a continuation direction and multiply the
   throughput by its weight. Absorbed or negligible throughput: stop.
5. Russian roulette once the path has reached the configured start depth.

``max_depth`` caps the number of surface interactions independently of the
roulette.

Every (pixel, sample) task seeds its own generator from (seed, pixel index,
sample index), so the result does not depend on scheduling and a render is
reproducible bit for bit.

Example:
    >>> scene = build_scene(primitives, materials, lights, camera)
    >>> image = render_image(scene, 256, 256, samples_per_pixel=64, max_depth=8)
"""

import logging
import time
from dataclasses import replace

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.camera.pinhole import get_ray_jittered, setup_camera
from pathtracer.core.config import (
    MAX_IMAGE_HEIGHT,
    MAX_IMAGE_WIDTH,
    MAX_RR_PROBABILITY,
    MIN_RR_PROBABILITY,
    RAY_EPSILON,
    T_MAX,
    T_MIN,
    THROUGHPUT_EPSILON,
    EstimatorMode,
    RenderConfig,
)
from pathtracer.core.ray import is_finite, max_component
from pathtracer.core.sampler import next_float, seed_rng
from pathtracer.materials.dielectric import get_dielectric_ior, scatter_dielectric
from pathtracer.materials.glossy import eval_glossy, get_glossy_params, pdf_glossy, scatter_glossy
from pathtracer.materials.lambertian import (
    eval_lambertian,
    get_lambertian_albedo,
    pdf_lambertian,
    scatter_lambertian,
)
from pathtracer.materials.mirror import get_mirror_albedo, scatter_mirror
from pathtracer.scene.intersection import intersect_scene, intersect_scene_any
from pathtracer.scene.lights import get_background, light_pdf, sample_light
from pathtracer.scene.manager import (
    MaterialType,
    Scene,
    get_material_emission,
    get_material_type,
    get_material_type_index,
)

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# Shadow rays stop this fraction short of the sampled light point
SHADOW_EPSILON = 1e-3

# =============================================================================
# Render Target (Pixel Accumulator)
# =============================================================================

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Running sum of valid sample estimates per pixel, indexed [i, j] with j = 0 at the bottom
_sum_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Number of valid samples per pixel
_count_buffer = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Samples rejected because their estimate was negative or not finite
_invalid_samples = ti.field(dtype=ti.i32, shape=())

_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image size and clear the accumulator.

    Raises:
        ValueError: If the dimensions are not positive or exceed the maximum.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image size must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )
    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1
    clear_render_target()


def clear_render_target() -> None:
    """Zero the accumulator and the invalid-sample counter."""
    _sum_buffer.fill(0.0)
    _count_buffer.fill(0)
    _invalid_samples[None] = 0


def _check_render_target_initialized() -> None:
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


def get_image_dimensions() -> tuple[int, int]:
    return int(_image_width[None]), int(_image_height[None])


def get_invalid_sample_count() -> int:
    """Number of samples dropped since the accumulator was last cleared."""
    return int(_invalid_samples[None])


def get_sample_counts() -> np.ndarray:
    """Per-pixel count of accumulated samples, shape (height, width), row 0 at the top."""
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    counts = _count_buffer.to_numpy()[:width, :height]
    return np.flipud(counts.T)


def get_image_numpy() -> np.ndarray:
    """Average the accumulated samples into a linear radiance raster.

    Returns:
        Float32 array of shape (height, width, 3), row 0 at the top.
        Pixels without samples are zero.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()

    sums = _sum_buffer.to_numpy()[:width, :height, :].astype(np.float64)
    counts = _count_buffer.to_numpy()[:width, :height].astype(np.float64)
    image = np.where(counts[..., None] > 0, sums / np.maximum(counts, 1.0)[..., None], 0.0)

    # (width, height, 3) -> (height, width, 3), then flip since j = 0 is the bottom row
    image = np.flipud(np.transpose(image, (1, 0, 2)))
    return np.ascontiguousarray(image, dtype=np.float32)


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def _scatter_material(
    mat_type: ti.i32,
    type_index: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    state,
):
    """Dispatch to the scatter function of the material variant.

    Returns:
        A tuple (direction, weight, pdf, did_scatter, is_specular, new_state).
        ``weight`` is the BRDF * cos / pdf importance-sampling weight; ``pdf``
        is only meaningful for non-specular bounces.
    """
    direction = vec3(0.0, 0.0, 0.0)
    weight = vec3(0.0, 0.0, 0.0)
    pdf = 0.0
    did_scatter = 0
    is_specular = 0
    s = state

    if mat_type == int(MaterialType.DIFFUSE):
        albedo = get_lambertian_albedo(type_index)
        direction, weight, pdf, s = scatter_lambertian(albedo, normal, s)
        did_scatter = 1
    elif mat_type == int(MaterialType.MIRROR):
        albedo = get_mirror_albedo(type_index)
        direction, weight, did_scatter = scatter_mirror(albedo, incident_direction, normal)
        is_specular = 1
    elif mat_type == int(MaterialType.DIELECTRIC):
        ior = get_dielectric_ior(type_index)
        direction, weight, did_scatter, s = scatter_dielectric(
            ior, incident_direction, normal, front_face, s
        )
        is_specular = 1
    elif mat_type == int(MaterialType.GLOSSY):
        albedo, exponent = get_glossy_params(type_index)
        direction, weight, pdf, did_scatter, s = scatter_glossy(
            albedo, exponent, incident_direction, normal, s
        )
    # EMISSIVE and invalid materials absorb

    return direction, weight, pdf, did_scatter, is_specular, s


@ti.func
def _eval_material(
    mat_type: ti.i32,
    type_index: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    direction: vec3,
):
    """BRDF value and sampling density for a given direction.

    Only non-specular variants have a finite density; everything else
    returns zeros.

    Returns:
        A tuple (brdf, pdf).
    """
    brdf = vec3(0.0, 0.0, 0.0)
    pdf = 0.0
    if mat_type == int(MaterialType.DIFFUSE):
        if tm.dot(normal, direction) > 0.0:
            brdf = eval_lambertian(get_lambertian_albedo(type_index))
        pdf = pdf_lambertian(normal, direction)
    elif mat_type == int(MaterialType.GLOSSY):
        albedo, exponent = get_glossy_params(type_index)
        brdf = eval_glossy(albedo, exponent, incident_direction, normal, direction)
        pdf = pdf_glossy(exponent, incident_direction, normal, direction)
    return brdf, pdf


@ti.func
def _is_non_specular(mat_type: ti.i32) -> ti.i32:
    return 1 if (mat_type == int(MaterialType.DIFFUSE) or mat_type == int(MaterialType.GLOSSY)) else 0


@ti.func
def _power_heuristic(pdf_a: ti.f32, pdf_b: ti.f32) -> ti.f32:
    a2 = pdf_a * pdf_a
    denom = a2 + pdf_b * pdf_b
    weight = 0.0
    if denom > 0.0:
        weight = a2 / denom
    return weight


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def _offset_ray_origin(point: vec3, normal: vec3, direction: vec3) -> vec3:
    """Push the point off the surface, to the side the ray will travel."""
    offset_dir = normal
    if tm.dot(direction, normal) < 0.0:
        offset_dir = -normal
    return point + RAY_EPSILON * offset_dir


@ti.func
def trace_path(
    origin: vec3,
    direction: vec3,
    state,
    max_depth: ti.i32,
    rr_start_depth: ti.i32,
    rr_enabled: ti.i32,
    estimator: ti.i32,
):
    """Estimate the radiance arriving along a ray.

    Args:
        origin: The ray origin.
        direction: The unit ray direction.
        state: The per-task generator state.
        max_depth: Maximum number of surface interactions.
        rr_start_depth: Number of bounces after which Russian roulette runs.
        rr_enabled: 1 to enable Russian roulette.
        estimator: EstimatorMode as an integer.

    Returns:
        A tuple (radiance, new_state).
    """
    s = state
    radiance = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    use_nee = 1 if estimator == int(EstimatorMode.NEE) else 0

    # The camera ray counts as specular: emission it hits is never MIS weighted
    prev_pdf = 0.0
    prev_specular = 1

    # Taichi does not allow break here, so an active flag ends the path
    active = 1

    for depth in range(max_depth):
        if active == 1:
            rec = intersect_scene(origin, direction, T_MIN, T_MAX)

            if rec.hit == 0:
                radiance += throughput * get_background()
                active = 0
            else:
                material_id = rec.material_id
                point = rec.point
                normal = rec.normal
                mat_type = get_material_type(material_id)
                type_index = get_material_type_index(material_id)

                emission = get_material_emission(material_id)
                if max_component(emission) > 0.0:
                    mis_weight = 1.0
                    if use_nee == 1 and prev_specular == 0:
                        cos_light = tm.dot(rec.outward_normal, direction)
                        mis_weight = _power_heuristic(
                            prev_pdf, light_pdf(rec.prim_id, rec.t, cos_light)
                        )
                    radiance += throughput * emission * mis_weight

                # Next-event estimation, skipped on the last interaction whose
                # continuation could not be counted anyway
                if use_nee == 1 and _is_non_specular(mat_type) == 1 and depth + 1 < max_depth:
                    wi, light_dist, light_radiance, pdf_light, is_delta, s = sample_light(point, s)
                    cos_surface = tm.dot(normal, wi)
                    if pdf_light > 0.0 and cos_surface > 0.0:
                        brdf, pdf_brdf = _eval_material(
                            mat_type, type_index, direction, normal, wi
                        )
                        if max_component(brdf) > 0.0:
                            shadow_origin = point + RAY_EPSILON * normal
                            shadow_t_max = light_dist * (1.0 - SHADOW_EPSILON)
                            if is_delta == 1 and light_dist >= T_MAX:
                                shadow_t_max = T_MAX
                            if intersect_scene_any(shadow_origin, wi, T_MIN, shadow_t_max) == 0:
                                light_weight = 1.0
                                if is_delta == 0:
                                    light_weight = _power_heuristic(pdf_light, pdf_brdf)
                                radiance += (
                                    throughput * brdf * light_radiance
                                    * (cos_surface * light_weight / pdf_light)
                                )

                new_direction, weight, pdf, did_scatter, is_specular, s = _scatter_material(
                    mat_type, type_index, direction, normal, rec.front_face, s
                )

                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= weight
                    prev_pdf = pdf
                    prev_specular = is_specular

                    if max_component(throughput) < THROUGHPUT_EPSILON:
                        active = 0
                    elif rr_enabled == 1 and depth + 1 >= rr_start_depth:
                        survival = tm.clamp(
                            max_component(throughput), MIN_RR_PROBABILITY, MAX_RR_PROBABILITY
                        )
                        u, s = next_float(s)
                        if u >= survival:
                            active = 0
                        else:
                            throughput /= survival

                    if active == 1:
                        origin = _offset_ray_origin(point, normal, new_direction)
                        direction = new_direction

    return radiance, s


@ti.func
def _is_valid_sample(color: vec3) -> ti.i32:
    valid = is_finite(color)
    if valid == 1 and (color.x < 0.0 or color.y < 0.0 or color.z < 0.0):
        valid = 0
    return valid


@ti.func
def _render_sample(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    sample_index: ti.i32,
    seed: ti.i32,
    max_depth: ti.i32,
    rr_start_depth: ti.i32,
    rr_enabled: ti.i32,
    estimator: ti.i32,
) -> vec3:
    """Trace one camera sample through pixel (pixel_i, pixel_j)."""
    state = seed_rng(seed, pixel_j * width + pixel_i, sample_index)
    origin, direction, state = get_ray_jittered(pixel_i, pixel_j, width, height, state)
    color, state = trace_path(
        origin, direction, state, max_depth, rr_start_depth, rr_enabled, estimator
    )
    return color


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_pass(
    width: ti.i32,
    height: ti.i32,
    sample_start: ti.i32,
    num_samples: ti.i32,
    seed: ti.i32,
    max_depth: ti.i32,
    rr_start_depth: ti.i32,
    rr_enabled: ti.i32,
    estimator: ti.i32,
):
    """Accumulate num_samples samples per pixel.

    The outer loop over pixels runs in parallel; each pixel's samples are
    traced serially so its sum is accumulated in sample order.
    """
    for i, j in ti.ndrange(width, height):
        for k in range(num_samples):
            color = _render_sample(
                i, j, width, height, sample_start + k,
                seed, max_depth, rr_start_depth, rr_enabled, estimator,
            )
            if _is_valid_sample(color) == 1:
                _sum_buffer[i, j] += color
                _count_buffer[i, j] += 1
            else:
                ti.atomic_add(_invalid_samples[None], 1)


@ti.kernel
def _render_single_pixel(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    num_samples: ti.i32,
    seed: ti.i32,
    max_depth: ti.i32,
    rr_start_depth: ti.i32,
    rr_enabled: ti.i32,
    estimator: ti.i32,
) -> vec3:
    """Average num_samples samples of one pixel (used for testing)."""
    total = vec3(0.0, 0.0, 0.0)
    count = 0
    ti.loop_config(serialize=True)
    for k in range(num_samples):
        color = _render_sample(
            pixel_i, pixel_j, width, height, k,
            seed, max_depth, rr_start_depth, rr_enabled, estimator,
        )
        if _is_valid_sample(color) == 1:
            total += color
            count += 1
        else:
            ti.atomic_add(_invalid_samples[None], 1)
    result = vec3(0.0, 0.0, 0.0)
    if count > 0:
        result = total / ti.cast(count, ti.f32)
    return result


# =============================================================================
# Public Rendering API
# =============================================================================


def _kernel_options(config: RenderConfig) -> tuple[int, int, int, int, int]:
    return (
        int(config.seed),
        int(config.max_depth),
        int(config.rr_start_depth),
        1 if config.russian_roulette else 0,
        int(config.estimator),
    )


def _prepare(scene: Scene, config: RenderConfig) -> None:
    """Check that the scene can be rendered and point the camera at the image."""
    if not isinstance(scene, Scene):
        raise TypeError(f"Expected a built Scene, got {type(scene).__name__}")
    scene.ensure_resident()
    setup_camera(scene.camera, aspect_ratio=scene.camera.aspect_ratio or config.aspect_ratio)


def accumulate_samples(config: RenderConfig, sample_start: int, num_samples: int) -> None:
    """Add num_samples samples per pixel to the current render target.

    Sample indices start at sample_start, so successive calls continue the
    same sample sequence as a single call would.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    if num_samples <= 0:
        return
    seed, max_depth, rr_start, rr_enabled, estimator = _kernel_options(config)
    _render_pass(
        width, height, sample_start, num_samples, seed, max_depth, rr_start, rr_enabled, estimator
    )


def render_image(
    scene: Scene,
    width: int,
    height: int,
    samples_per_pixel: int,
    max_depth: int,
    config: RenderConfig | None = None,
) -> np.ndarray:
    """Render the scene and return the averaged linear radiance.

    Args:
        scene: A built Scene that is still resident.
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Number of samples averaged per pixel.
        max_depth: Maximum number of surface interactions per path.
        config: Remaining options (seed, Russian roulette, estimator). Its
            size, sample and depth settings are replaced by the arguments.

    Returns:
        Float32 array of shape (height, width, 3), row 0 at the top.

    Raises:
        ValueError: If an option is out of range.
        RuntimeError: If the scene is no longer resident.
    """
    config = replace(
        config or RenderConfig(),
        width=width,
        height=height,
        samples_per_pixel=samples_per_pixel,
        max_depth=max_depth,
    ).validate()
    _prepare(scene, config)
    setup_render_target(width, height)

    logger.info(
        "Rendering %dx%d, %d spp, max depth %d, %s estimator",
        width,
        height,
        samples_per_pixel,
        max_depth,
        config.estimator.name,
    )
    start = time.perf_counter()
    accumulate_samples(config, 0, samples_per_pixel)
    image = get_image_numpy()
    elapsed = time.perf_counter() - start

    invalid = get_invalid_sample_count()
    if invalid:
        logger.warning("Dropped %d invalid (negative or non-finite) samples", invalid)
    logger.info("Render finished in %.2fs", elapsed)
    return image


def render_pixel(
    scene: Scene,
    pixel_i: int,
    pixel_j: int,
    samples_per_pixel: int,
    config: RenderConfig | None = None,
) -> tuple[float, float, float]:
    """Render a single pixel and return its averaged radiance.

    Pixel coordinates follow the kernel convention: (0, 0) is the bottom-left
    pixel of a config.width x config.height image. The samples are the same
    ones render_image would trace for that pixel.

    Raises:
        ValueError: If the pixel lies outside the image or an option is invalid.
        RuntimeError: If the scene is no longer resident.
    """
    config = replace(config or RenderConfig(), samples_per_pixel=samples_per_pixel).validate()
    if not (0 <= pixel_i < config.width and 0 <= pixel_j < config.height):
        raise ValueError(
            f"Pixel ({pixel_i}, {pixel_j}) is outside the {config.width}x{config.height} image"
        )
    _prepare(scene, config)
    seed, max_depth, rr_start, rr_enabled, estimator = _kernel_options(config)
    color = _render_single_pixel(
        pixel_i,
        pixel_j,
        config.width,
        config.height,
        samples_per_pixel,
        seed,
        max_depth,
        rr_start,
        rr_enabled,
        estimator,
    )
    return (float(color[0]), float(color[1]), float(color[2]))
