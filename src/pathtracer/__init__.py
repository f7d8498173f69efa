"""Offline Monte Carlo path tracer built on Taichi kernels.

The renderer supports:
- Spheres and triangles behind a surface area heuristic BVH
- Diffuse, mirror, dielectric and glossy materials, emissive surfaces
- Pure BRDF sampling or next-event estimation with multiple importance sampling
- Russian roulette path termination and deterministic per-task sampling
- Progressive accumulation, tone mapping and PNG export

Subpackages:
    core: Rays, sampling, render configuration, integrator and progressive renderer
    geometry: Shape primitives, bounding boxes and the BVH
    materials: BRDF/BSDF material models
    scene: Scene construction, lights, intersection and preset scenes
    camera: Camera models with ray generation
    imaging: Tone mapping and image export

Taichi must be initialized (``ti.init``) before any subpackage is imported,
because they declare Taichi fields at import time. The two entry points are
``pathtracer.scene.build_scene`` and ``pathtracer.core.integrator.render_image``.
"""

__version__ = "0.1.0"
