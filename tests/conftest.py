"""Pytest configuration for path tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.

Note: the pathtracer subpackages declare Taichi fields at import time, so
test modules import them inside test functions, after the session fixture
has run ti.init().
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls, which would
    invalidate every field declared so far.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene data before and after each test so tests are isolated."""
    from pathtracer.core.integrator import clear_render_target
    from pathtracer.geometry.bvh import clear_bvh
    from pathtracer.materials.dielectric import clear_dielectric_materials
    from pathtracer.materials.glossy import clear_glossy_materials
    from pathtracer.materials.lambertian import clear_lambertian_materials
    from pathtracer.materials.mirror import clear_mirror_materials
    from pathtracer.scene.intersection import clear_scene
    from pathtracer.scene.lights import clear_lights
    from pathtracer.scene.manager import _clear_material_tracking

    def _clear_all():
        clear_scene()
        clear_bvh()
        clear_lights()
        clear_lambertian_materials()
        clear_mirror_materials()
        clear_dielectric_materials()
        clear_glossy_materials()
        _clear_material_tracking()
        clear_render_target()

    _clear_all()
    yield
    _clear_all()


@pytest.fixture
def furnace_scene():
    """Factory for the furnace scene: the camera inside an emitting diffuse sphere.

    Every path keeps hitting the sphere, so the radiance along any camera ray
    with at most D interactions is Le * (1 - a^D) / (1 - a).
    """

    def _make(albedo=0.5, emission=0.5, radius=1.0):
        from pathtracer.camera.pinhole import PinholeCamera
        from pathtracer.scene.manager import SceneManager

        manager = SceneManager()
        mat = manager.add_diffuse_material(
            albedo=(albedo, albedo, albedo), emission=(emission, emission, emission)
        )
        manager.add_sphere((0.0, 0.0, 0.0), radius, mat)
        camera = PinholeCamera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0), vfov=60.0)
        return manager.build(camera)

    return _make

