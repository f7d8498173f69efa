"""Unit tests for the mirror material module."""

import numpy as np
import pytest
import taichi as ti


def _scatter(incident, normal, albedo=(0.9, 0.8, 0.7)):
    from pathtracer.materials.mirror import scatter_mirror

    direction = ti.Vector.field(3, dtype=ti.f32, shape=())
    attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())
    scattered = ti.field(dtype=ti.i32, shape=())

    @ti.kernel
    def test_kernel(
        a: ti.types.vector(3, ti.f32),
        i: ti.types.vector(3, ti.f32),
        n: ti.types.vector(3, ti.f32),
    ):
        d, att, ok = scatter_mirror(a, ti.math.normalize(i), n)
        direction[None] = d
        attenuation[None] = att
        scattered[None] = ok

    test_kernel(ti.math.vec3(*albedo), ti.math.vec3(*incident), ti.math.vec3(*normal))
    return direction[None].to_numpy(), attenuation[None].to_numpy(), int(scattered[None])


class TestMirrorScatter:
    def test_reflects_about_normal(self):
        d, att, ok = _scatter((1.0, -1.0, 0.0), (0.0, 1.0, 0.0))
        assert ok == 1
        assert np.allclose(d, np.array([1.0, 1.0, 0.0]) / np.sqrt(2.0), atol=1e-6)
        assert np.allclose(att, [0.9, 0.8, 0.7])

    def test_normal_incidence_reverses(self):
        d, _, ok = _scatter((0.0, 0.0, -1.0), (0.0, 0.0, 1.0))
        assert ok == 1
        assert np.allclose(d, [0.0, 0.0, 1.0], atol=1e-6)

    def test_angle_of_incidence_equals_reflection(self):
        incident = np.array([0.3, -0.9, 0.2])
        incident /= np.linalg.norm(incident)
        d, _, ok = _scatter(tuple(incident), (0.0, 1.0, 0.0))
        assert ok == 1
        assert abs(np.dot(d, [0, 1, 0]) - np.dot(-incident, [0, 1, 0])) < 1e-6
        assert abs(np.linalg.norm(d) - 1.0) < 1e-6

    def test_reflection_into_surface_is_absorbed(self):
        """A ray arriving from behind the shading normal cannot be reflected out."""
        d, _, ok = _scatter((0.0, 1.0, 0.0), (0.0, 1.0, 0.0))
        assert ok == 0
        assert np.allclose(d, 0.0)


class TestMirrorRegistry:
    def test_add_and_count(self):
        from pathtracer.materials.mirror import (
            add_mirror_material,
            clear_mirror_materials,
            get_mirror_material_count,
        )

        assert add_mirror_material((1.0, 1.0, 1.0)) == 0
        assert add_mirror_material((0.5, 0.5, 0.5)) == 1
        assert get_mirror_material_count() == 2
        clear_mirror_materials()
        assert get_mirror_material_count() == 0

    def test_invalid_albedo_raises(self):
        from pathtracer.materials.mirror import add_mirror_material

        with pytest.raises(ValueError):
            add_mirror_material((1.5, 0.5, 0.5))
