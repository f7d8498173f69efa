"""Unit tests for the dielectric material module.

Tests cover:
- Refraction obeys Snell's law
- Total internal reflection always reflects
- Reflection frequency matches the Schlick Fresnel term on entry and exit
- Attenuation is white, dielectrics never absorb
- IOR validation
"""

import math

import numpy as np
import pytest
import taichi as ti

N = 20000


def _scatter_many(ior, incident, front_face, n=N):
    """Scatter ``n`` samples of one incident ray off a +y facing interface."""
    from pathtracer.core.sampler import seed_rng
    from pathtracer.materials.dielectric import scatter_dielectric

    directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
    attenuations = ti.Vector.field(3, dtype=ti.f32, shape=n)
    flags = ti.field(dtype=ti.i32, shape=n)

    @ti.kernel
    def test_kernel(eta: ti.f32, i: ti.types.vector(3, ti.f32), ff: ti.i32):
        normal = ti.math.vec3(0.0, 1.0, 0.0)
        incident_dir = ti.math.normalize(i)
        for k in range(n):
            d, att, ok, s = scatter_dielectric(eta, incident_dir, normal, ff, seed_rng(0, k, 0))
            directions[k] = d
            attenuations[k] = att
            flags[k] = ok

    test_kernel(ior, ti.math.vec3(*incident), front_face)
    return directions.to_numpy(), attenuations.to_numpy(), flags.to_numpy()


class TestDielectricScatter:
    def test_attenuation_is_white(self):
        _, att, ok = _scatter_many(1.5, (1.0, -1.0, 0.0), 1, n=512)
        assert np.all(ok == 1)
        assert np.allclose(att, 1.0)

    def test_directions_are_unit(self):
        d, _, _ = _scatter_many(1.5, (0.3, -1.0, 0.2), 1, n=512)
        assert np.allclose(np.linalg.norm(d, axis=1), 1.0, atol=1e-5)

    def test_refracted_rays_obey_snell(self):
        d, _, _ = _scatter_many(1.5, (1.0, -1.0, 0.0), 1, n=2048)
        refracted = d[d[:, 1] < 0.0]
        assert len(refracted) > 0
        sin_t = np.abs(refracted[:, 0])
        assert np.allclose(sin_t, math.sin(math.pi / 4) / 1.5, atol=1e-5)

    def test_total_internal_reflection(self):
        """Leaving glass at a grazing angle cannot refract."""
        d, _, _ = _scatter_many(1.5, (5.67, -1.0, 0.0), 0, n=2048)
        # Every sample is the mirror direction
        expected = np.array([5.67, 1.0, 0.0]) / math.hypot(5.67, 1.0)
        assert np.allclose(d, expected, atol=1e-5)

    @pytest.mark.parametrize("angle_deg", [0.0, 45.0, 75.0])
    def test_reflection_frequency_matches_fresnel(self, angle_deg):
        theta = math.radians(angle_deg)
        incident = (math.sin(theta), -math.cos(theta), 0.0)
        d, _, _ = _scatter_many(1.5, incident, 1)
        reflected = np.mean(d[:, 1] > 0.0)

        r0 = ((1.0 - 1.5) / (1.0 + 1.5)) ** 2
        expected = r0 + (1.0 - r0) * (1.0 - math.cos(theta)) ** 5
        sigma = math.sqrt(expected * (1.0 - expected) / N)
        assert abs(reflected - expected) < 5.0 * sigma + 1e-3

    @pytest.mark.parametrize("angle_deg", [0.0, 30.0, 40.0])
    def test_exit_reflection_uses_transmitted_cosine(self, angle_deg):
        """Leaving glass, Schlick is evaluated at the angle of the ray in air."""
        theta = math.radians(angle_deg)
        incident = (math.sin(theta), -math.cos(theta), 0.0)
        d, _, _ = _scatter_many(1.5, incident, 0)
        reflected = np.mean(d[:, 1] > 0.0)

        cos_t = math.sqrt(1.0 - (1.5 * math.sin(theta)) ** 2)
        r0 = ((1.0 - 1.5) / (1.0 + 1.5)) ** 2
        expected = r0 + (1.0 - r0) * (1.0 - cos_t) ** 5
        sigma = math.sqrt(expected * (1.0 - expected) / N)
        assert abs(reflected - expected) < 5.0 * sigma + 1e-3

    def test_ior_one_passes_straight_through(self):
        d, _, _ = _scatter_many(1.0, (0.5, -1.0, 0.0), 1, n=256)
        transmitted = d[d[:, 1] < 0.0]
        expected = np.array([0.5, -1.0, 0.0]) / math.hypot(0.5, 1.0)
        assert np.allclose(transmitted, expected, atol=1e-5)


class TestDielectricHelpers:
    def test_will_reflect_and_reflectance(self):
        from pathtracer.materials.dielectric import fresnel_reflectance, will_reflect

        out_i = ti.field(dtype=ti.i32, shape=2)
        out_f = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            grazing = ti.math.normalize(ti.math.vec3(5.67, -1.0, 0.0))
            straight = ti.math.vec3(0.0, -1.0, 0.0)
            out_i[0] = will_reflect(1.5, grazing, normal, 0)
            out_i[1] = will_reflect(1.5, grazing, normal, 1)
            out_f[None] = fresnel_reflectance(1.5, straight, normal, 1)

        test_kernel()
        assert out_i[0] == 1
        assert out_i[1] == 0
        assert abs(out_f[None] - 0.04) < 1e-6

    def test_reflectance_is_the_same_from_either_side(self):
        """A ray entering at theta_t and one leaving at theta_i see the same interface."""
        from pathtracer.materials.dielectric import fresnel_reflectance

        out = ti.field(dtype=ti.f32, shape=2)
        theta_i = math.radians(40.0)
        theta_t = math.asin(1.5 * math.sin(theta_i))

        @ti.kernel
        def test_kernel(si: ti.f32, ci: ti.f32, st: ti.f32, ct: ti.f32):
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            out[0] = fresnel_reflectance(1.5, ti.math.vec3(si, -ci, 0.0), normal, 0)
            out[1] = fresnel_reflectance(1.5, ti.math.vec3(st, -ct, 0.0), normal, 1)

        test_kernel(math.sin(theta_i), math.cos(theta_i), math.sin(theta_t), math.cos(theta_t))
        assert abs(out[0] - out[1]) < 1e-4
        # Far above the ~0.04 that the cosine inside the glass would give
        assert out[0] > 0.2

    def test_reflectance_is_one_past_the_critical_angle(self):
        from pathtracer.materials.dielectric import fresnel_reflectance

        out = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            grazing = ti.math.normalize(ti.math.vec3(5.67, -1.0, 0.0))
            out[None] = fresnel_reflectance(1.5, grazing, ti.math.vec3(0.0, 1.0, 0.0), 0)

        test_kernel()
        assert abs(out[None] - 1.0) < 1e-6


class TestDielectricRegistry:
    def test_add_and_count(self):
        from pathtracer.materials.dielectric import (
            add_dielectric_material,
            get_dielectric_material_count,
        )

        assert add_dielectric_material(1.33) == 0
        assert add_dielectric_material() == 1
        assert get_dielectric_material_count() == 2

    @pytest.mark.parametrize("ior", [0.9, 0.0, float("nan"), float("inf")])
    def test_invalid_ior_raises(self, ior):
        from pathtracer.materials.dielectric import add_dielectric_material

        with pytest.raises(ValueError):
            add_dielectric_material(ior)
