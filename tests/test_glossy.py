"""Unit tests for the glossy (Phong lobe) material module."""

import math

import numpy as np
import pytest
import taichi as ti

N = 20000


class TestGlossyScatter:
    def test_weight_never_exceeds_albedo(self):
        """The sample weight is albedo * cos(theta), so it stays below the albedo."""
        from pathtracer.core.sampler import seed_rng
        from pathtracer.materials.glossy import scatter_glossy

        weights = ti.Vector.field(3, dtype=ti.f32, shape=N)
        flags = ti.field(dtype=ti.i32, shape=N)

        @ti.kernel
        def test_kernel():
            albedo = ti.math.vec3(0.9, 0.6, 0.3)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            incident = ti.math.normalize(ti.math.vec3(1.0, -0.3, 0.0))
            for i in range(N):
                d, att, pdf, ok, s = scatter_glossy(albedo, 10.0, incident, normal, seed_rng(2, i, 0))
                weights[i] = att
                flags[i] = ok

        test_kernel()
        w = weights.to_numpy()
        ok = flags.to_numpy()
        assert np.all(w <= np.array([0.9, 0.6, 0.3]) + 1e-6)
        assert np.all(w >= 0.0)
        # Some samples of a wide lobe near grazing fall below the surface
        assert 0 < ok.sum() < N
        assert np.all(w[ok == 0] == 0.0)

    def test_pdf_matches_eval_ratio(self):
        """eval / pdf is the albedo wherever the pdf is positive."""
        from pathtracer.materials.glossy import eval_glossy, pdf_glossy

        out = ti.Vector.field(3, dtype=ti.f32, shape=())
        pdf_out = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            albedo = ti.math.vec3(0.5, 0.4, 0.3)
            normal = ti.math.vec3(0.0, 0.0, 1.0)
            incident = ti.math.normalize(ti.math.vec3(0.2, 0.0, -1.0))
            direction = ti.math.normalize(ti.math.vec3(0.3, 0.1, 1.0))
            pdf = pdf_glossy(20.0, incident, normal, direction)
            pdf_out[None] = pdf
            out[None] = eval_glossy(albedo, 20.0, incident, normal, direction) / pdf

        test_kernel()
        assert pdf_out[None] > 0.0
        assert np.allclose(out[None].to_numpy(), [0.5, 0.4, 0.3], rtol=1e-4)

    def test_below_surface_is_zero(self):
        from pathtracer.materials.glossy import eval_glossy, pdf_glossy

        out = ti.field(dtype=ti.f32, shape=2)

        @ti.kernel
        def test_kernel():
            normal = ti.math.vec3(0.0, 0.0, 1.0)
            incident = ti.math.vec3(0.0, 0.0, -1.0)
            below = ti.math.vec3(0.0, 0.0, -1.0)
            out[0] = pdf_glossy(5.0, incident, normal, below)
            out[1] = eval_glossy(ti.math.vec3(1.0), 5.0, incident, normal, below).x

        test_kernel()
        assert out[0] == 0.0 and out[1] == 0.0

    def test_pdf_integrates_to_one(self):
        """Normal incidence keeps the whole lobe above the surface."""
        from pathtracer.core.sampler import sample_unit_sphere_surface, seed_rng
        from pathtracer.materials.glossy import pdf_glossy

        total = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            normal = ti.math.vec3(0.0, 0.0, 1.0)
            incident = ti.math.vec3(0.0, 0.0, -1.0)
            for i in range(N):
                d, s = sample_unit_sphere_surface(seed_rng(8, i, 0))
                # Uniform sphere density is 1 / (4 pi)
                ti.atomic_add(total[None], pdf_glossy(3.0, incident, normal, d) * 4.0 * math.pi / N)

        test_kernel()
        assert abs(total[None] - 1.0) < 0.05


class TestGlossyRegistry:
    def test_add_and_read_back(self):
        from pathtracer.materials.glossy import (
            add_glossy_material,
            get_glossy_material_count,
            get_glossy_params,
        )

        add_glossy_material((0.8, 0.8, 0.8), 100.0)
        assert get_glossy_material_count() == 1

        albedo = ti.Vector.field(3, dtype=ti.f32, shape=())
        exponent = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            a, n = get_glossy_params(0)
            albedo[None] = a
            exponent[None] = n

        test_kernel()
        assert np.allclose(albedo[None].to_numpy(), 0.8)
        assert exponent[None] == 100.0

    @pytest.mark.parametrize(
        "albedo, exponent",
        [((0.5, 0.5, 0.5), -1.0), ((0.5, 0.5, 0.5), 1e5), ((0.5, 0.5, 0.5), math.inf), ((2, 0, 0), 10)],
    )
    def test_invalid_parameters_raise(self, albedo, exponent):
        from pathtracer.materials.glossy import add_glossy_material

        with pytest.raises(ValueError):
            add_glossy_material(albedo, exponent)
