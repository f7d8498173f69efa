"""Unit tests for triangle intersection and sampling."""

import numpy as np
import pytest
import taichi as ti


def _run_hit(v0, v1, v2, origin, direction, t_min=0.001, t_max=1000.0):
    from pathtracer.geometry.triangle import Triangle, hit_triangle, make_triangle_host, vec3

    tri = make_triangle_host(v0, v1, v2)
    ints = ti.field(dtype=ti.i32, shape=2)
    t_val = ti.field(dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel(
        p: ti.types.vector(3, ti.f32),
        e1: ti.types.vector(3, ti.f32),
        e2: ti.types.vector(3, ti.f32),
        n: ti.types.vector(3, ti.f32),
        o: ti.types.vector(3, ti.f32),
        d: ti.types.vector(3, ti.f32),
        tmin: ti.f32,
        tmax: ti.f32,
    ):
        rec = hit_triangle(o, d, Triangle(v0=p, edge1=e1, edge2=e2, normal=n), tmin, tmax)
        ints[0] = rec.hit
        ints[1] = rec.front_face
        t_val[None] = rec.t
        normal[None] = rec.normal

    test_kernel(
        vec3(*tri["v0"]),
        vec3(*tri["edge1"]),
        vec3(*tri["edge2"]),
        vec3(*tri["normal"]),
        vec3(*origin),
        vec3(*direction),
        t_min,
        t_max,
    )
    return {
        "hit": int(ints[0]),
        "front_face": int(ints[1]),
        "t": float(t_val[None]),
        "normal": normal[None].to_numpy(),
    }


UNIT_TRI = ((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0))


class TestTriangleIntersection:
    """Tests for the Moller-Trumbore intersection."""

    def test_hit_front_face(self):
        rec = _run_hit(*UNIT_TRI, (0.25, 0.25, 2.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert abs(rec["t"] - 2.0) < 1e-5
        assert rec["front_face"] == 1
        assert np.allclose(rec["normal"], [0, 0, 1], atol=1e-6)

    def test_hit_back_face_flips_normal(self):
        rec = _run_hit(*UNIT_TRI, (0.25, 0.25, -2.0), (0.0, 0.0, 1.0))
        assert rec["hit"] == 1
        assert rec["front_face"] == 0
        assert np.allclose(rec["normal"], [0, 0, -1], atol=1e-6)

    @pytest.mark.parametrize("origin", [(0.8, 0.8, 1.0), (-0.1, 0.5, 1.0), (0.5, -0.1, 1.0)])
    def test_miss_outside_edges(self, origin):
        rec = _run_hit(*UNIT_TRI, origin, (0.0, 0.0, -1.0))
        assert rec["hit"] == 0

    def test_parallel_ray_misses(self):
        rec = _run_hit(*UNIT_TRI, (-1.0, 0.25, 0.0), (1.0, 0.0, 0.0))
        assert rec["hit"] == 0

    def test_behind_origin_misses(self):
        rec = _run_hit(*UNIT_TRI, (0.25, 0.25, 2.0), (0.0, 0.0, 1.0))
        assert rec["hit"] == 0

    def test_interval_is_exclusive(self):
        rec = _run_hit(*UNIT_TRI, (0.25, 0.25, 2.0), (0.0, 0.0, -1.0), t_max=2.0)
        assert rec["hit"] == 0

    def test_empty_interval_never_hits(self):
        rec = _run_hit(*UNIT_TRI, (0.25, 0.25, 2.0), (0.0, 0.0, -1.0), t_min=2.0, t_max=2.0)
        assert rec["hit"] == 0

    def test_degenerate_triangle_never_hits(self):
        """Collinear vertices give a zero determinant for every ray."""
        rec = _run_hit(
            (0.0, 0.0, 0.0), (1.0, 1.0, 0.0), (2.0, 2.0, 0.0), (0.5, 0.5, 1.0), (0.0, 0.0, -1.0)
        )
        assert rec["hit"] == 0


class TestTriangleSampling:
    def test_samples_lie_in_triangle(self):
        from pathtracer.core.sampler import seed_rng
        from pathtracer.geometry.triangle import (
            Triangle,
            make_triangle_host,
            sample_triangle_surface,
            vec3,
        )

        tri = make_triangle_host((0.0, 0.0, 1.0), (2.0, 0.0, 1.0), (0.0, 2.0, 1.0))
        n = 4096
        points = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel(
            p: ti.types.vector(3, ti.f32),
            e1: ti.types.vector(3, ti.f32),
            e2: ti.types.vector(3, ti.f32),
            nrm: ti.types.vector(3, ti.f32),
        ):
            t = Triangle(v0=p, edge1=e1, edge2=e2, normal=nrm)
            for i in range(n):
                point, normal, s = sample_triangle_surface(t, seed_rng(1, i, 0))
                points[i] = point

        test_kernel(
            vec3(*tri["v0"]), vec3(*tri["edge1"]), vec3(*tri["edge2"]), vec3(*tri["normal"])
        )
        p = points.to_numpy()
        assert np.allclose(p[:, 2], 1.0)
        assert p[:, 0].min() >= 0.0 and p[:, 1].min() >= 0.0
        assert np.all(p[:, 0] + p[:, 1] <= 2.0 + 1e-5)
        # Centroid of the triangle
        assert np.allclose(p[:, :2].mean(axis=0), [2.0 / 3.0, 2.0 / 3.0], atol=0.03)


class TestTriangleHostHelpers:
    def test_make_triangle_host(self):
        from pathtracer.geometry.triangle import make_triangle_host

        tri = make_triangle_host((1.0, 1.0, 1.0), (3.0, 1.0, 1.0), (1.0, 1.0, 3.0))
        assert tri["edge1"] == (2.0, 0.0, 0.0)
        assert tri["edge2"] == (0.0, 0.0, 2.0)
        # (2,0,0) x (0,0,2) = (0,-4,0)
        assert tri["normal"] == pytest.approx((0.0, -1.0, 0.0))
        assert tri["area"] == pytest.approx(2.0)

    def test_degenerate_area_is_zero(self):
        from pathtracer.geometry.triangle import MIN_TRIANGLE_AREA, triangle_area

        assert triangle_area((0, 0, 0), (1, 1, 1), (2, 2, 2)) <= MIN_TRIANGLE_AREA

    def test_bounds(self):
        from pathtracer.geometry.triangle import triangle_bounds

        lo, hi = triangle_bounds((0, 5, 1), (2, -1, 1), (1, 0, 3))
        assert lo == (0, -1, 1)
        assert hi == (2, 5, 3)
