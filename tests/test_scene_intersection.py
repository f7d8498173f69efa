"""Tests for scene-level intersection through the primitive table.

Tests cover:
- Closest hit among several primitives
- Material and primitive ids are reported with the hit
- Occlusion queries respect the interval
"""

import numpy as np
import taichi as ti


def _trace(origin, direction, t_min=1e-4, t_max=1e10):
    from pathtracer.scene.intersection import intersect_scene, intersect_scene_any

    ints = ti.field(dtype=ti.i32, shape=4)
    t_val = ti.field(dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel(
        o: ti.types.vector(3, ti.f32), d: ti.types.vector(3, ti.f32), tmin: ti.f32, tmax: ti.f32
    ):
        rec = intersect_scene(o, d, tmin, tmax)
        ints[0] = rec.hit
        ints[1] = rec.material_id
        ints[2] = rec.prim_id
        ints[3] = intersect_scene_any(o, d, tmin, tmax)
        t_val[None] = rec.t
        normal[None] = rec.normal

    test_kernel(ti.math.vec3(*origin), ti.math.vec3(*direction), t_min, t_max)
    return {
        "hit": int(ints[0]),
        "material_id": int(ints[1]),
        "prim_id": int(ints[2]),
        "any": int(ints[3]),
        "t": float(t_val[None]),
        "normal": normal[None].to_numpy(),
    }


def _row_of_objects():
    """Spheres at z = -2 and z = -6 and a triangle wall at z = -4 along the -z axis."""
    from pathtracer.camera.pinhole import PinholeCamera
    from pathtracer.scene.manager import SceneManager

    manager = SceneManager()
    red = manager.add_diffuse_material((0.8, 0.1, 0.1))
    green = manager.add_diffuse_material((0.1, 0.8, 0.1))
    blue = manager.add_mirror_material((0.1, 0.1, 0.8))
    manager.add_sphere((0.0, 0.0, -6.0), 0.5, red)
    manager.add_triangle((-1.0, -1.0, -4.0), (1.0, -1.0, -4.0), (0.0, 1.0, -4.0), green)
    manager.add_sphere((0.0, 0.0, -2.0), 0.5, blue)
    return manager.build(PinholeCamera(lookfrom=(0, 0, 1), lookat=(0, 0, 0)))


class TestClosestHit:
    def test_nearest_primitive_wins(self):
        _row_of_objects()
        rec = _trace((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 1
        assert rec["prim_id"] == 2
        assert rec["material_id"] == 2
        assert abs(rec["t"] - 1.5) < 1e-5
        assert np.allclose(rec["normal"], [0, 0, 1], atol=1e-5)

    def test_t_min_skips_nearer_primitives(self):
        _row_of_objects()
        rec = _trace((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_min=3.0)
        assert rec["prim_id"] == 1
        assert rec["material_id"] == 1
        assert abs(rec["t"] - 4.0) < 1e-5

    def test_from_behind(self):
        _row_of_objects()
        rec = _trace((0.0, 0.0, -10.0), (0.0, 0.0, 1.0))
        assert rec["prim_id"] == 0
        assert rec["material_id"] == 0
        assert abs(rec["t"] - 3.5) < 1e-5

    def test_miss(self):
        _row_of_objects()
        rec = _trace((0.0, 0.0, 0.0), (0.0, 1.0, 0.0))
        assert rec["hit"] == 0
        assert rec["prim_id"] == -1
        assert rec["material_id"] == -1
        assert rec["any"] == 0


class TestOcclusion:
    def test_any_hit_respects_t_max(self):
        _row_of_objects()
        assert _trace((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_max=1.4)["any"] == 0
        assert _trace((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_max=1.6)["any"] == 1

    def test_any_hit_from_between_objects(self):
        _row_of_objects()
        assert _trace((0.0, 0.0, -3.0), (0.0, 0.0, -1.0), t_max=0.9)["any"] == 0
        assert _trace((0.0, 0.0, -3.0), (0.0, 0.0, -1.0), t_max=1.1)["any"] == 1
