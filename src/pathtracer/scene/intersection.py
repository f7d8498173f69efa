"""Scene-level primitive storage and ray intersection.

Primitives are a closed set of variants (sphere, triangle). Each primitive id
indexes a unified table holding its variant tag, its index into the variant's
own structure-of-arrays storage, its material id and its surface area. The
intersection entry points dispatch on the tag with a single switch.

Three queries are provided:

- ``intersect_scene``: closest hit through the BVH (near child first, subtrees
  pruned once their entry distance exceeds the best hit so far).
- ``intersect_scene_brute``: closest hit by testing every primitive; the
  reference the BVH is validated against.
- ``intersect_scene_any``: occlusion test for shadow rays.

Example:
    >>> clear_scene()
    >>> add_sphere((0, 0, -1), 0.5, material_id=0, area=3.14159)
    >>> # rec = intersect_scene(origin, direction, T_MIN, T_MAX) inside a kernel
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import hit_aabb
from pathtracer.geometry.bvh import (
    BVH_STACK_SIZE,
    MAX_PRIMITIVES,
    bvh_bbox_max,
    bvh_bbox_min,
    bvh_left,
    bvh_prim_count,
    bvh_prim_indices,
    bvh_prim_start,
    bvh_right,
    num_bvh_nodes,
)
from pathtracer.geometry.sphere import (
    HitRecord,
    Sphere,
    hit_sphere,
    make_miss_record,
    sample_sphere_surface,
)
from pathtracer.geometry.triangle import Triangle, hit_triangle, sample_triangle_surface

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


class PrimitiveType(IntEnum):
    """Variant tag of a primitive."""

    SPHERE = 0
    TRIANGLE = 1


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Attributes:
        hit: 1 if the ray intersected any primitive, 0 on a miss.
        t: Distance along the ray. Only valid if hit == 1.
        point: The intersection point.
        normal: Unit normal facing the incoming ray.
        outward_normal: Unit geometric normal of the primitive.
        front_face: 1 if the ray hit the front face.
        material_id: Material of the hit primitive, -1 on a miss.
        prim_id: Id of the hit primitive, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    outward_normal: vec3
    front_face: ti.i32
    material_id: ti.i32
    prim_id: ti.i32


MAX_SPHERES = 1024
MAX_TRIANGLES = MAX_PRIMITIVES

# Unified primitive table
prim_types = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
prim_type_indices = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
prim_material_ids = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
prim_areas = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
num_primitives = ti.field(dtype=ti.i32, shape=())

# Sphere storage: Structure of Arrays layout
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Triangle storage: Structure of Arrays layout
triangle_v0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_edge1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_edge2 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
triangle_normals = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TRIANGLES)
num_triangles = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Remove every primitive. The data is overwritten by later additions."""
    num_primitives[None] = 0
    num_spheres[None] = 0
    num_triangles[None] = 0


def _register_primitive(prim_type: PrimitiveType, type_index: int, material_id: int, area: float):
    idx = num_primitives[None]
    if idx >= MAX_PRIMITIVES:
        raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded")
    prim_types[idx] = int(prim_type)
    prim_type_indices[idx] = type_index
    prim_material_ids[idx] = material_id
    prim_areas[idx] = area
    num_primitives[None] = idx + 1
    return idx


def add_sphere(center, radius: float, material_id: int, area: float) -> int:
    """Add a sphere to the scene.

    Returns:
        The primitive id of the sphere.

    Raises:
        RuntimeError: If the maximum number of spheres or primitives is exceeded.
    """
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    prim_id = _register_primitive(PrimitiveType.SPHERE, idx, material_id, area)
    sphere_centers[idx] = vec3(center[0], center[1], center[2])
    sphere_radii[idx] = radius
    num_spheres[None] = idx + 1
    return prim_id


def add_triangle(v0, edge1, edge2, normal, material_id: int, area: float) -> int:
    """Add a triangle given its precomputed vertex, edges and unit normal.

    Returns:
        The primitive id of the triangle.

    Raises:
        RuntimeError: If the maximum number of triangles or primitives is exceeded.
    """
    idx = num_triangles[None]
    if idx >= MAX_TRIANGLES:
        raise RuntimeError(f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded")
    prim_id = _register_primitive(PrimitiveType.TRIANGLE, idx, material_id, area)
    triangle_v0[idx] = vec3(v0[0], v0[1], v0[2])
    triangle_edge1[idx] = vec3(edge1[0], edge1[1], edge1[2])
    triangle_edge2[idx] = vec3(edge2[0], edge2[1], edge2[2])
    triangle_normals[idx] = vec3(normal[0], normal[1], normal[2])
    num_triangles[None] = idx + 1
    return prim_id


@ti.func
def get_sphere(type_index: ti.i32) -> Sphere:
    return Sphere(center=sphere_centers[type_index], radius=sphere_radii[type_index])


@ti.func
def get_triangle(type_index: ti.i32) -> Triangle:
    return Triangle(
        v0=triangle_v0[type_index],
        edge1=triangle_edge1[type_index],
        edge2=triangle_edge2[type_index],
        normal=triangle_normals[type_index],
    )


@ti.func
def intersect_primitive(
    prim_id: ti.i32,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Dispatch the intersection test on the primitive's variant tag."""
    rec = make_miss_record()
    type_index = prim_type_indices[prim_id]
    if prim_types[prim_id] == int(PrimitiveType.SPHERE):
        rec = hit_sphere(ray_origin, ray_direction, get_sphere(type_index), t_min, t_max)
    else:
        rec = hit_triangle(ray_origin, ray_direction, get_triangle(type_index), t_min, t_max)
    return rec


@ti.func
def sample_primitive_surface(prim_id: ti.i32, state):
    """Sample a point uniformly over a primitive's surface area.

    Returns:
        A tuple (point, outward_normal, new_state). The area density is
        1 / prim_areas[prim_id].
    """
    point = vec3(0.0, 0.0, 0.0)
    normal = vec3(0.0, 0.0, 0.0)
    s = state
    type_index = prim_type_indices[prim_id]
    if prim_types[prim_id] == int(PrimitiveType.SPHERE):
        point, normal, s = sample_sphere_surface(get_sphere(type_index), s)
    else:
        point, normal, s = sample_triangle_surface(get_triangle(type_index), s)
    return point, normal, s


@ti.func
def _to_scene_hit_record(rec: HitRecord, prim_id: ti.i32) -> SceneHitRecord:
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        outward_normal=rec.outward_normal,
        front_face=rec.front_face,
        material_id=prim_material_ids[prim_id],
        prim_id=prim_id,
    )


@ti.func
def _make_scene_miss_record() -> SceneHitRecord:
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        outward_normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        material_id=-1,
        prim_id=-1,
    )


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Closest hit along the ray, accelerated by the BVH.

    Traversal keeps an explicit stack of (node, entry distance). Children are
    pushed far first so the nearer child is popped first, and a popped node
    whose entry distance lies beyond the closest hit found so far is skipped.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The unit direction of the ray.
        t_min: Exclusive lower bound of valid hits.
        t_max: Exclusive upper bound of valid hits.

    Returns:
        The closest SceneHitRecord, or a miss record. An empty scene always
        misses.
    """
    closest_t = t_max
    result = _make_scene_miss_record()

    node_stack = ti.Vector.zero(ti.i32, BVH_STACK_SIZE)
    entry_stack = ti.Vector.zero(ti.f32, BVH_STACK_SIZE)
    stack_ptr = 0

    if num_bvh_nodes[None] > 0 and t_max > t_min:
        root_hit, root_t = hit_aabb(
            bvh_bbox_min[0], bvh_bbox_max[0], ray_origin, ray_direction, t_min, closest_t
        )
        if root_hit == 1:
            node_stack[0] = 0
            entry_stack[0] = root_t
            stack_ptr = 1

    while stack_ptr > 0:
        stack_ptr -= 1
        node = node_stack[stack_ptr]
        entry_t = entry_stack[stack_ptr]

        if entry_t <= closest_t:
            left = bvh_left[node]
            if left < 0:
                start = bvh_prim_start[node]
                for k in range(bvh_prim_count[node]):
                    prim_id = bvh_prim_indices[start + k]
                    rec = intersect_primitive(prim_id, ray_origin, ray_direction, t_min, closest_t)
                    if rec.hit == 1:
                        closest_t = rec.t
                        result = _to_scene_hit_record(rec, prim_id)
            else:
                right = bvh_right[node]
                hit_l, t_l = hit_aabb(
                    bvh_bbox_min[left], bvh_bbox_max[left],
                    ray_origin, ray_direction, t_min, closest_t,
                )
                hit_r, t_r = hit_aabb(
                    bvh_bbox_min[right], bvh_bbox_max[right],
                    ray_origin, ray_direction, t_min, closest_t,
                )
                near = left
                far = right
                t_near = t_l
                t_far = t_r
                hit_near = hit_l
                hit_far = hit_r
                if hit_l == 1 and hit_r == 1 and t_r < t_l:
                    near = right
                    far = left
                    t_near = t_r
                    t_far = t_l
                elif hit_l == 0:
                    near = right
                    t_near = t_r
                    hit_near = hit_r
                    hit_far = 0

                # Far child first so the near child is popped next
                if hit_near == 1 and hit_far == 1 and stack_ptr < BVH_STACK_SIZE:
                    node_stack[stack_ptr] = far
                    entry_stack[stack_ptr] = t_far
                    stack_ptr += 1
                if hit_near == 1 and stack_ptr < BVH_STACK_SIZE:
                    node_stack[stack_ptr] = near
                    entry_stack[stack_ptr] = t_near
                    stack_ptr += 1

    return result


@ti.func
def intersect_scene_brute(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Closest hit by testing every primitive in turn."""
    closest_t = t_max
    result = _make_scene_miss_record()
    for prim_id in range(num_primitives[None]):
        rec = intersect_primitive(prim_id, ray_origin, ray_direction, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = _to_scene_hit_record(rec, prim_id)
    return result


@ti.func
def intersect_scene_any(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Test if the ray hits anything in (t_min, t_max) (shadow ray query).

    Returns:
        1 if any primitive was hit, 0 otherwise.
    """
    hit_any = 0
    node_stack = ti.Vector.zero(ti.i32, BVH_STACK_SIZE)
    stack_ptr = 0
    if num_bvh_nodes[None] > 0 and t_max > t_min:
        node_stack[0] = 0
        stack_ptr = 1

    while stack_ptr > 0 and hit_any == 0:
        stack_ptr -= 1
        node = node_stack[stack_ptr]
        box_hit, _ = hit_aabb(
            bvh_bbox_min[node], bvh_bbox_max[node], ray_origin, ray_direction, t_min, t_max
        )
        if box_hit == 1:
            left = bvh_left[node]
            if left < 0:
                start = bvh_prim_start[node]
                for k in range(bvh_prim_count[node]):
                    if hit_any == 0:
                        prim_id = bvh_prim_indices[start + k]
                        rec = intersect_primitive(prim_id, ray_origin, ray_direction, t_min, t_max)
                        if rec.hit == 1:
                            hit_any = 1
            elif stack_ptr + 2 <= BVH_STACK_SIZE:
                node_stack[stack_ptr] = bvh_right[node]
                node_stack[stack_ptr + 1] = left
                stack_ptr += 2

    return hit_any
