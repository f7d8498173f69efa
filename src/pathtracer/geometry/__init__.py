"""Geometry module for shape primitives and spatial acceleration.

Components:
    sphere: Sphere primitive with ray-sphere intersection
    triangle: Triangle primitive (Moller-Trumbore intersection)
    aabb: Axis-aligned bounding boxes and the ray-slab test
    bvh: Surface area heuristic BVH builder and its flat layout

Intersection routines are Taichi functions; bounds and the BVH build run on
the host with NumPy.
"""

from .aabb import AABB, hit_aabb
from .bvh import BVHBuilder, FlatBVH, clear_bvh, upload_bvh
from .sphere import HitRecord, Sphere, hit_sphere, sphere_area, sphere_bounds
from .triangle import Triangle, hit_triangle, make_triangle_host, triangle_area, triangle_bounds

__all__ = [
    "AABB",
    "hit_aabb",
    "BVHBuilder",
    "FlatBVH",
    "clear_bvh",
    "upload_bvh",
    "Sphere",
    "HitRecord",
    "hit_sphere",
    "sphere_area",
    "sphere_bounds",
    "Triangle",
    "hit_triangle",
    "make_triangle_host",
    "triangle_area",
    "triangle_bounds",
]
