"""Scene module: construction, lights, ray queries and preset scenes.

Scene data lives in Taichi fields in a structure-of-arrays layout. It is
written through SceneManager (or build_scene) and is read-only once the
Scene has been built.
"""

from .intersection import (
    PrimitiveType,
    SceneHitRecord,
    intersect_scene,
    intersect_scene_any,
    intersect_scene_brute,
)
from .lights import DeltaLightType, sample_light
from .manager import (
    MaterialInfo,
    MaterialType,
    PrimitiveInfo,
    Scene,
    SceneManager,
    build_scene,
    scene_from_dict,
)
from .presets import (
    BOX_SIZE,
    CornellBoxParams,
    create_cornell_box_scene,
    create_single_sphere_scene,
)

__all__ = [
    # Intersection
    "PrimitiveType",
    "SceneHitRecord",
    "intersect_scene",
    "intersect_scene_any",
    "intersect_scene_brute",
    # Lights
    "DeltaLightType",
    "sample_light",
    # Manager
    "MaterialInfo",
    "MaterialType",
    "PrimitiveInfo",
    "Scene",
    "SceneManager",
    "build_scene",
    "scene_from_dict",
    # Presets
    "BOX_SIZE",
    "CornellBoxParams",
    "create_cornell_box_scene",
    "create_single_sphere_scene",
]
