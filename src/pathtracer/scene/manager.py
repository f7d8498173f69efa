"""Unified scene manager for coordinating primitives, materials and lights.

The SceneManager is the construction-time API of the renderer. It maintains:

- A unified material_id space across all material types, with a mapping from
  material_id to (material_type, type_local_index) used for dispatch.
- The primitive table (spheres and triangles), validated as they are added.
- Delta lights and the background radiance.

``build()`` finishes construction: it builds the BVH over the primitive
bounds, uploads it, registers every emitting primitive as an area light and
returns an immutable ``Scene``. The device fields hold one scene at a time;
a ``Scene`` whose fields have since been cleared by another SceneManager is
no longer resident and cannot be rendered.

Example:
    >>> manager = SceneManager()
    >>> white = manager.add_diffuse_material(albedo=(0.8, 0.8, 0.8))
    >>> manager.add_sphere(center=(0, 0, 0), radius=1.0, material_id=white)
    >>> manager.set_background((0.5, 0.7, 1.0))
    >>> scene = manager.build(PinholeCamera(lookfrom=(0, 0, 3), lookat=(0, 0, 0)))
"""

import logging
import math
import numbers
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

import taichi as ti
import taichi.math as tm

from pathtracer.camera.pinhole import PinholeCamera
from pathtracer.core.ray import vec_length, vec_normalize
from pathtracer.geometry.aabb import AABB
from pathtracer.geometry.bvh import BVHBuilder, FlatBVH, clear_bvh, upload_bvh
from pathtracer.geometry.sphere import sphere_area, sphere_bounds
from pathtracer.geometry.triangle import MIN_TRIANGLE_AREA, make_triangle_host, triangle_bounds
from pathtracer.materials.dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
    validate_ior,
)
from pathtracer.materials.glossy import (
    add_glossy_material,
    clear_glossy_materials,
    validate_exponent,
)
from pathtracer.materials.lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
    validate_albedo,
)
from pathtracer.materials.mirror import add_mirror_material, clear_mirror_materials
from pathtracer.scene.intersection import MAX_PRIMITIVES, add_sphere, add_triangle, clear_scene
from pathtracer.scene.lights import (
    MAX_DELTA_LIGHTS,
    add_area_light,
    add_directional_light,
    add_point_light,
    clear_lights,
    set_background,
)

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3


class MaterialType(IntEnum):
    """Enumeration of supported material types.

    Used for material dispatch in the integrator to determine which
    scattering function to call.
    """

    DIFFUSE = 0
    MIRROR = 1
    DIELECTRIC = 2
    GLOSSY = 3
    EMISSIVE = 4


# Maximum number of materials across all types
MAX_MATERIALS = 1024

# material_types[i] stores the MaterialType for material_id i
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# material_type_indices[i] stores the type-local index for material_id i
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# Emitted radiance of each material, zero for non-emitters
material_emissions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())

# Incremented whenever the device-side scene is cleared
_generation = 0


def _clear_material_tracking() -> None:
    num_materials[None] = 0


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Get the material type for a given material ID.

    Returns:
        The material type as an integer (see MaterialType), or -1 for
        invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Get the index into the type-specific material arrays, -1 if invalid."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


@ti.func
def get_material_emission(material_id: ti.i32) -> vec3:
    result = vec3(0.0, 0.0, 0.0)
    if 0 <= material_id < num_materials[None]:
        result = material_emissions[material_id]
    return result


def _as_vec3(value, what: str) -> tuple[float, float, float]:
    """Convert a 3-sequence to a tuple of finite floats.

    Raises:
        ValueError: If the value does not have 3 finite components.
    """
    try:
        if len(value) != 3:
            raise ValueError(f"{what} must have 3 components, got {len(value)}")
        result = (float(value[0]), float(value[1]), float(value[2]))
    except TypeError:
        raise ValueError(f"{what} must be a sequence of 3 numbers, got {value!r}") from None
    if not all(math.isfinite(c) for c in result):
        raise ValueError(f"{what} must be finite, got {result}")
    return result


def _listify(params: dict[str, Any]) -> dict[str, Any]:
    return {k: list(v) if isinstance(v, tuple) else v for k, v in params.items()}


def _validate_radiance(value, what: str) -> tuple[float, float, float]:
    result = _as_vec3(value, what)
    if any(c < 0.0 for c in result):
        raise ValueError(f"{what} must be non-negative, got {result}")
    return result


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The type of material.
        type_index: The index within the type-specific material array
            (-1 for purely emissive materials, which have none).
        emission: Emitted radiance.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    emission: tuple[float, float, float]
    params: dict[str, Any]

    @property
    def is_emissive(self) -> bool:
        return any(c > 0.0 for c in self.emission)


@dataclass
class PrimitiveInfo:
    """Host-side record of a primitive in the scene.

    Attributes:
        prim_id: The primitive id used by the intersection code.
        kind: "sphere" or "triangle".
        params: The geometry as provided during creation.
        material_id: The material ID assigned to the primitive.
        area: Surface area.
        bounds: Bounding box, padded so planar primitives have volume.
    """

    prim_id: int
    kind: str
    params: dict[str, Any]
    material_id: int
    area: float
    bounds: AABB


@dataclass(frozen=True)
class Scene:
    """A built, immutable scene ready for rendering.

    Attributes:
        camera: The camera the scene is viewed through.
        background: Radiance returned for rays that escape.
        num_primitives: Number of primitives taking part in rendering.
        num_area_lights: Number of emitting primitives.
        num_delta_lights: Number of directional and point lights.
        bvh: The flattened acceleration structure.
        primitive_bounds: Bounds of every primitive, indexed by primitive id.
        excluded: Descriptions of degenerate primitives left out of the scene.
        generation: Identifies the device-side data this scene refers to.
    """

    camera: PinholeCamera
    background: tuple[float, float, float]
    num_primitives: int
    num_area_lights: int
    num_delta_lights: int
    bvh: FlatBVH
    primitive_bounds: tuple[AABB, ...] = field(default_factory=tuple)
    excluded: tuple[str, ...] = field(default_factory=tuple)
    generation: int = 0

    @property
    def num_lights(self) -> int:
        return self.num_area_lights + self.num_delta_lights

    @property
    def is_resident(self) -> bool:
        """True while the device fields still hold this scene."""
        return self.generation == _generation

    def ensure_resident(self) -> None:
        """Raise RuntimeError if this scene can no longer be rendered."""
        if not self.is_resident:
            raise RuntimeError(
                "Scene is no longer resident: another scene has been constructed since "
                "it was built. Rebuild it before rendering."
            )


class SceneManager:
    """Builder for a scene.

    Creating a SceneManager clears the device-side scene, so any previously
    built Scene stops being resident.

    Attributes:
        materials: MaterialInfo for all registered materials.
        primitives: PrimitiveInfo for all primitives in the scene.
        lights: Descriptions of the directional and point lights.
        excluded: Descriptions of degenerate primitives that were skipped.
    """

    def __init__(self) -> None:
        self.materials: list[MaterialInfo] = []
        self.primitives: list[PrimitiveInfo] = []
        self.lights: list[dict[str, Any]] = []
        self.excluded: list[str] = []
        self.background: tuple[float, float, float] = (0.0, 0.0, 0.0)
        self._scene: Scene | None = None
        self._clear_all()

    def _clear_all(self) -> None:
        global _generation
        _generation += 1
        self._generation = _generation

        clear_scene()
        clear_bvh()
        clear_lights()
        clear_lambertian_materials()
        clear_mirror_materials()
        clear_dielectric_materials()
        clear_glossy_materials()
        _clear_material_tracking()

        self.materials.clear()
        self.primitives.clear()
        self.lights.clear()
        self.excluded.clear()
        self.background = (0.0, 0.0, 0.0)
        self._scene = None

    def clear(self) -> None:
        """Clear the entire scene. Previously built scenes stop being resident."""
        self._clear_all()

    def _check_mutable(self) -> None:
        if self._scene is not None:
            raise RuntimeError("Scene has already been built; create a new SceneManager")
        if self._generation != _generation:
            raise RuntimeError("Scene data was cleared by another SceneManager")

    @property
    def is_built(self) -> bool:
        return self._scene is not None

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register_material(
        self,
        material_type: MaterialType,
        type_index: int,
        emission: tuple[float, float, float],
        params: dict[str, Any],
    ) -> int:
        material_id = num_materials[None]
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

        material_types[material_id] = int(material_type)
        material_type_indices[material_id] = type_index
        material_emissions[material_id] = vec3(emission[0], emission[1], emission[2])
        num_materials[None] = material_id + 1

        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                emission=emission,
                params=params,
            )
        )
        return material_id

    def add_diffuse_material(
        self,
        albedo: tuple[float, float, float],
        emission: tuple[float, float, float] = (0.0, 0.0, 0.0),
    ) -> int:
        """Add a Lambertian (diffuse) material, optionally emitting light.

        Args:
            albedo: The diffuse reflectance color, each component in [0, 1].
            emission: Emitted radiance. A non-zero emission turns every
                primitive using this material into an area light.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If the albedo or emission is out of range.
        """
        self._check_mutable()
        emission = _validate_radiance(emission, "Emission")
        type_index = add_lambertian_material(albedo)
        params = {"albedo": tuple(albedo)}
        if any(c > 0.0 for c in emission):
            params["emission"] = emission
        return self._register_material(MaterialType.DIFFUSE, type_index, emission, params)

    def add_mirror_material(self, albedo: tuple[float, float, float]) -> int:
        """Add a perfect mirror material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If any albedo component is outside [0, 1].
        """
        self._check_mutable()
        type_index = add_mirror_material(albedo)
        return self._register_material(
            MaterialType.MIRROR, type_index, (0.0, 0.0, 0.0), {"albedo": tuple(albedo)}
        )

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        """Add a dielectric (glass/water) material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If IOR is less than 1.0.
        """
        self._check_mutable()
        type_index = add_dielectric_material(ior)
        return self._register_material(
            MaterialType.DIELECTRIC, type_index, (0.0, 0.0, 0.0), {"ior": float(ior)}
        )

    def add_glossy_material(self, albedo: tuple[float, float, float], exponent: float) -> int:
        """Add a glossy (Phong lobe) material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If the albedo or exponent is out of range.
        """
        self._check_mutable()
        type_index = add_glossy_material(albedo, exponent)
        return self._register_material(
            MaterialType.GLOSSY,
            type_index,
            (0.0, 0.0, 0.0),
            {"albedo": tuple(albedo), "exponent": float(exponent)},
        )

    def add_emissive_material(self, emission: tuple[float, float, float]) -> int:
        """Add a light-source material that emits but never scatters.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If the emission is negative or not finite.
        """
        self._check_mutable()
        emission = _validate_radiance(emission, "Emission")
        return self._register_material(
            MaterialType.EMISSIVE, -1, emission, {"emission": emission}
        )

    def get_material_count(self) -> int:
        return int(num_materials[None])

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    # =========================================================================
    # Primitive Management
    # =========================================================================

    def _check_material_id(self, material_id: int) -> int:
        if isinstance(material_id, bool) or not isinstance(material_id, numbers.Integral):
            raise ValueError(f"Invalid material_id: {material_id!r}")
        if material_id < 0 or material_id >= len(self.materials):
            raise ValueError(f"Invalid material_id: {material_id}")
        return int(material_id)

    def add_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        material_id: int,
    ) -> int:
        """Add a sphere to the scene.

        Args:
            center: The center point of the sphere as (x, y, z).
            radius: The radius of the sphere.
            material_id: The unified material ID to assign to the sphere.

        Returns:
            The primitive id of the sphere, or -1 if it was excluded because
            its radius is not positive.

        Raises:
            RuntimeError: If the scene is already built or full.
            ValueError: If the geometry is not finite or material_id is invalid.
        """
        self._check_mutable()
        self._check_material_id(material_id)
        center = _as_vec3(center, "Sphere center")
        radius = float(radius)
        if not math.isfinite(radius):
            raise ValueError(f"Sphere radius must be finite, got {radius}")

        if radius <= 0.0:
            description = f"sphere(center={center}, radius={radius})"
            logger.warning("Excluding degenerate %s", description)
            self.excluded.append(description)
            return -1

        area = sphere_area(radius)
        prim_id = add_sphere(center, radius, material_id, area)
        lo, hi = sphere_bounds(center, radius)
        self.primitives.append(
            PrimitiveInfo(
                prim_id=prim_id,
                kind="sphere",
                params={"center": center, "radius": radius},
                material_id=material_id,
                area=area,
                bounds=AABB.from_points(lo, hi).pad_to_minimums(),
            )
        )
        return prim_id

    def add_triangle(
        self,
        v0: tuple[float, float, float],
        v1: tuple[float, float, float],
        v2: tuple[float, float, float],
        material_id: int,
    ) -> int:
        """Add a triangle to the scene.

        The front face is the one whose normal (v1 - v0) x (v2 - v0) points
        toward the viewer.

        Returns:
            The primitive id of the triangle, or -1 if it was excluded
            because its area is (numerically) zero.

        Raises:
            RuntimeError: If the scene is already built or full.
            ValueError: If a vertex is not finite or material_id is invalid.
        """
        self._check_mutable()
        self._check_material_id(material_id)
        v0 = _as_vec3(v0, "Triangle vertex v0")
        v1 = _as_vec3(v1, "Triangle vertex v1")
        v2 = _as_vec3(v2, "Triangle vertex v2")

        tri = make_triangle_host(v0, v1, v2)
        if tri["area"] <= MIN_TRIANGLE_AREA:
            description = f"triangle(v0={v0}, v1={v1}, v2={v2})"
            logger.warning("Excluding degenerate %s", description)
            self.excluded.append(description)
            return -1

        prim_id = add_triangle(
            tri["v0"], tri["edge1"], tri["edge2"], tri["normal"], material_id, tri["area"]
        )
        lo, hi = triangle_bounds(v0, v1, v2)
        self.primitives.append(
            PrimitiveInfo(
                prim_id=prim_id,
                kind="triangle",
                params={"v0": v0, "v1": v1, "v2": v2},
                material_id=material_id,
                area=tri["area"],
                bounds=AABB.from_points(lo, hi).pad_to_minimums(),
            )
        )
        return prim_id

    def add_quad(
        self,
        corner: tuple[float, float, float],
        edge_u: tuple[float, float, float],
        edge_v: tuple[float, float, float],
        material_id: int,
    ) -> tuple[int, int]:
        """Add a parallelogram as two triangles.

        The vertices are corner, corner+edge_u, corner+edge_u+edge_v and
        corner+edge_v; the front face normal is edge_u x edge_v.

        Returns:
            The primitive ids of the two triangles.
        """
        q = _as_vec3(corner, "Quad corner")
        u = _as_vec3(edge_u, "Quad edge_u")
        v = _as_vec3(edge_v, "Quad edge_v")
        p1 = (q[0] + u[0], q[1] + u[1], q[2] + u[2])
        p2 = (p1[0] + v[0], p1[1] + v[1], p1[2] + v[2])
        p3 = (q[0] + v[0], q[1] + v[1], q[2] + v[2])
        first = self.add_triangle(q, p1, p2, material_id)
        second = self.add_triangle(q, p2, p3, material_id)
        return first, second

    def get_primitive_count(self) -> int:
        return len(self.primitives)

    # =========================================================================
    # Lights and Environment
    # =========================================================================

    def add_directional_light(
        self,
        direction: tuple[float, float, float],
        irradiance: tuple[float, float, float],
    ) -> int:
        """Add a distant light.

        Args:
            direction: Direction in which the light travels (need not be
                normalized, must be non-zero).
            irradiance: Irradiance delivered to a surface facing the light.

        Returns:
            The index of the light among the delta lights.

        Raises:
            ValueError: If the direction is zero or the irradiance negative.
        """
        self._check_mutable()
        direction = _as_vec3(direction, "Light direction")
        if vec_length(direction) == 0.0:
            raise ValueError("Light direction must be non-zero")
        direction = vec_normalize(direction)
        irradiance = _validate_radiance(irradiance, "Light irradiance")
        index = add_directional_light(direction, irradiance)
        self.lights.append(
            {"type": "directional", "direction": direction, "irradiance": irradiance}
        )
        return index

    def add_point_light(
        self,
        position: tuple[float, float, float],
        intensity: tuple[float, float, float],
    ) -> int:
        """Add a point light with the given radiant intensity.

        Raises:
            ValueError: If the position is not finite or the intensity negative.
        """
        self._check_mutable()
        position = _as_vec3(position, "Light position")
        intensity = _validate_radiance(intensity, "Light intensity")
        index = add_point_light(position, intensity)
        self.lights.append({"type": "point", "position": position, "intensity": intensity})
        return index

    def set_background(self, color: tuple[float, float, float]) -> None:
        """Set the constant radiance returned for rays that escape the scene."""
        self._check_mutable()
        self.background = _validate_radiance(color, "Background")
        set_background(self.background)

    # =========================================================================
    # Build
    # =========================================================================

    def build(self, camera: PinholeCamera, builder: BVHBuilder | None = None) -> Scene:
        """Finish construction and return the immutable Scene.

        Builds the BVH over the primitive bounds, uploads it to the device
        and registers every emitting primitive as an area light.

        Raises:
            RuntimeError: If the scene was already built, or capacity is exceeded.
            ValueError: If the camera is invalid.
        """
        self._check_mutable()
        camera.validate()

        bounds = tuple(info.bounds for info in self.primitives)
        flat = (builder or BVHBuilder()).build(bounds)
        upload_bvh(flat)

        num_area_lights = 0
        for info in self.primitives:
            material = self.materials[info.material_id]
            if material.is_emissive:
                add_area_light(info.prim_id, material.emission)
                num_area_lights += 1

        self._scene = Scene(
            camera=camera,
            background=self.background,
            num_primitives=len(self.primitives),
            num_area_lights=num_area_lights,
            num_delta_lights=len(self.lights),
            bvh=flat,
            primitive_bounds=bounds,
            excluded=tuple(self.excluded),
            generation=self._generation,
        )
        logger.info(
            "Built scene: %d primitives, %d materials, %d area lights, %d delta lights, "
            "%d BVH nodes",
            len(self.primitives),
            len(self.materials),
            num_area_lights,
            len(self.lights),
            flat.num_nodes,
        )
        if self.excluded:
            logger.warning("%d degenerate primitives were excluded", len(self.excluded))
        return self._scene

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Export the scene description in the form accepted by build_scene.

        Materials are named "material_<id>".
        """
        materials = {}
        for mat in self.materials:
            materials[f"material_{mat.material_id}"] = {
                "type": mat.material_type.name.lower(),
                **_listify(mat.params),
            }
        primitives = []
        for prim in self.primitives:
            entry: dict[str, Any] = {
                "type": prim.kind,
                "material": f"material_{prim.material_id}",
            }
            entry.update(_listify(prim.params))
            primitives.append(entry)
        lights = [_listify(light) for light in self.lights]
        return {
            "materials": materials,
            "primitives": primitives,
            "lights": lights,
            "background": list(self.background),
        }


# =============================================================================
# Construction from plain descriptions
# =============================================================================

_MATERIAL_KEYS = {
    "diffuse": ({"albedo"}, {"emission"}),
    "mirror": ({"albedo"}, set()),
    "dielectric": (set(), {"ior"}),
    "glossy": ({"albedo", "exponent"}, set()),
    "emissive": ({"emission"}, set()),
}

_PRIMITIVE_KEYS = {
    "sphere": {"center", "radius", "material"},
    "triangle": {"v0", "v1", "v2", "material"},
}

_LIGHT_KEYS = {
    "directional": {"direction", "irradiance"},
    "point": {"position", "intensity"},
}


def _check_keys(kind: str, what: str, entry: dict, required: set, optional: set = frozenset()):
    missing = required - set(entry)
    if missing:
        raise ValueError(f"{what} of type {kind!r} is missing {sorted(missing)}")
    unknown = set(entry) - required - set(optional) - {"type"}
    if unknown:
        raise ValueError(f"{what} of type {kind!r} has unknown keys {sorted(unknown)}")


def _entry_type(entry: Any, what: str, known) -> str:
    if not isinstance(entry, dict):
        raise ValueError(f"{what} must be a mapping, got {type(entry).__name__}")
    kind = str(entry.get("type", "")).lower()
    if kind not in known:
        raise ValueError(f"Unknown {what.lower()} type: {entry.get('type')!r}")
    return kind


def _check_material(name: str, entry: Any) -> None:
    what = f"Material {name!r}"
    kind = _entry_type(entry, what, _MATERIAL_KEYS)
    required, optional = _MATERIAL_KEYS[kind]
    _check_keys(kind, what, entry, required, optional)
    if "albedo" in entry:
        validate_albedo(_as_vec3(entry["albedo"], f"{what} albedo"))
    if "emission" in entry:
        _validate_radiance(entry["emission"], f"{what} emission")
    if "ior" in entry:
        validate_ior(entry["ior"])
    if "exponent" in entry:
        validate_exponent(entry["exponent"])


def _check_description(primitives, materials, lights, background) -> None:
    """Validate a whole scene description without touching device state.

    build_scene runs this before constructing its SceneManager, so a bad
    description raises while the previously built scene is still resident.
    """
    if not isinstance(materials, dict):
        raise ValueError("materials must be a mapping from name to description")
    if len(materials) > MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
    for name, entry in materials.items():
        _check_material(name, entry)

    if len(primitives) > MAX_PRIMITIVES:
        raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded")
    for index, entry in enumerate(primitives):
        what = f"Primitive {index}"
        kind = _entry_type(entry, what, _PRIMITIVE_KEYS)
        _check_keys(kind, what, entry, _PRIMITIVE_KEYS[kind])
        if entry["material"] not in materials:
            raise ValueError(f"{what} references undefined material {entry['material']!r}")
        if kind == "sphere":
            _as_vec3(entry["center"], f"{what} center")
            try:
                radius = float(entry["radius"])
            except (TypeError, ValueError):
                raise ValueError(
                    f"{what} radius must be a number, got {entry['radius']!r}"
                ) from None
            if not math.isfinite(radius):
                raise ValueError(f"Sphere radius must be finite, got {radius}")
        else:
            for key in ("v0", "v1", "v2"):
                _as_vec3(entry[key], f"{what} {key}")

    if len(lights) > MAX_DELTA_LIGHTS:
        raise RuntimeError(f"Maximum number of delta lights ({MAX_DELTA_LIGHTS}) exceeded")
    for entry in lights:
        if str(entry["type"]).lower() == "directional":
            if vec_length(_as_vec3(entry["direction"], f"{what} direction")) == 0.0:
                raise ValueError("Light direction must be non-zero")
            _validate_radiance(entry["irradiance"], f"{what} irradiance")
        else:
            _as_vec3(entry["position"], f"{what} position")
            _validate_radiance(entry["intensity"], f"{what} intensity")

    _validate_radiance(background, "Background")


def _add_material(manager: SceneManager, entry: dict) -> int:
    kind = str(entry["type"]).lower()
    if kind == "diffuse":
        return manager.add_diffuse_material(entry["albedo"], entry.get("emission", (0.0, 0.0, 0.0)))
    if kind == "mirror":
        return manager.add_mirror_material(entry["albedo"])
    if kind == "dielectric":
        return manager.add_dielectric_material(entry.get("ior", 1.5))
    if kind == "glossy":
        return manager.add_glossy_material(entry["albedo"], entry["exponent"])
    return manager.add_emissive_material(entry["emission"])


def build_scene(
    primitives: list[dict[str, Any]],
    materials: dict[str, dict[str, Any]],
    lights: list[dict[str, Any]],
    camera: PinholeCamera | dict[str, Any],
    background: tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> Scene:
    """Construct a Scene from plain descriptions.

    Args:
        primitives: Entries such as ``{"type": "sphere", "center": [...],
            "radius": 1.0, "material": "white"}`` or ``{"type": "triangle",
            "v0": [...], "v1": [...], "v2": [...], "material": "white"}``.
        materials: Named materials, e.g. ``{"white": {"type": "diffuse",
            "albedo": [0.8, 0.8, 0.8]}}``. Types: diffuse (optional
            emission), mirror, dielectric, glossy, emissive.
        lights: Delta lights, ``{"type": "directional", "direction": [...],
            "irradiance": [...]}`` or ``{"type": "point", "position": [...],
            "intensity": [...]}``. Emitting primitives need no entry.
        camera: A PinholeCamera or its dictionary form.
        background: Radiance returned for rays that escape the scene.

    Returns:
        The built, resident Scene.

    Raises:
        ValueError: If any description is malformed, names an unknown
            material or type, or has out-of-range parameters. The whole
            description is checked before any device state changes, so a
            previously built scene stays resident when this raises.
        RuntimeError: If the description exceeds a capacity limit.
    """
    if isinstance(camera, dict):
        camera = PinholeCamera.from_dict(camera)
    camera.validate()
    _check_description(primitives, materials, lights, background)

    manager = SceneManager()
    material_ids = {}
    for name, entry in materials.items():
        material_ids[name] = _add_material(manager, entry)

    for entry in primitives:
        material_id = material_ids[entry["material"]]
        if str(entry["type"]).lower() == "sphere":
            manager.add_sphere(entry["center"], entry["radius"], material_id)
        else:
            manager.add_triangle(entry["v0"], entry["v1"], entry["v2"], material_id)

    for entry in lights:
        if str(entry["type"]).lower() == "directional":
            manager.add_directional_light(entry["direction"], entry["irradiance"])
        else:
            manager.add_point_light(entry["position"], entry["intensity"])

    manager.set_background(background)
    return manager.build(camera)


def scene_from_dict(data: dict[str, Any]) -> Scene:
    """Build a scene from a single dictionary (the inverse of SceneManager.to_dict
    plus a "camera" entry)."""
    if "camera" not in data:
        raise ValueError("Scene description is missing 'camera'")
    return build_scene(
        primitives=data.get("primitives", []),
        materials=data.get("materials", {}),
        lights=data.get("lights", []),
        camera=data["camera"],
        background=tuple(data.get("background", (0.0, 0.0, 0.0))),
    )
