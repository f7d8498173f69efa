"""Ready-made scenes.

- ``create_cornell_box_scene``: the classic Cornell box, an open box with
  a red left wall, a green right wall, white back wall, floor and ceiling,
  an emitting quad under the ceiling and three spheres (diffuse, mirror,
  glass).
- ``create_single_sphere_scene``: one unit diffuse sphere at the origin under
  a dim ambient background with a lamp behind the camera. Small and cheap,
  it is the scene used for end-to-end checks.

The Cornell box spans [0, box_size] on every axis:

- X-axis: from the right side of the image (x = 0) to the left side (x = box_size)
- Y-axis: floor to ceiling
- Z-axis: front to back, the camera looks toward +Z through the open front

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> scene = create_cornell_box_scene()
    >>> image = render_image(scene, 256, 256, samples_per_pixel=64, max_depth=8)
"""

from dataclasses import dataclass

from pathtracer.camera.pinhole import PinholeCamera
from pathtracer.scene.manager import Scene, SceneManager

# =============================================================================
# Cornell Box Parameters
# =============================================================================


@dataclass
class CornellBoxParams:
    """Parameters for configuring a Cornell box scene.

    Attributes:
        light_intensity: Scale applied to light_color to get the emitted
            radiance of the ceiling light.
        light_color: RGB color of the light.
        left_wall_color: RGB albedo of the left wall.
        right_wall_color: RGB albedo of the right wall.
        back_wall_color: RGB albedo of the back wall.
        metal_exponent: When set, the metal sphere uses a glossy lobe with
            this exponent instead of a perfect mirror.

    Example:
        >>> custom = CornellBoxParams(
        ...     light_intensity=20.0,
        ...     light_color=(1.0, 0.9, 0.8),  # Warm light
        ...     metal_exponent=200.0,
        ... )
    """

    light_intensity: float = 15.0
    light_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    left_wall_color: tuple[float, float, float] = (0.65, 0.05, 0.05)
    right_wall_color: tuple[float, float, float] = (0.12, 0.45, 0.15)
    back_wall_color: tuple[float, float, float] = (0.73, 0.73, 0.73)
    metal_exponent: float | None = None

    @property
    def light_emission(self) -> tuple[float, float, float]:
        return tuple(c * self.light_intensity for c in self.light_color)


# =============================================================================
# Cornell Box Constants
# =============================================================================

BOX_SIZE = 555.0

WHITE_WALL_ALBEDO = (0.73, 0.73, 0.73)

# Ceiling light size relative to the classic 555 box
LIGHT_WIDTH = 130.0
LIGHT_DEPTH = 105.0

DIFFUSE_SPHERE_ALBEDO = (0.73, 0.73, 0.73)
METAL_SPHERE_ALBEDO = (0.95, 0.93, 0.88)
GLASS_SPHERE_IOR = 1.5
SPHERE_RADIUS = 80.0


def get_light_quad_info(box_size: float = BOX_SIZE) -> dict[str, tuple[float, float, float]]:
    """Corner, edges and center of the ceiling light quad.

    The light hangs just below the ceiling, so the ceiling does not occlude
    it. Its front face points down into the box.
    """
    scale = box_size / BOX_SIZE
    width = LIGHT_WIDTH * scale
    depth = LIGHT_DEPTH * scale
    y = box_size - 1.0 * scale
    corner = ((box_size - width) / 2.0, y, (box_size - depth) / 2.0)
    return {
        "corner": corner,
        "edge_u": (width, 0.0, 0.0),
        "edge_v": (0.0, 0.0, depth),
        "center": (box_size / 2.0, y, box_size / 2.0),
    }


def get_cornell_box_bounds(box_size: float = BOX_SIZE):
    """The (min, max) corners of the box interior."""
    return (0.0, 0.0, 0.0), (box_size, box_size, box_size)


def create_cornell_box_camera(box_size: float = BOX_SIZE) -> PinholeCamera:
    """The standard Cornell box view, square and centered on the open front."""
    camera_distance = 800.0 * box_size / BOX_SIZE
    return PinholeCamera(
        lookfrom=(box_size / 2.0, box_size / 2.0, -camera_distance),
        lookat=(box_size / 2.0, box_size / 2.0, box_size / 2.0),
        vup=(0.0, 1.0, 0.0),
        vfov=40.0,
        aspect_ratio=1.0,
    )


# =============================================================================
# Cornell Box Factory
# =============================================================================


def create_cornell_box_scene(
    box_size: float = BOX_SIZE,
    params: CornellBoxParams | None = None,
) -> Scene:
    """Create the Cornell box scene.

    Args:
        box_size: The size of the box in each dimension.
        params: Optional CornellBoxParams for customizing the light, the wall
            colors and the metal sphere.

    Returns:
        The built Scene, with the standard camera.

    Raises:
        ValueError: If box_size is not positive or a parameter is out of range.
    """
    if not box_size > 0.0:
        raise ValueError(f"box_size must be positive, got {box_size}")
    if params is None:
        params = CornellBoxParams()

    manager = SceneManager()

    # =========================================================================
    # Materials
    # =========================================================================

    left_mat = manager.add_diffuse_material(albedo=params.left_wall_color)
    right_mat = manager.add_diffuse_material(albedo=params.right_wall_color)
    white_mat = manager.add_diffuse_material(albedo=WHITE_WALL_ALBEDO)
    back_mat = manager.add_diffuse_material(albedo=params.back_wall_color)
    light_mat = manager.add_emissive_material(emission=params.light_emission)

    diffuse_sphere_mat = manager.add_diffuse_material(albedo=DIFFUSE_SPHERE_ALBEDO)
    if params.metal_exponent is None:
        metal_mat = manager.add_mirror_material(albedo=METAL_SPHERE_ALBEDO)
    else:
        metal_mat = manager.add_glossy_material(
            albedo=METAL_SPHERE_ALBEDO, exponent=params.metal_exponent
        )
    glass_mat = manager.add_dielectric_material(ior=GLASS_SPHERE_IOR)

    # =========================================================================
    # Walls (quads with normals facing into the box)
    # =========================================================================

    s = box_size

    # Wall on the right of the image at x = 0, normal +X
    manager.add_quad((0.0, 0.0, 0.0), (0.0, s, 0.0), (0.0, 0.0, s), right_mat)

    # Wall on the left of the image at x = s, normal -X
    manager.add_quad((s, 0.0, 0.0), (0.0, 0.0, s), (0.0, s, 0.0), left_mat)

    # Back wall at z = s, normal -Z
    manager.add_quad((0.0, 0.0, s), (0.0, s, 0.0), (s, 0.0, 0.0), back_mat)

    # Floor at y = 0, normal +Y
    manager.add_quad((0.0, 0.0, 0.0), (0.0, 0.0, s), (s, 0.0, 0.0), white_mat)

    # Ceiling at y = s, normal -Y
    manager.add_quad((0.0, s, 0.0), (s, 0.0, 0.0), (0.0, 0.0, s), white_mat)

    light = get_light_quad_info(box_size)
    manager.add_quad(light["corner"], light["edge_u"], light["edge_v"], light_mat)

    # =========================================================================
    # Spheres resting on the floor
    # =========================================================================

    radius = SPHERE_RADIUS * s / BOX_SIZE
    manager.add_sphere((s * 0.27, radius, s * 0.35), radius, diffuse_sphere_mat)
    manager.add_sphere((s * 0.73, radius, s * 0.35), radius, metal_mat)
    manager.add_sphere((s * 0.5, radius, s * 0.65), radius, glass_mat)

    return manager.build(create_cornell_box_camera(box_size))


# =============================================================================
# Single Sphere
# =============================================================================


def create_single_sphere_scene(
    albedo: tuple[float, float, float] = (1.0, 1.0, 1.0),
    ambient: tuple[float, float, float] = (0.1, 0.1, 0.1),
    lamp_emission: tuple[float, float, float] = (20.0, 20.0, 20.0),
) -> Scene:
    """A unit diffuse sphere at the origin, viewed from +Z.

    The sphere is lit by the ambient background and by a spherical lamp
    just behind the camera, so its center faces the lamp and its silhouette
    grazes it.

    Args:
        albedo: Albedo of the sphere.
        ambient: Background radiance.
        lamp_emission: Radiance of the lamp; zero leaves only the ambient light.
    """
    manager = SceneManager()
    white = manager.add_diffuse_material(albedo=albedo)
    manager.add_sphere((0.0, 0.0, 0.0), 1.0, white)
    if any(c > 0.0 for c in lamp_emission):
        lamp = manager.add_emissive_material(emission=lamp_emission)
        manager.add_sphere((0.0, 0.0, 4.0), 0.5, lamp)
    manager.set_background(ambient)

    camera = PinholeCamera(lookfrom=(0.0, 0.0, 3.0), lookat=(0.0, 0.0, 0.0), vfov=60.0)
    return manager.build(camera)
