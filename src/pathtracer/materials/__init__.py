"""Materials module for BRDF/BSDF models.

Components:
    lambertian: Ideal diffuse reflection
    mirror: Perfect specular reflection
    dielectric: Glass-like refraction with Schlick Fresnel
    glossy: Normalized Phong lobe around the mirror direction

Every scatter function returns the importance-sampling weight
(BRDF * cos / pdf), which never exceeds the material's albedo.
"""

from .dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
    fresnel_reflectance,
    get_dielectric_ior,
    scatter_dielectric,
)
from .glossy import (
    add_glossy_material,
    clear_glossy_materials,
    eval_glossy,
    pdf_glossy,
    scatter_glossy,
)
from .lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
    eval_lambertian,
    get_lambertian_albedo,
    pdf_lambertian,
    scatter_lambertian,
)
from .mirror import (
    add_mirror_material,
    clear_mirror_materials,
    get_mirror_albedo,
    scatter_mirror,
)

__all__ = [
    # Lambertian
    "add_lambertian_material",
    "clear_lambertian_materials",
    "eval_lambertian",
    "get_lambertian_albedo",
    "pdf_lambertian",
    "scatter_lambertian",
    # Mirror
    "add_mirror_material",
    "clear_mirror_materials",
    "get_mirror_albedo",
    "scatter_mirror",
    # Dielectric
    "add_dielectric_material",
    "clear_dielectric_materials",
    "fresnel_reflectance",
    "get_dielectric_ior",
    "scatter_dielectric",
    # Glossy
    "add_glossy_material",
    "clear_glossy_materials",
    "eval_glossy",
    "pdf_glossy",
    "scatter_glossy",
]
