"""Render configuration and numeric tolerances.

``RenderConfig`` collects every option a render recognizes. It is a plain
dataclass so it can be built from parsed command-line arguments, from a
dictionary, or directly in tests.

Example:
    >>> config = RenderConfig(width=256, height=256, samples_per_pixel=64)
    >>> config.validate()
"""

from dataclasses import asdict, dataclass, fields
from enum import IntEnum
from typing import Any, Literal

# =============================================================================
# Numeric tolerances shared by the intersection code and the integrator
# =============================================================================

# Ray offset epsilon to avoid self-intersection
RAY_EPSILON = 1e-4

# t_min and t_max for ray intersection
T_MIN = 1e-4
T_MAX = 1e10

# Russian roulette survival probability is clamped into this range
MIN_RR_PROBABILITY = 0.05
MAX_RR_PROBABILITY = 0.95

# Paths whose largest throughput channel drops below this are terminated
THROUGHPUT_EPSILON = 1e-6

# Preallocated render target size
MAX_IMAGE_WIDTH = 1024
MAX_IMAGE_HEIGHT = 1024

# Type alias for tone mapping options
ToneMapMethod = Literal["none", "clamp", "reinhard", "exposure"]

TONE_MAP_METHODS = ("none", "clamp", "reinhard", "exposure")


class EstimatorMode(IntEnum):
    """Radiance estimator used by the integrator.

    BRDF: pure BRDF sampling, emission is collected when a path hits it.
    NEE: next-event estimation at non-specular hits combined with BRDF
        sampling through the power heuristic.
    """

    BRDF = 0
    NEE = 1

    @classmethod
    def parse(cls, value: "str | int | EstimatorMode") -> "EstimatorMode":
        """Convert a name ("nee", "brdf") or integer into an EstimatorMode.

        Raises:
            ValueError: If the value names no estimator.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown estimator mode: {value!r}") from None
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise ValueError(f"Unknown estimator mode: {value!r}") from None


@dataclass
class RenderConfig:
    """Options recognized by a render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Number of path samples averaged per pixel.
        max_depth: Hard cap on the number of surface interactions per path.
        rr_start_depth: Bounce depth from which Russian roulette may
            terminate a path.
        russian_roulette: Whether Russian roulette is enabled at all.
        seed: Seed mixed into every per-task generator.
        estimator: Radiance estimator (see EstimatorMode).
        exposure: Linear scale applied to radiance before tone mapping.
        gamma: Display gamma applied after tone mapping.
        tone_map: Tone mapping operator name.
    """

    width: int = 512
    height: int = 512
    samples_per_pixel: int = 64
    max_depth: int = 16
    rr_start_depth: int = 5
    russian_roulette: bool = True
    seed: int = 0
    estimator: EstimatorMode = EstimatorMode.NEE
    exposure: float = 1.0
    gamma: float = 2.2
    tone_map: ToneMapMethod = "clamp"

    def __post_init__(self) -> None:
        self.estimator = EstimatorMode.parse(self.estimator)

    def validate(self) -> "RenderConfig":
        """Check every option and return self.

        Raises:
            ValueError: If any option is out of range.
        """
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image size must be positive, got {self.width}x{self.height}")
        if self.width > MAX_IMAGE_WIDTH or self.height > MAX_IMAGE_HEIGHT:
            raise ValueError(
                f"Image dimensions ({self.width}x{self.height}) exceed maximum supported "
                f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
            )
        if self.samples_per_pixel <= 0:
            raise ValueError(f"samples_per_pixel must be positive, got {self.samples_per_pixel}")
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {self.max_depth}")
        if self.rr_start_depth < 0:
            raise ValueError(f"rr_start_depth must be non-negative, got {self.rr_start_depth}")
        if not 0 <= self.seed < 2**31:
            raise ValueError(f"seed must be in [0, 2^31), got {self.seed}")
        if self.exposure < 0.0:
            raise ValueError(f"exposure must be non-negative, got {self.exposure}")
        if self.gamma <= 0.0:
            raise ValueError(f"gamma must be positive, got {self.gamma}")
        if self.tone_map not in TONE_MAP_METHODS:
            raise ValueError(f"Unknown tone mapping method: {self.tone_map}")
        return self

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def to_dict(self) -> dict[str, Any]:
        """Export the configuration as a JSON-friendly dictionary."""
        data = asdict(self)
        data["estimator"] = self.estimator.name.lower()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RenderConfig":
        """Build a configuration from a dictionary.

        Raises:
            ValueError: If the dictionary has unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown render options: {sorted(unknown)}")
        return cls(**data).validate()
