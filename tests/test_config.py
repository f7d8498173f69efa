"""Unit tests for RenderConfig and EstimatorMode."""

import pytest


class TestEstimatorMode:
    @pytest.mark.parametrize(
        "value, expected",
        [("nee", "NEE"), ("BRDF", "BRDF"), (" Nee ", "NEE"), (0, "BRDF"), (1, "NEE")],
    )
    def test_parse(self, value, expected):
        from pathtracer.core.config import EstimatorMode

        assert EstimatorMode.parse(value) is EstimatorMode[expected]

    def test_parse_passes_members_through(self):
        from pathtracer.core.config import EstimatorMode

        assert EstimatorMode.parse(EstimatorMode.NEE) is EstimatorMode.NEE

    @pytest.mark.parametrize("value", ["mis", 7, "", None])
    def test_parse_rejects_unknown(self, value):
        from pathtracer.core.config import EstimatorMode

        with pytest.raises(ValueError):
            EstimatorMode.parse(value)


class TestRenderConfig:
    """Tests for option validation and conversion."""

    def test_defaults_are_valid(self):
        from pathtracer.core.config import EstimatorMode, RenderConfig

        config = RenderConfig().validate()
        assert config.estimator is EstimatorMode.NEE
        assert config.russian_roulette is True
        assert config.aspect_ratio == 1.0

    def test_estimator_given_as_string(self):
        from pathtracer.core.config import EstimatorMode, RenderConfig

        assert RenderConfig(estimator="brdf").estimator is EstimatorMode.BRDF

    @pytest.mark.parametrize(
        "options",
        [
            {"width": 0},
            {"height": -3},
            {"width": 4096},
            {"samples_per_pixel": 0},
            {"max_depth": 0},
            {"rr_start_depth": -1},
            {"seed": -1},
            {"seed": 2**31},
            {"exposure": -0.5},
            {"gamma": 0.0},
            {"tone_map": "filmic"},
        ],
    )
    def test_validate_rejects_out_of_range(self, options):
        from pathtracer.core.config import RenderConfig

        with pytest.raises(ValueError):
            RenderConfig(**options).validate()

    def test_dict_round_trip(self):
        from pathtracer.core.config import RenderConfig

        config = RenderConfig(width=64, height=32, estimator="brdf", seed=9)
        data = config.to_dict()
        assert data["estimator"] == "brdf"
        assert RenderConfig.from_dict(data) == config

    def test_from_dict_rejects_unknown_keys(self):
        from pathtracer.core.config import RenderConfig

        with pytest.raises(ValueError, match="Unknown render options"):
            RenderConfig.from_dict({"width": 8, "spp": 4})

    def test_aspect_ratio(self):
        from pathtracer.core.config import RenderConfig

        assert RenderConfig(width=200, height=100).aspect_ratio == 2.0
