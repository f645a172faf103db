"""Tests for engine configuration."""
import pytest

from uipattern.core.config import Config
from uipattern.core.engine import TrainingEngine


def test_defaults_are_valid(settings):
    assert settings.validate_config() is True
    assert settings.match_threshold == 0.75
    assert settings.ambiguity_margin == 0.10
    assert settings.screen_diagonal() == pytest.approx((1920 ** 2 + 1080 ** 2) ** 0.5)


def test_values_come_from_environment(monkeypatch):
    monkeypatch.setenv("MATCH_THRESHOLD", "0.8")
    monkeypatch.setenv("ROW_TOLERANCE_PX", "20")

    settings = Config(_env_file=None)

    assert settings.match_threshold == 0.8
    assert settings.row_tolerance_px == 20


@pytest.mark.parametrize("overrides", [
    {"match_threshold": 1.5},
    {"ambiguity_margin": -0.1},
    {"text_weight": 0.5, "spatial_weight": 0.3, "visual_weight": 0.3},
    {"text_weight": 0.3, "spatial_weight": 0.4, "visual_weight": 0.3},
    {"default_screen_width": 0},
    {"match_workers": 0},
])
def test_invalid_values_are_rejected(overrides):
    settings = Config(_env_file=None, **overrides)
    with pytest.raises(ValueError):
        settings.validate_config()


def test_engine_refuses_invalid_settings():
    with pytest.raises(ValueError):
        TrainingEngine(settings=Config(_env_file=None, match_threshold=2.0))
