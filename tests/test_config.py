from datetime import time
from pathlib import Path

import pytest

from staffattend.config import EngineConfig, load_engine_config, parse_clock
from staffattend.types import SENTINEL_DISTANCE

REPO_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "engine.yaml"


def test_defaults_match_observed_policy():
    config = EngineConfig()
    assert config.match_threshold == 0.5
    assert config.conflict.strict_threshold == 0.38
    assert config.conflict.support_threshold == 0.42
    assert config.conflict.support_required(6) == 2
    assert config.required_samples == 8


def test_repo_config_loads(tmp_path: Path):
    config = load_engine_config(REPO_CONFIG)
    assert config == EngineConfig()
    assert load_engine_config(tmp_path / "missing.yaml") == EngineConfig()


def test_yaml_values_and_unknown_keys(tmp_path: Path, caplog: pytest.LogCaptureFixture):
    path = tmp_path / "engine.yaml"
    path.write_text(
        "match_threshold: 0.45\n"
        "min_support_hits: 3\n"
        "late_after: '08:30'\n"
        "colour: blue\n"
        "quality:\n  min_brightness: 40\n",
        encoding="utf-8",
    )
    config = load_engine_config(path)
    assert config.match_threshold == 0.45
    assert config.conflict.support_required(12) == 3
    assert config.late_after == time(8, 30)
    assert config.quality.min_brightness == 40.0
    assert "colour" in caplog.text


def test_invalid_values_raise():
    with pytest.raises(ValueError):
        EngineConfig.from_dict({"match_threshold": -0.1})
    with pytest.raises(ValueError):
        EngineConfig.from_dict({"min_support_hits": 0})
    with pytest.raises(ValueError):
        EngineConfig.from_dict({"late_after": "noon"})


def test_overrides_skip_none():
    config = EngineConfig().with_overrides(match_threshold=None, strict_threshold=0.3)
    assert config.match_threshold == 0.5
    assert config.strict_threshold == 0.3


def test_parse_clock_accepts_yaml_sexagesimal():
    assert parse_clock(570) == time(9, 30)
    assert parse_clock(time(7, 0)) == time(7, 0)


def test_arcface_profile_stays_below_sentinel():
    config = load_engine_config(REPO_CONFIG.with_name("engine_arcface.yaml"))
    assert config.conflict.strict_threshold < config.conflict.support_threshold
    for value in (config.match_threshold, config.conflict.strict_threshold, config.conflict.support_threshold):
        assert value < SENTINEL_DISTANCE
    assert config.required_samples == EngineConfig().required_samples
