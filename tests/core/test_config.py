"""
Tests for loading the engine settings.
"""

import json

import pytest
from pydantic import ValidationError

from skirmish.core.config import CombatSettings, EngineSettings, RewardSettings, load_settings


def test_defaults():
    settings = EngineSettings()

    assert settings.combat.hit_threshold == 10
    assert settings.combat.defend_bonus == 5
    assert settings.encounter.attempt_cap == 200
    assert settings.encounter.overshoot_tolerance == 1.3
    assert settings.sync.poll_interval == 2.0


def test_partial_file_keeps_other_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"combat": {"hit_threshold": 12}, "sync": {"poll_interval": 0.5}}))

    settings = load_settings(path)

    assert settings.combat.hit_threshold == 12
    assert settings.combat.self_heal_amount == 5
    assert settings.sync.poll_interval == 0.5
    assert settings.rewards.gold_variance_max == 1.25


def test_missing_file_falls_back_to_defaults(tmp_path):
    assert load_settings(tmp_path / "nowhere.json") == EngineSettings()


@pytest.mark.parametrize(
    "content",
    ["{not json", json.dumps({"combat": {"hit_threshold": 40}})],
)
def test_invalid_file_falls_back_to_defaults(tmp_path, content):
    path = tmp_path / "settings.json"
    path.write_text(content)

    assert load_settings(path) == EngineSettings()


def test_settings_validate_their_values():
    with pytest.raises(ValidationError):
        CombatSettings(attack_damage="a lot")
    with pytest.raises(ValidationError):
        RewardSettings(gold_variance_min=2.0, gold_variance_max=1.0)
