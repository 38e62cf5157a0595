"""
Configuration module for the combat engine.

Collects every tunable constant of the engine (hit threshold, attempt cap,
overshoot tolerance, poll interval, transport identifiers...) in pydantic
models, and loads overrides from a JSON file.
"""

import json
from pathlib import Path
from typing import Any

from catchery import log_warning
from pydantic import BaseModel, Field, ValidationError, model_validator

from skirmish.core.dice import DiceParser

# Identifiers advertised by the narrator device.
COMBAT_SERVICE_UUID = "49535343-FE7D-4AE5-8FA9-9FAFD205E455"
COMBAT_STATE_CHARACTERISTIC_UUID = "49535343-1E4D-4BD9-BA61-23C647249616"


class CombatSettings(BaseModel):
    """Rules used by the combat state machine."""

    hit_threshold: int = Field(
        default=10,
        ge=1,
        le=20,
        description="Minimum d20 roll needed to hit an undefended target.",
    )
    defend_bonus: int = Field(
        default=5,
        ge=0,
        description="How much the hit threshold rises against a defending target.",
    )
    attack_damage: str = Field(
        default="1d6",
        description="Damage dice rolled on a successful attack.",
    )
    self_heal_amount: int = Field(
        default=5,
        ge=0,
        description="Hit points restored by a self heal.",
    )

    @model_validator(mode="after")
    def _check_dice(self) -> "CombatSettings":
        if not DiceParser.is_valid(self.attack_damage):
            raise ValueError(f"attack_damage is not a dice expression: {self.attack_damage}")
        return self


class EncounterSettings(BaseModel):
    """Bounds of the greedy encounter generator."""

    attempt_cap: int = Field(
        default=200,
        ge=1,
        description="Maximum number of picks attempted per generation.",
    )
    overshoot_tolerance: float = Field(
        default=1.3,
        ge=1.0,
        description="Adjusted XP may never exceed this multiple of the budget.",
    )


class RewardSettings(BaseModel):
    """Randomization bounds for treasure."""

    gold_variance_min: float = Field(default=0.75, gt=0)
    gold_variance_max: float = Field(default=1.25, gt=0)

    @model_validator(mode="after")
    def _check_range(self) -> "RewardSettings":
        if self.gold_variance_min > self.gold_variance_max:
            raise ValueError("gold_variance_min must not exceed gold_variance_max")
        return self


class SyncSettings(BaseModel):
    """Parameters of the host/follower synchronization."""

    poll_interval: float = Field(
        default=2.0,
        gt=0,
        description="Seconds between two follower reads.",
    )
    scan_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds a follower scans for hosts.",
    )
    service_id: str = Field(default=COMBAT_SERVICE_UUID)
    characteristic_id: str = Field(default=COMBAT_STATE_CHARACTERISTIC_UUID)


class EngineSettings(BaseModel):
    """Top-level configuration of the engine."""

    combat: CombatSettings = Field(default_factory=CombatSettings)
    encounter: EncounterSettings = Field(default_factory=EncounterSettings)
    rewards: RewardSettings = Field(default_factory=RewardSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)


DEFAULT_SETTINGS = EngineSettings()


def load_settings(path: Path | None = None) -> EngineSettings:
    """
    Loads settings from a JSON file, falling back to the defaults.

    Missing sections or keys keep their default values. A missing, unreadable
    or invalid file is logged and the defaults are returned.

    Args:
        path (Path | None): The JSON file to read.

    Returns:
        EngineSettings: The loaded settings.

    """
    if path is None:
        return EngineSettings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data: Any = json.load(f)
        return EngineSettings.model_validate(data)
    except FileNotFoundError:
        log_warning(
            f"Settings file not found, using defaults: {path}",
            {"path": str(path)},
        )
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        log_warning(
            f"Invalid settings file, using defaults: {path}",
            {"path": str(path), "error": str(e)},
            e,
        )
    return EngineSettings()
