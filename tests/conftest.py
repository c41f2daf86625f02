"""Shared test fixtures for convcheck."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from convcheck.config import ProjectConfig
from convcheck.engine import RuleSet, default_ruleset

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def ruleset() -> RuleSet:
    """The default rule set."""
    return default_ruleset()


@pytest.fixture()
def project_config() -> ProjectConfig:
    """Default project configuration (no config file)."""
    return ProjectConfig.default()


@pytest.fixture()
def game_project(tmp_path: Path) -> Path:
    """Create a small game project tree with scripts, scenes and assets.

    Layout:
    - entities/player/player.gd (clean)
    - entities/player/player.tscn (StartBTN ok, HealthBar bad suffix)
    - entities/enemy/enemy.gd (camelCase variable)
    - menus/ui/theme_default/assets/button.png
    - scripts/helpers.gd (unknown root)
    - README.md (ignored)
    """
    (tmp_path / "entities" / "player").mkdir(parents=True)
    (tmp_path / "entities" / "player" / "player.gd").write_text(
        "class_name Player\n"
        "extends CharacterBody2D\n"
        "\n"
        "signal health_changed\n"
        "const MAX_SPEED = 300\n"
        "@export var jump_height: float = 2.0\n"
        "\n"
        "func _physics_process(delta):\n"
        "    var velocity_x = 0\n"
    )
    (tmp_path / "entities" / "player" / "player.tscn").write_text(
        '[gd_scene load_steps=2 format=3]\n'
        "\n"
        '[node name="Player" type="CharacterBody2D"]\n'
        "\n"
        '[node name="StartBTN" type="Button" parent="."]\n'
        "\n"
        '[node name="HealthBar" type="ProgressBar" parent="."]\n'
    )
    (tmp_path / "entities" / "enemy").mkdir(parents=True)
    (tmp_path / "entities" / "enemy" / "enemy.gd").write_text(
        "extends Node2D\n"
        "var moveSpeed = 10\n"
    )
    assets = tmp_path / "menus" / "ui" / "theme_default" / "assets"
    assets.mkdir(parents=True)
    (assets / "button.png").write_bytes(b"\x89PNG\r\n")
    (tmp_path / "scripts").mkdir()
    (tmp_path / "scripts" / "helpers.gd").write_text("func help():\n    pass\n")
    (tmp_path / "README.md").write_text("# Game\n")
    return tmp_path


@pytest.fixture()
def game_files() -> list[str]:
    """Relative paths of every file in ``game_project``."""
    return [
        "README.md",
        "entities/enemy/enemy.gd",
        "entities/player/player.gd",
        "entities/player/player.tscn",
        "menus/ui/theme_default/assets/button.png",
        "scripts/helpers.gd",
    ]
