"""Tests for the deployment environment registry."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from trainwatch.config.environments import (
    DEFAULT_ENVIRONMENTS,
    DeploymentCadence,
    Environment,
    EnvironmentRegistry,
    load_environment_registry,
)


class TestDefaultRegistry:
    def test_builtin_table(self) -> None:
        registry = load_environment_registry()
        assert [e.display_name for e in registry] == ["EDOG", "Daily", "DXT", "MSIT", "Canary1", "Canary2"]
        assert registry.get("msit").external_id == 192
        assert all(e.cadence == DeploymentCadence.TRAIN for e in registry)

    def test_environments_are_immutable(self) -> None:
        with pytest.raises(ValidationError):
            DEFAULT_ENVIRONMENTS[0].external_id = 1  # type: ignore[misc]

    def test_lookup_is_case_insensitive(self) -> None:
        assert load_environment_registry().get("EDOG").id == "edog"

    def test_unknown_environment(self) -> None:
        with pytest.raises(KeyError):
            load_environment_registry().get("prod")

    def test_select_keeps_registry_order(self) -> None:
        selected = load_environment_registry().select(["canary1", "edog"])
        assert [e.id for e in selected] == ["edog", "canary1"]

    def test_select_all(self) -> None:
        assert len(load_environment_registry().select(None)) == len(DEFAULT_ENVIRONMENTS)


class TestRegistryConstruction:
    def test_sorted_by_order(self) -> None:
        registry = EnvironmentRegistry(
            [
                Environment(id="b", display_name="B", external_id=2, order=2),
                Environment(id="a", display_name="A", external_id=1, order=1),
            ]
        )
        assert [e.id for e in registry] == ["a", "b"]

    def test_duplicate_ids_rejected(self) -> None:
        env = Environment(id="a", display_name="A", external_id=1)
        with pytest.raises(ValueError, match="Duplicate"):
            EnvironmentRegistry([env, env])

    def test_load_from_json(self, tmp_path: Path) -> None:
        path = tmp_path / "envs.json"
        path.write_text(
            json.dumps(
                [
                    {"id": "int", "display_name": "INT", "external_id": 5, "cadence": "continuous"},
                    {"id": "prod", "display_name": "Prod", "external_id": 6, "schedule_offset_days": 21, "order": 2},
                ]
            )
        )
        registry = load_environment_registry(path)
        assert len(registry) == 2
        assert registry.get("int").cadence == DeploymentCadence.CONTINUOUS
        assert registry.get("prod").schedule_offset_days == 21

    def test_load_rejects_invalid_cadence(self, tmp_path: Path) -> None:
        path = tmp_path / "envs.json"
        path.write_text(json.dumps([{"id": "x", "display_name": "X", "external_id": 1, "cadence": "weekly"}]))
        with pytest.raises(ValidationError):
            load_environment_registry(path)
