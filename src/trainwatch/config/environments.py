"""Deployment environment registry.

The registry is static configuration: it is loaded once at startup (from the
built-in table or a JSON file) and passed explicitly to the reconciler.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from enum import StrEnum
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, TypeAdapter

logger = structlog.get_logger()


class DeploymentCadence(StrEnum):
    CONTINUOUS = "continuous"
    TRAIN = "train"


class Environment(BaseModel):
    """One ring in the deployment topology."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    external_id: int
    product: str = ""
    cadence: DeploymentCadence = DeploymentCadence.TRAIN
    schedule_offset_days: int | None = None  # days after the weekly fork
    order: int = 0


DEFAULT_ENVIRONMENTS: tuple[Environment, ...] = (
    Environment(id="edog", display_name="EDOG", external_id=172, product="fe", schedule_offset_days=1, order=1),
    Environment(id="daily", display_name="Daily", external_id=190, product="fe", schedule_offset_days=1, order=2),
    Environment(id="dxt", display_name="DXT", external_id=191, product="fe", schedule_offset_days=4, order=3),
    Environment(id="msit", display_name="MSIT", external_id=192, product="fe", schedule_offset_days=7, order=4),
    Environment(
        id="canary1", display_name="Canary1", external_id=310, product="fe", schedule_offset_days=14, order=5
    ),
    Environment(
        id="canary2", display_name="Canary2", external_id=300, product="fe", schedule_offset_days=17, order=6
    ),
)

_ENVIRONMENT_LIST = TypeAdapter(list[Environment])


class EnvironmentRegistry:
    """Immutable, ordered table of known environments."""

    def __init__(self, environments: tuple[Environment, ...] | list[Environment]) -> None:
        ordered = sorted(environments, key=lambda e: e.order)
        ids = [e.id for e in ordered]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate environment ids: {duplicates}")
        self._environments: tuple[Environment, ...] = tuple(ordered)

    def __iter__(self) -> Iterator[Environment]:
        return iter(self._environments)

    def __len__(self) -> int:
        return len(self._environments)

    @property
    def environments(self) -> tuple[Environment, ...]:
        return self._environments

    def get(self, environment_id: str) -> Environment:
        """Look up an environment by id (case-insensitive)."""
        key = environment_id.lower()
        for env in self._environments:
            if env.id.lower() == key:
                return env
        raise KeyError(
            f"Unknown environment '{environment_id}'. Available: {[e.id for e in self._environments]}"
        )

    def select(self, environment_ids: list[str] | None = None) -> list[Environment]:
        """Return the named environments in registry order, or all of them."""
        if not environment_ids:
            return list(self._environments)
        wanted = {self.get(i).id for i in environment_ids}
        return [e for e in self._environments if e.id in wanted]


def load_environment_registry(path: Path | None = None) -> EnvironmentRegistry:
    """Build the registry from a JSON list of environments, or the built-in table."""
    if path is None:
        return EnvironmentRegistry(DEFAULT_ENVIRONMENTS)

    environments = _ENVIRONMENT_LIST.validate_python(json.loads(path.read_text(encoding="utf-8")))
    logger.info("environment_registry_loaded", path=str(path), count=len(environments))
    return EnvironmentRegistry(environments)
