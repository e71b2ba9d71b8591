"""Integration test fixtures shared across all e2e tests."""

import pytest

from tests.integration.fakes import FakeDeploymentBackend
from tests.integration.fakes.scenario import seed_release_train


@pytest.fixture
def backend() -> FakeDeploymentBackend:
    """Fake Azure DevOps seeded with the release-train scenario."""
    return seed_release_train(FakeDeploymentBackend())
