"""Fake deployment sources for integration testing."""

from tests.integration.fakes.deployment_fake import FakeDeploymentBackend, make_attempt, rev

__all__ = ["FakeDeploymentBackend", "make_attempt", "rev"]
