"""Shared fixtures for livecompile tests."""

import pytest

from livecompile.compiler import RuntimeCompiler
from livecompile.file_manager import VirtualFileStore
from livecompile.loading import ArtifactRegistry
from livecompile.loading import SharedContext
from livecompile.testing import RecordingBackend


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def compiler(backend: RecordingBackend) -> RuntimeCompiler:
    return RuntimeCompiler(backend)


@pytest.fixture
def registry() -> ArtifactRegistry:
    return ArtifactRegistry()


@pytest.fixture
def shared() -> SharedContext:
    return SharedContext()


@pytest.fixture
def file_manager(registry: ArtifactRegistry, shared: SharedContext) -> VirtualFileStore:
    return VirtualFileStore(registry, shared)
