"""Tests for the artifact registry and per-unit loading contexts."""

import sys

import pytest

from livecompile.bytecode import dump_code
from livecompile.errors import ArtifactLoadError
from livecompile.errors import ArtifactStateError
from livecompile.errors import ResourceNotFoundError
from livecompile.loading import ArtifactRegistry
from livecompile.loading import LoadingContext
from livecompile.loading import SharedContext


def _context(
    name: str,
    source: str,
    registry: ArtifactRegistry,
    shared: SharedContext,
    side_store=None,
) -> LoadingContext:
    """Build, write and register a context the way the file manager does."""
    context = LoadingContext(name, registry, shared, side_store)
    code = compile(source, context.artifact.uri, "exec", dont_inherit=True)
    with context.artifact.open_output() as output:
        output.write(dump_code(code, len(source)))
    registry.replace(context)
    return context


class _RecordingStore:
    def __init__(self) -> None:
        self.saved: dict[str, bytes] = {}

    def save(self, name: str, data: bytes) -> None:
        self.saved[name] = data


class _BrokenStore:
    def save(self, name: str, data: bytes) -> None:
        raise OSError("disk full")


class TestArtifactRegistry:
    def test_replace_returns_previous(
        self, registry: ArtifactRegistry, shared: SharedContext
    ) -> None:
        first = LoadingContext("pkg.Greet_ts1", registry, shared)
        second = LoadingContext("pkg.Greet_ts2", registry, shared)

        assert registry.replace(first) is None
        assert registry.replace(second) is first
        assert registry.lookup("pkg.Greet") is second
        assert len(registry) == 1
        assert "pkg.Greet" in registry

    def test_find_exact_then_canonical(
        self, registry: ArtifactRegistry, shared: SharedContext
    ) -> None:
        context = LoadingContext("pkg.Greet_ts1", registry, shared)
        registry.replace(context)

        assert registry.find("pkg.Greet") is context
        assert registry.find("pkg.Greet_ts1") is context
        # a superseded or future generation resolves to the active one
        assert registry.find("pkg.Greet_ts0") is context
        assert registry.find("pkg.Other") is None

    def test_contexts_is_snapshot(self, registry: ArtifactRegistry, shared: SharedContext) -> None:
        registry.replace(LoadingContext("pkg.A", registry, shared))
        snapshot = registry.contexts()
        registry.clear()
        assert len(snapshot) == 1
        assert len(registry) == 0


class TestLoadingContext:
    def test_load_is_memoized(self, registry: ArtifactRegistry, shared: SharedContext) -> None:
        context = _context("pkg.Counter_ts1", "hits = []\nhits.append(1)\n", registry, shared)

        module = context.load()

        assert context.load() is module
        assert module.hits == [1]
        assert context.is_loaded

    def test_module_is_private(self, registry: ArtifactRegistry, shared: SharedContext) -> None:
        context = _context("pkg.Private_ts1", "x = 1\n", registry, shared)
        module = context.load()

        assert module.__name__ == "pkg.Private_ts1"
        assert module.__package__ == "pkg"
        assert module.__loader__ is context
        assert "pkg.Private_ts1" not in sys.modules
        assert "pkg.Private" not in sys.modules

    def test_load_before_write_fails(self, registry: ArtifactRegistry, shared: SharedContext) -> None:
        context = LoadingContext("pkg.Pending_ts1", registry, shared)
        with pytest.raises(ArtifactStateError):
            context.load()

    def test_failing_body_is_not_memoized(
        self, registry: ArtifactRegistry, shared: SharedContext
    ) -> None:
        context = _context("pkg.Bad_ts1", "raise RuntimeError('nope')\n", registry, shared)

        with pytest.raises(ArtifactLoadError) as exc_info:
            context.load()

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert not context.is_loaded

    def test_regular_imports_still_work(
        self, registry: ArtifactRegistry, shared: SharedContext
    ) -> None:
        context = _context(
            "pkg.Uses_ts1", "import json\nfrom os import path\nout = json.dumps([1])\n", registry, shared
        )
        module = context.load()
        assert module.out == "[1]"
        assert module.path is sys.modules["os"].path

    def test_unit_imports_sibling_by_canonical_name(
        self, registry: ArtifactRegistry, shared: SharedContext
    ) -> None:
        _context("pkg.Helper_ts1", "def shout(text):\n    return text.upper()\n", registry, shared)
        page = _context(
            "pkg.Page_ts1",
            "from pkg.Helper import shout\n"
            "from pkg import Helper\n"
            "import pkg.Helper\n"
            "a = shout('hi')\n"
            "b = Helper.shout('yo')\n"
            "c = pkg.Helper.shout('ok')\n",
            registry,
            shared,
        )

        module = page.load()

        assert (module.a, module.b, module.c) == ("HI", "YO", "OK")

    def test_load_unit(self, registry: ArtifactRegistry, shared: SharedContext) -> None:
        helper = _context("pkg.Helper_ts1", "x = 5\n", registry, shared)
        page = _context("pkg.Page_ts1", "y = 1\n", registry, shared)

        assert page.load_unit("pkg.Helper") is helper.load()
        assert page.load_unit("pkg.Page") is page.load()
        assert page.load_unit("json") is sys.modules["json"]

    def test_side_store_receives_canonical_copy(
        self, registry: ArtifactRegistry, shared: SharedContext
    ) -> None:
        store = _RecordingStore()
        context = _context("pkg.Saved_ts7", "x = 1\n", registry, shared, side_store=store)

        context.load()

        assert store.saved["pkg.Saved"] == context.artifact.get_bytes()

    def test_side_store_failure_is_not_fatal(
        self,
        registry: ArtifactRegistry,
        shared: SharedContext,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        context = _context("pkg.Saved_ts7", "x = 1\n", registry, shared, side_store=_BrokenStore())

        module = context.load()

        assert module.x == 1
        assert "Could not save artifact" in caplog.text


class TestGetResource:
    def test_artifact_by_exact_and_canonical_name(
        self, registry: ArtifactRegistry, shared: SharedContext
    ) -> None:
        context = _context("pkg.Greet_ts1", "x = 1\n", registry, shared)
        expected = context.artifact.get_bytes()

        assert context.get_resource("pkg/Greet_ts1.pyc").read() == expected
        assert context.get_resource("pkg/Greet.pyc").read() == expected

    def test_falls_back_to_shared(self, registry: ArtifactRegistry, shared: SharedContext) -> None:
        context = _context("pkg.Greet_ts1", "x = 1\n", registry, shared)
        with pytest.raises(ResourceNotFoundError) as exc_info:
            context.get_resource("pkg/missing.txt")
        assert exc_info.value.resource == "pkg/missing.txt"
