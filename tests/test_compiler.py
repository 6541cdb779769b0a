"""Tests for RuntimeCompiler."""

import logging
from pathlib import Path

import pytest

from livecompile.compiler import RuntimeCompiler
from livecompile.config import CompilerSettings
from livecompile.errors import ArtifactLoadError
from livecompile.errors import BackendUnavailableError
from livecompile.errors import CompilationError
from livecompile.errors import InternalInvariantError
from livecompile.errors import ResourceNotFoundError
from livecompile.models import Diagnostic
from livecompile.models import current_version
from livecompile.store import DiskArtifactStore
from livecompile.testing import RecordingBackend
from livecompile.testing import ScriptedBackend

GREET_A = 'class Greet:\n    def hi(self):\n        return "a"\n'
GREET_B = 'class Greet:\n    def hi(self):\n        return "b"\n'

# `is` against a str literal makes the compiler emit SyntaxWarning
LINT_SOURCE = 'def check(value):\n    return value is "a"\n'


class TestCompile:
    def test_regeneration_replaces_and_isolates(self, compiler: RuntimeCompiler) -> None:
        """Old generations keep working after a newer one takes the slot."""
        first = compiler.compile("pkg.Greet_ts1000", GREET_A)
        second = compiler.compile("pkg.Greet_ts2000", GREET_B)

        assert compiler.registry.lookup("pkg.Greet").qualified_name == "pkg.Greet_ts2000"
        assert len(compiler.registry) == 1
        assert first.Greet().hi() == "a"
        assert second.Greet().hi() == "b"
        assert first.Greet is not second.Greet

    def test_same_name_is_memoized(
        self, compiler: RuntimeCompiler, backend: RecordingBackend
    ) -> None:
        first = compiler.compile("pkg.Greet_ts1000", GREET_A)
        again = compiler.compile("pkg.Greet_ts1000", GREET_A)

        assert again is first
        assert backend.call_count == 1

    def test_older_name_recompiles(
        self, compiler: RuntimeCompiler, backend: RecordingBackend
    ) -> None:
        compiler.compile("pkg.Greet_ts1000", GREET_A)
        compiler.compile("pkg.Greet_ts2000", GREET_B)
        module = compiler.compile("pkg.Greet_ts1000", GREET_A)

        assert backend.call_count == 3
        assert module.Greet().hi() == "a"
        assert compiler.registry.lookup("pkg.Greet").qualified_name == "pkg.Greet_ts1000"

    def test_units_import_each_other(self, compiler: RuntimeCompiler) -> None:
        compiler.compile("pkg.Helper_ts1", "def shout(text):\n    return text.upper()\n")
        page = compiler.compile(
            "pkg.Page_ts1", "from pkg.Helper import shout\n\ndef render():\n    return shout('hi')\n"
        )
        compiler.compile("pkg.Helper_ts2", "def shout(text):\n    return text.lower()\n")
        newer = compiler.compile(
            "pkg.Page_ts2", "from pkg.Helper import shout\n\ndef render():\n    return shout('HI')\n"
        )

        assert page.render() == "HI"
        assert newer.render() == "hi"

    def test_syntax_error_raises_with_diagnostics(self, compiler: RuntimeCompiler) -> None:
        with pytest.raises(CompilationError) as exc_info:
            compiler.compile("pkg.Bad_ts1", "def broken(:\n")

        error = exc_info.value
        assert error.unit == "pkg.Bad_ts1"
        assert error.errors[0].category == "SyntaxError"
        assert "pkg.Bad" not in compiler.registry

    def test_body_failure_raises_load_error(
        self, compiler: RuntimeCompiler, backend: RecordingBackend
    ) -> None:
        source = "raise RuntimeError('nope')\n"
        with pytest.raises(ArtifactLoadError):
            compiler.compile("pkg.Boom_ts1", source)
        with pytest.raises(ArtifactLoadError):
            compiler.compile("pkg.Boom_ts1", source)

        assert backend.call_count == 2

    def test_scripted_diagnostics_surface(self) -> None:
        diagnostic = Diagnostic(kind="error", message="boom", category="Custom")
        compiler = RuntimeCompiler(ScriptedBackend(result=False, diagnostics=[diagnostic]))

        with pytest.raises(CompilationError) as exc_info:
            compiler.compile("pkg.A_ts1", "x = 1\n")

        assert exc_info.value.diagnostics == [diagnostic]

    def test_success_without_artifact_is_invariant_error(self) -> None:
        compiler = RuntimeCompiler(ScriptedBackend(result=True))

        with pytest.raises(InternalInvariantError, match="Loading context for: pkg.A_ts1 is not found"):
            compiler.compile("pkg.A_ts1", "x = 1\n")

    def test_garbage_artifact(self) -> None:
        compiler = RuntimeCompiler(ScriptedBackend(emit=b"garbage"))
        with pytest.raises(ArtifactLoadError):
            compiler.compile("pkg.A_ts1", "x = 1\n")


class TestLintRecovery:
    def test_disabled_by_default(
        self, compiler: RuntimeCompiler, backend: RecordingBackend
    ) -> None:
        with pytest.raises(CompilationError) as exc_info:
            compiler.compile("pkg.Lint_ts1", LINT_SOURCE)

        assert exc_info.value.has_category("SyntaxWarning")
        assert backend.call_count == 1

    def test_retries_once_with_lint_options(self, backend: RecordingBackend) -> None:
        compiler = RuntimeCompiler(backend, lint_recovery=True)

        module = compiler.compile("pkg.Lint_ts1", LINT_SOURCE)

        assert callable(module.check)
        assert backend.call_count == 2
        assert backend.calls[0]["options"].lint == ()
        assert backend.calls[1]["options"].lint == ("SyntaxWarning",)

    def test_gives_up_after_one_retry(self) -> None:
        backend = ScriptedBackend(
            result=False,
            diagnostics=[Diagnostic(kind="error", message="still bad", category="SyntaxWarning")],
        )
        compiler = RuntimeCompiler(backend, lint_recovery=True)

        with pytest.raises(CompilationError):
            compiler.compile("pkg.Lint_ts1", "x = 1\n")

        assert backend.call_count == 2

    def test_other_failures_not_retried(self, backend: RecordingBackend) -> None:
        compiler = RuntimeCompiler(backend, lint_recovery=True)
        with pytest.raises(CompilationError):
            compiler.compile("pkg.Bad_ts1", "def broken(:\n")
        assert backend.call_count == 1

    def test_configure_toggles(self, compiler: RuntimeCompiler) -> None:
        compiler.configure(enable_lint_recovery=True)
        assert compiler.lint_recovery
        compiler.configure()
        assert compiler.lint_recovery
        compiler.configure(enable_lint_recovery=False)
        assert not compiler.lint_recovery


class TestConfigure:
    def test_current_version_is_ignored(self, compiler: RuntimeCompiler) -> None:
        compiler.configure(target_version=current_version())
        assert compiler.options.target_version is None

    def test_target_applies_to_both_option_sets(self, compiler: RuntimeCompiler) -> None:
        compiler.configure(target_version="3.9")
        assert compiler.options.target_version == "3.9"
        assert compiler.lint_options.target_version == "3.9"
        assert compiler.lint_options.lint == ("SyntaxWarning",)

    def test_invalid_target(self, compiler: RuntimeCompiler) -> None:
        with pytest.raises(ValueError):
            compiler.configure(target_version="latest")

    def test_warnings_as_errors_off_reports_without_failing(
        self, backend: RecordingBackend
    ) -> None:
        compiler = RuntimeCompiler(backend, warnings_as_errors=False)

        module = compiler.compile("pkg.Lint_ts1", LINT_SOURCE)

        assert callable(module.check)
        assert backend.call_count == 1
        assert compiler.options.warnings_as_errors is False
        assert compiler.lint_options.warnings_as_errors is False

    def test_configure_warnings_as_errors(self, compiler: RuntimeCompiler) -> None:
        assert compiler.options.warnings_as_errors is True
        compiler.configure(target_version="3.9", warnings_as_errors=False)

        assert compiler.options.warnings_as_errors is False
        assert compiler.options.target_version == "3.9"
        assert compiler.lint_options.lint == ("SyntaxWarning",)

        compiler.configure(warnings_as_errors=True)
        assert compiler.options.warnings_as_errors is True

    def test_target_reaches_backend(
        self, compiler: RuntimeCompiler, backend: RecordingBackend
    ) -> None:
        compiler.configure(target_version="3.9")
        with pytest.raises(CompilationError):
            compiler.compile("pkg.Match_ts1", "match 1:\n    case 1:\n        pass\n")
        assert backend.calls[0]["options"].target_version == "3.9"

    def test_init_logs_resource_path(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        compiler = RuntimeCompiler(resource_path=[tmp_path])
        with caplog.at_level(logging.DEBUG, logger="livecompile.compiler"):
            compiler.init()
        assert str(tmp_path.resolve()) in caplog.text


class TestBackendSelection:
    def test_none_is_unavailable(self) -> None:
        with pytest.raises(BackendUnavailableError):
            RuntimeCompiler(backend=None)

    def test_unknown_name(self) -> None:
        with pytest.raises(BackendUnavailableError):
            RuntimeCompiler(backend="no-such-backend")

    def test_import_path(self) -> None:
        compiler = RuntimeCompiler("livecompile.testing:RecordingBackend")
        assert isinstance(compiler.backend, RecordingBackend)


class TestLoadAndResources:
    def test_load_by_name(self, compiler: RuntimeCompiler) -> None:
        module = compiler.compile("pkg.Greet_ts1000", GREET_A)
        assert compiler.load("pkg.Greet") is module
        assert compiler.load("pkg.Greet_ts1000") is module

    def test_load_unknown(self, compiler: RuntimeCompiler) -> None:
        with pytest.raises(ResourceNotFoundError):
            compiler.load("pkg.Nothing")

    def test_get_resource_serves_artifact(self, compiler: RuntimeCompiler) -> None:
        compiler.compile("pkg.Greet_ts1000", GREET_A)
        expected = compiler.registry.lookup("pkg.Greet").artifact.get_bytes()

        assert compiler.get_resource("pkg/Greet_ts1000.pyc").read() == expected
        assert compiler.get_resource("pkg/Greet.pyc").read() == expected

    def test_get_resource_falls_back_to_resource_path(self, tmp_path: Path) -> None:
        (tmp_path / "pkg").mkdir()
        (tmp_path / "pkg" / "data.txt").write_text("hello")
        compiler = RuntimeCompiler(resource_path=[tmp_path])

        assert compiler.get_resource("pkg/data.txt").read() == b"hello"
        with pytest.raises(ResourceNotFoundError):
            compiler.get_resource("pkg/missing.txt")


class TestSideStore:
    def test_from_settings_saves_artifacts(self, tmp_path: Path) -> None:
        settings = CompilerSettings(compile_directory=tmp_path / "out")
        compiler = RuntimeCompiler.from_settings(settings)

        compiler.compile("pkg.Greet_ts1000", GREET_A)

        store = DiskArtifactStore(tmp_path / "out")
        assert store.get("pkg.Greet") == compiler.registry.lookup("pkg.Greet").artifact.get_bytes()

    def test_from_settings_warnings_as_errors(self) -> None:
        compiler = RuntimeCompiler.from_settings(CompilerSettings(warnings_as_errors=False))
        assert compiler.options.warnings_as_errors is False

    def test_from_settings_backend_override(self) -> None:
        backend = RecordingBackend()
        compiler = RuntimeCompiler.from_settings(CompilerSettings(backend="missing"), backend=backend)
        assert compiler.backend is backend

    def test_broken_store_does_not_fail_compile(self, caplog: pytest.LogCaptureFixture) -> None:
        class BrokenStore:
            def save(self, name: str, data: bytes) -> None:
                raise OSError("read-only file system")

        compiler = RuntimeCompiler(side_store=BrokenStore())

        module = compiler.compile("pkg.Greet_ts1000", GREET_A)

        assert module.Greet().hi() == "a"
        assert "read-only file system" in caplog.text
