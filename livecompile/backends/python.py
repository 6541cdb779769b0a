"""CPython compilation backend built on ``ast.parse`` and ``compile``."""

from __future__ import annotations

import ast
import importlib.util
import logging
import threading
import warnings
from collections.abc import Sequence

from ..bytecode import dump_code
from ..diagnostics import DiagnosticListener
from ..errors import ResourceNotFoundError
from ..files import FileKind
from ..files import Location
from ..files import VirtualFile
from ..models import CompileOptions
from ..models import Diagnostic
from ..naming import ARTIFACT_EXTENSION
from ..naming import split_qualified_name
from ..naming import strip_timestamp
from .protocol import FileManager

logger = logging.getLogger(__name__)

# warnings.catch_warnings swaps process-wide state
_WARNINGS_LOCK = threading.Lock()


class PythonBackend:
    """Compiles Python source into ``.pyc``-format artifacts.

    - ``target_version`` restricts the accepted grammar (``ast.parse(feature_version=...)``)
    - compiler warnings are errors unless their category is listed in ``lint``
      or ``warnings_as_errors`` is off
    - absolute imports nothing can resolve are reported as notes
    - one artifact per source, emitted through the file manager
    """

    name = "python"

    def compile_unit(
        self,
        file_manager: FileManager,
        diagnostics: DiagnosticListener,
        options: CompileOptions,
        sources: Sequence[VirtualFile],
    ) -> bool:
        success = True
        for source in sources:
            if not self._compile_source(file_manager, diagnostics, options, source):
                success = False
        return success

    def _compile_source(
        self,
        file_manager: FileManager,
        diagnostics: DiagnosticListener,
        options: CompileOptions,
        source: VirtualFile,
    ) -> bool:
        text = source.get_char_content()
        filename = source.uri
        tree: ast.Module | None = None
        code = None

        with _WARNINGS_LOCK, warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                tree = ast.parse(text, filename=filename, feature_version=options.feature_version)
                code = compile(
                    tree, filename, "exec", dont_inherit=True, optimize=options.optimize
                )
            except SyntaxError as e:
                diagnostics.report(
                    Diagnostic(
                        kind="error",
                        category=type(e).__name__,
                        message=e.msg,
                        source=filename,
                        line=e.lineno,
                        column=e.offset,
                    )
                )
            except ValueError as e:
                diagnostics.report(
                    Diagnostic(kind="error", category=type(e).__name__, message=str(e), source=filename)
                )

        failed = code is None
        seen: set[tuple[str, int | None, str]] = set()
        for record in caught:
            category = record.category.__name__
            key = (category, record.lineno, str(record.message))
            if key in seen:
                continue
            seen.add(key)
            if category in options.lint:
                kind = "mandatory_warning"
            elif options.warnings_as_errors:
                kind = "error"
                failed = True
            else:
                kind = "warning"
            diagnostics.report(
                Diagnostic(
                    kind=kind,
                    category=category,
                    message=str(record.message),
                    source=filename,
                    line=record.lineno,
                )
            )

        if failed or tree is None or code is None:
            return False

        self._check_imports(file_manager, diagnostics, tree, filename)

        data = dump_code(code, len(text.encode("utf-8")))
        with file_manager.open_for_write(
            Location.CLASS_OUTPUT, source.binary_name, FileKind.ARTIFACT, source
        ) as output:
            output.write(data)
        logger.debug(f"Emitted artifact for '{source.binary_name}' ({len(data)} bytes)")
        return True

    def _check_imports(
        self,
        file_manager: FileManager,
        diagnostics: DiagnosticListener,
        tree: ast.Module,
        filename: str,
    ) -> None:
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                names = [alias.name for alias in node.names]
            elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                names = [node.module]
            else:
                continue
            for name in names:
                if not self._is_resolvable(file_manager, name):
                    diagnostics.report(
                        Diagnostic(
                            kind="note",
                            category="ImportWarning",
                            message=f"unresolved import '{name}'",
                            source=filename,
                            line=node.lineno,
                        )
                    )

    def _is_resolvable(self, file_manager: FileManager, name: str) -> bool:
        package, simple_name = split_qualified_name(name)
        canonical = strip_timestamp(name)
        kinds = {FileKind.ARTIFACT, FileKind.SOURCE}

        for candidate in file_manager.list_candidates(Location.CLASS_PATH, package, kinds):
            binary_name = file_manager.infer_binary_name(Location.CLASS_PATH, candidate)
            if strip_timestamp(binary_name) == canonical:
                return True

        # a package that only exists as the prefix of compiled units
        for _ in file_manager.list_candidates(Location.CLASS_PATH, name, kinds, recurse=True):
            return True

        try:
            file_manager.resolve_for_read(
                Location.CLASS_PATH, package, simple_name + ARTIFACT_EXTENSION
            )
            return True
        except ResourceNotFoundError:
            pass

        try:
            return importlib.util.find_spec(name.partition(".")[0]) is not None
        except (ImportError, ValueError):
            return False
