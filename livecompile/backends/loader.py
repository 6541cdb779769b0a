"""
Backend discovery.

Resolution order for a backend spec:
1. Built-in names ("python")
2. Python entry points in the ``livecompile.backends`` group
3. ``module:attribute`` import paths

The resolved object may be a backend instance, a class, or a zero-argument
factory.
"""

import importlib
import importlib.metadata
import logging
from typing import Any

from ..errors import BackendUnavailableError
from .protocol import CompilerBackend
from .python import PythonBackend

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "livecompile.backends"

BUILTIN_BACKENDS: dict[str, type] = {
    "python": PythonBackend,
}


def available_backends() -> list[str]:
    """Names of built-in and entry-point backends."""
    names = list(BUILTIN_BACKENDS)
    try:
        names.extend(ep.name for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP))
    except Exception as e:
        logger.warning(f"Could not discover backend entry points: {e}")
    return names


def load_backend(spec: str | None) -> CompilerBackend:
    """
    Resolve a backend spec to a backend instance.

    Raises:
        BackendUnavailableError: Nothing configured, or the spec can't be loaded.
    """
    if not spec:
        raise BackendUnavailableError(
            "No compilation backend configured. Set 'backend' in the compiler "
            "settings, e.g. backend: python"
        )

    if spec in BUILTIN_BACKENDS:
        return BUILTIN_BACKENDS[spec]()

    target = _load_entry_point(spec)
    if target is None:
        target = _load_import_path(spec)
    if target is None:
        raise BackendUnavailableError(
            f"Can not find compilation backend '{spec}'. Available: {available_backends()}. "
            "Use a registered name or a 'module:attribute' path."
        )

    backend = _instantiate(spec, target)
    logger.info(f"[backend:load] {spec} -> {type(backend).__name__}")
    return backend


def _load_entry_point(name: str) -> Any | None:
    for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
        if ep.name == name:
            try:
                return ep.load()
            except Exception as e:
                raise BackendUnavailableError(
                    f"Backend entry point '{name}' failed to load: {e}"
                ) from e
    return None


def _load_import_path(spec: str) -> Any | None:
    if ":" not in spec:
        return None
    module_name, _, attribute = spec.partition(":")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise BackendUnavailableError(f"Backend '{spec}' failed to load: {e}") from e


def _instantiate(spec: str, target: Any) -> CompilerBackend:
    if isinstance(target, type) or (
        callable(target) and not isinstance(target, CompilerBackend)
    ):
        try:
            target = target()
        except Exception as e:
            raise BackendUnavailableError(f"Backend '{spec}' failed to initialize: {e}") from e

    if not isinstance(target, CompilerBackend):
        raise BackendUnavailableError(
            f"Backend '{spec}' does not implement compile_unit(file_manager, diagnostics, options, sources)"
        )
    return target
