"""
Artifact registry and per-unit loading contexts.

Each compiled unit gets its own LoadingContext holding exactly one artifact
and one private module namespace. Regenerating a unit publishes a brand-new
context under the same canonical name; the old one is never touched, so
modules handed out earlier keep working and become collectable once their
last user drops them. Nothing here is inserted into ``sys.modules``.

Lookup order for names and resources:
1. this context (a unit resolving itself)
2. the registry, exact versioned name first, then canonical name
3. the shared default context (regular imports / resource path)
"""

from __future__ import annotations

import builtins
import importlib
import logging
import threading
import types
from typing import TYPE_CHECKING
from typing import Any
from typing import BinaryIO

from .bytecode import load_code
from .errors import ArtifactLoadError
from .errors import ResourceNotFoundError
from .files import VirtualFile
from .naming import resource_name_to_binary_name
from .naming import split_qualified_name
from .naming import strip_timestamp
from .resources import ResourcePath

if TYPE_CHECKING:
    from .store import ArtifactStoreProtocol

logger = logging.getLogger(__name__)

# Shared by every context: a thread loading unit A that imports B, while
# another thread loads B importing A, must not take two locks in opposite order.
_MATERIALIZE_LOCK = threading.RLock()


class SharedContext:
    """Default resolution shared by every loading context.

    Resolves whatever a unit references but did not define: regular Python
    imports and resources on the resource path.
    """

    def __init__(self, resource_path: ResourcePath | None = None) -> None:
        self.resource_path = resource_path or ResourcePath()

    def import_(
        self,
        name: str,
        globals: dict[str, Any] | None = None,
        locals: dict[str, Any] | None = None,
        fromlist: tuple[str, ...] = (),
        level: int = 0,
    ) -> Any:
        return builtins.__import__(name, globals, locals, fromlist, level)

    def load_module(self, name: str) -> types.ModuleType:
        return importlib.import_module(name)

    def get_resource(self, name: str) -> BinaryIO:
        """Open a resource from the resource path.

        Raises:
            ResourceNotFoundError: No location holds the resource.
        """
        file = self.resource_path.find(name)
        if file is None:
            raise ResourceNotFoundError(f"Resource not found: {name}", resource=name)
        return file.open_input()


class ArtifactRegistry:
    """Canonical name -> active LoadingContext.

    The map itself is never exposed; every operation takes the lock, so a
    reader sees either the old or the new context for a name, never a mix.
    """

    def __init__(self) -> None:
        self._contexts: dict[str, LoadingContext] = {}
        self._lock = threading.RLock()

    def replace(self, context: LoadingContext) -> LoadingContext | None:
        """Publish ``context`` as the active one for its canonical name.

        Returns:
            The context that was active before, if any.
        """
        with self._lock:
            previous = self._contexts.get(context.canonical_name)
            self._contexts[context.canonical_name] = context
        if previous is not None:
            logger.debug(
                f"[registry:replace] {context.canonical_name}: "
                f"{previous.qualified_name} -> {context.qualified_name}"
            )
        else:
            logger.debug(f"[registry:add] {context.canonical_name}: {context.qualified_name}")
        return previous

    def lookup(self, canonical_name: str) -> LoadingContext | None:
        with self._lock:
            return self._contexts.get(canonical_name)

    def find(self, name: str) -> LoadingContext | None:
        """Look up by exact name first, then by its canonical name."""
        with self._lock:
            context = self._contexts.get(name)
            if context is None:
                context = self._contexts.get(strip_timestamp(name))
            return context

    def contexts(self) -> list[LoadingContext]:
        """Snapshot of the active contexts."""
        with self._lock:
            return list(self._contexts.values())

    def clear(self) -> None:
        with self._lock:
            self._contexts.clear()

    def __contains__(self, canonical_name: str) -> bool:
        with self._lock:
            return canonical_name in self._contexts

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)


def open_resource(registry: ArtifactRegistry, shared: SharedContext, name: str) -> BinaryIO:
    """Open a resource, serving compiled artifacts from the registry first.

    ``pkg/Greet_ts1000.pyc`` is matched against the registry by its exact
    versioned name, then by canonical name, before the resource path is
    consulted.
    """
    binary_name = resource_name_to_binary_name(name)
    if binary_name is not None:
        context = registry.find(binary_name)
        if context is not None:
            return context.artifact.open_input()
    return shared.get_resource(name)


def _nest(name: str, module: types.ModuleType) -> Any:
    # `import a.b.Unit` binds `a`; build just enough namespace for a.b.Unit
    parts = name.split(".")
    if len(parts) == 1:
        return module
    root = types.SimpleNamespace()
    node = root
    for part in parts[1:-1]:
        child = types.SimpleNamespace()
        setattr(node, part, child)
        node = child
    setattr(node, parts[-1], module)
    return root


class LoadingContext:
    """Isolation boundary for one compiled unit."""

    def __init__(
        self,
        qualified_name: str,
        registry: ArtifactRegistry,
        shared: SharedContext,
        side_store: ArtifactStoreProtocol | None = None,
    ) -> None:
        self.qualified_name = qualified_name
        self.canonical_name = strip_timestamp(qualified_name)
        self.artifact = VirtualFile.artifact(qualified_name)
        self._registry = registry
        self._shared = shared
        self._side_store = side_store
        self._module: types.ModuleType | None = None
        self._ready = False

    @property
    def is_loaded(self) -> bool:
        return self._ready

    def load(self) -> types.ModuleType:
        """Materialize the unit's module, once.

        Raises:
            ArtifactStateError: The backend has not finished writing the artifact.
            ArtifactLoadError: The bytes are unusable or the module body raised.
        """
        if self._ready:
            return self._module
        with _MATERIALIZE_LOCK:
            # set while this thread is running the body: a cyclic import gets the partial module
            if self._module is not None:
                return self._module

            data = self.artifact.get_bytes()
            self._save(data)
            code = load_code(data, self.qualified_name)

            module = self._new_module()
            self._module = module
            try:
                exec(code, module.__dict__)
            except Exception as e:
                self._module = None
                raise ArtifactLoadError(
                    f"Failed to initialize {self.qualified_name}: {type(e).__name__}: {e}",
                    unit=self.qualified_name,
                ) from e

            self._ready = True
            logger.debug(f"[context:load] {self.qualified_name}")
            return module

    def load_unit(self, name: str) -> types.ModuleType:
        """Resolve another unit (or regular module) the way imports in this unit do."""
        context = self._resolve(name)
        if context is not None:
            return context.load()
        return self._shared.load_module(name)

    def get_resource(self, name: str) -> BinaryIO:
        return open_resource(self._registry, self._shared, name)

    def _resolve(self, name: str) -> LoadingContext | None:
        if name == self.qualified_name or name == self.canonical_name:
            return self
        return self._registry.find(name)

    def _new_module(self) -> types.ModuleType:
        module = types.ModuleType(self.qualified_name)
        module.__file__ = self.artifact.uri
        module.__loader__ = self
        module.__package__ = split_qualified_name(self.qualified_name)[0]
        scope = dict(builtins.__dict__)
        scope["__import__"] = self._import
        module.__dict__["__builtins__"] = scope
        return module

    def _import(
        self,
        name: str,
        globals: dict[str, Any] | None = None,
        locals: dict[str, Any] | None = None,
        fromlist: tuple[str, ...] | None = (),
        level: int = 0,
    ) -> Any:
        if level == 0:
            context = self._resolve(name)
            if context is not None:
                module = context.load()
                return module if fromlist else _nest(name, module)

            # `from pkg import Unit` where pkg only exists as a unit prefix
            wanted = [item for item in fromlist or () if item != "*"]
            if wanted:
                members = {}
                for item in wanted:
                    member = self._resolve(f"{name}.{item}")
                    if member is None:
                        break
                    members[item] = member.load()
                else:
                    return types.SimpleNamespace(**members)

        return self._shared.import_(name, globals, locals, fromlist or (), level)

    def _save(self, data: bytes) -> None:
        if self._side_store is None:
            return
        try:
            self._side_store.save(self.canonical_name, data)
        except Exception as e:
            logger.warning(f"Could not save artifact '{self.canonical_name}': {e}")

    def __repr__(self) -> str:
        state = "loaded" if self.is_loaded else "pending"
        return f"LoadingContext({self.qualified_name!r}, {state})"
