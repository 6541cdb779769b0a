"""
Core data models for livecompile.
Uses Pydantic for validation and serialization.
"""

import re
import sys
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

from .naming import split_qualified_name
from .naming import strip_timestamp

# Warning category that a failed strict compile may be retried for.
LINT_RECOVERABLE_CATEGORY = "SyntaxWarning"

DiagnosticKind = Literal["error", "mandatory_warning", "warning", "note", "other"]

_TARGET_VERSION = re.compile(r"^3\.\d+$")


def current_version() -> str:
    """Running interpreter's ``major.minor``."""
    return f"{sys.version_info[0]}.{sys.version_info[1]}"


class Diagnostic(BaseModel):
    """One message reported by a compilation backend."""

    model_config = ConfigDict(frozen=True)

    kind: DiagnosticKind = Field(..., description="Severity of the diagnostic")
    message: str = Field(..., description="Human-readable message")
    category: str | None = Field(
        default=None,
        description="Structured category (e.g., 'SyntaxError', 'SyntaxWarning', 'ImportWarning')",
    )
    source: str | None = Field(default=None, description="URI of the file concerned")
    line: int | None = Field(default=None, description="1-based line number")
    column: int | None = Field(default=None, description="1-based column number")

    @property
    def is_error(self) -> bool:
        return self.kind == "error"

    def __str__(self) -> str:
        location = self.source or "<unknown>"
        if self.line is not None:
            location += f":{self.line}"
            if self.column is not None:
                location += f":{self.column}"
        category = f" [{self.category}]" if self.category else ""
        return f"{location}: {self.kind}{category}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return self.model_dump(mode="json", exclude_none=True)


class CompileOptions(BaseModel):
    """Option set handed to the backend for one compile invocation.

    The default set is strict: any compiler warning fails the unit, whatever
    its category (a ``DeprecationWarning`` as much as a ``SyntaxWarning``).
    Categories listed in ``lint`` are reported as mandatory warnings instead,
    and only those categories can be recovered by the lint retry. Set
    ``warnings_as_errors=False`` to report every warning without failing.
    """

    model_config = ConfigDict(frozen=True)

    target_version: str | None = Field(
        default=None,
        description="Oldest grammar the source must parse under, as 'major.minor' (e.g., '3.9')",
    )
    optimize: int = Field(
        default=-1, ge=-1, le=2, description="Optimization level passed to compile()"
    )
    warnings_as_errors: bool = Field(
        default=True, description="Report compiler warnings as errors"
    )
    lint: tuple[str, ...] = Field(
        default=(),
        description="Warning categories reported as warnings even when warnings_as_errors is set",
    )

    @field_validator("target_version")
    @classmethod
    def _validate_target_version(cls, value: str | None) -> str | None:
        if value is not None and not _TARGET_VERSION.match(value):
            raise ValueError(f"target_version must look like '3.N', got {value!r}")
        return value

    @property
    def feature_version(self) -> tuple[int, int] | None:
        """``target_version`` in the form ``ast.parse`` expects."""
        if self.target_version is None:
            return None
        major, minor = self.target_version.split(".")
        return int(major), int(minor)

    def with_target(self, version: str) -> "CompileOptions":
        return self.model_validate({**self.model_dump(), "target_version": version})

    def with_lint(self, *categories: str) -> "CompileOptions":
        merged = tuple(dict.fromkeys(self.lint + categories))
        return self.model_copy(update={"lint": merged})

    def to_args(self) -> list[str]:
        """Command-line style rendering, used in log records."""
        args: list[str] = []
        if self.target_version:
            args += ["--target", self.target_version]
        if self.optimize != -1:
            args.append(f"-O{self.optimize}")
        if self.warnings_as_errors:
            args.append("-Werror")
        args += [f"-Xlint:{category}" for category in self.lint]
        return args


class CompilationUnit(BaseModel):
    """A source unit submitted for compilation."""

    logical_name: str = Field(..., description="Versioned name (e.g., 'pkg.Greet_ts1000')")
    canonical_name: str = Field(..., description="Name without generation marker")
    source_text: str = Field(..., description="Generated Python source")

    @classmethod
    def create(cls, logical_name: str, source_text: str) -> "CompilationUnit":
        return cls(
            logical_name=logical_name,
            canonical_name=strip_timestamp(logical_name),
            source_text=source_text,
        )

    @property
    def package(self) -> str:
        return split_qualified_name(self.logical_name)[0]

    @property
    def simple_name(self) -> str:
        return split_qualified_name(self.logical_name)[1]
