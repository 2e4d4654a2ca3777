"""Data models for the dependency inventory scanner."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Union


class Ecosystem(Enum):
    """Supported project ecosystems."""

    NPM = "NPM"
    MAVEN = "MAVEN"
    GRADLE = "GRADLE"
    COMPOSER = "COMPOSER"


@dataclass(frozen=True)
class Project:
    """A project discovered from a single manifest file.

    ``relative_path`` is the manifest's path relative to the scan root,
    always using forward slashes.
    """

    ecosystem: Ecosystem
    root_dir: Path  # absolute directory containing the manifest
    manifest_file: str  # basename, e.g. "package.json"
    relative_path: str  # e.g. "services/web/package.json"

    @property
    def manifest_path(self) -> Path:
        return self.root_dir / self.manifest_file

    @property
    def relative_dir(self) -> PurePosixPath:
        return PurePosixPath(self.relative_path).parent


@dataclass(frozen=True)
class Dependency:
    """A single dependency declared or resolved for a project."""

    ecosystem: Ecosystem
    project_path: str  # manifest's repo-relative path, not the dependency's
    name: str
    version: str | None
    is_dev: bool = False

    def to_record(self) -> dict[str, str | bool]:
        """Sink record shape; absent values become empty strings."""
        return {
            "projectType": self.ecosystem.value,
            "projectPath": self.project_path or "",
            "dependencyName": self.name or "",
            "dependencyVersion": self.version or "",
            "isDev": bool(self.is_dev),
        }


# ── Extraction outcomes ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Success:
    dependencies: list[Dependency]


@dataclass(frozen=True)
class EmptyNoManifest:
    manifest: str = ""


@dataclass(frozen=True)
class Skipped:
    reason: str


@dataclass(frozen=True)
class Failure:
    cause: BaseException | str

    @property
    def message(self) -> str:
        if isinstance(self.cause, BaseException):
            return f"{type(self.cause).__name__}: {self.cause}"
        return self.cause


ExtractionOutcome = Union[Success, EmptyNoManifest, Skipped, Failure]


def outcome_kind(outcome: ExtractionOutcome) -> str:
    """Short lowercase label for an outcome, used in logs and summaries."""
    if isinstance(outcome, Success):
        return "success" if outcome.dependencies else "empty"
    if isinstance(outcome, EmptyNoManifest):
        return "no_manifest"
    if isinstance(outcome, Skipped):
        return "skipped"
    return "failure"


@dataclass
class ScanSummary:
    """Counters reported at the end of a run."""

    files_walked: int = 0
    projects_found: int = 0
    projects_with_dependencies: int = 0
    projects_empty: int = 0
    projects_skipped: int = 0
    projects_failed: int = 0
    dependencies_written: int = 0
    output: str | None = None
    by_ecosystem: dict[str, int] = field(default_factory=dict)
