"""Match walked files against known manifest names."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path, PurePosixPath

import structlog

from depinventory.scanner.models import Ecosystem, Project
from depinventory.scanner.walker import iter_files

log = structlog.get_logger("depinventory.detector")

# Manifest basenames per ecosystem.  The sets are disjoint.
MANIFEST_FILES: dict[Ecosystem, tuple[str, ...]] = {
    Ecosystem.NPM: ("package.json",),
    Ecosystem.MAVEN: ("pom.xml",),
    Ecosystem.GRADLE: ("build.gradle", "build.gradle.kts"),
    Ecosystem.COMPOSER: ("composer.json",),
}

_BY_BASENAME: dict[str, Ecosystem] = {
    name: ecosystem for ecosystem, names in MANIFEST_FILES.items() for name in names
}

OnProject = Callable[[Project], Awaitable[None]]


def match_manifest(relative_path: str) -> Ecosystem | None:
    """Return the ecosystem whose manifest basename matches, if any."""
    return _BY_BASENAME.get(PurePosixPath(relative_path).name)


def make_project(root: Path, relative_path: str, ecosystem: Ecosystem) -> Project:
    rel = PurePosixPath(relative_path)
    return Project(
        ecosystem=ecosystem,
        root_dir=root.joinpath(*rel.parent.parts),
        manifest_file=rel.name,
        relative_path=str(rel),
    )


class ProjectDetector:
    """Find every project manifest under a root directory.

    Nested projects are not de-duplicated: a manifest inside another
    project's subtree is reported as its own project.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._log = logger or log
        self.files_walked = 0

    def _on_error(self, error: OSError) -> None:
        self._log.warning(
            "detector.walk_error",
            path=error.filename,
            error=error.strerror or str(error),
        )

    def detect(self, root: str | Path) -> list[Project]:
        """Walk *root* and return every detected project."""
        base = Path(root).resolve()
        projects: list[Project] = []
        self.files_walked = 0

        for rel_path in iter_files(base, self._on_error):
            self.files_walked += 1
            ecosystem = match_manifest(rel_path)
            if ecosystem is None:
                continue
            self._log.debug("detector.found", ecosystem=ecosystem.value, path=rel_path)
            projects.append(make_project(base, rel_path, ecosystem))

        self._log.info(
            "detector.done",
            root=str(base),
            files=self.files_walked,
            projects=len(projects),
        )
        return projects

    async def detect_streaming(self, root: str | Path, on_project: OnProject) -> int:
        """Walk *root*, awaiting *on_project* for each project as it is found.

        Returns the number of projects found (not the number of files walked).
        Errors raised by *on_project* are logged and never propagated.
        """
        base = Path(root).resolve()
        found = 0
        self.files_walked = 0

        for rel_path in iter_files(base, self._on_error):
            self.files_walked += 1
            ecosystem = match_manifest(rel_path)
            if ecosystem is None:
                continue
            found += 1
            project = make_project(base, rel_path, ecosystem)
            self._log.debug("detector.found", ecosystem=ecosystem.value, path=rel_path)
            try:
                await on_project(project)
            except Exception:
                self._log.error("detector.handler_failed", path=rel_path, exc_info=True)

        self._log.info(
            "detector.done",
            root=str(base),
            files=self.files_walked,
            projects=found,
        )
        return found
