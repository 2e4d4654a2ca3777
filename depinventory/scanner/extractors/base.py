"""Abstract base class and shared helpers for ecosystem extractors."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from depinventory.exceptions import ExtractionTimeoutError, ManifestParseError
from depinventory.scanner.chain import ChainResult, ExtractionContext, Guard, StrategyChain
from depinventory.scanner.models import (
    Dependency,
    Ecosystem,
    EmptyNoManifest,
    ExtractionOutcome,
    Project,
    Skipped,
)


# Seconds a chain may keep running file-based strategies after its budget
DEADLINE_GRACE = 10.0


def read_json(path: Path) -> Any:
    """Load a JSON document, raising ManifestParseError on any problem."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestParseError(str(path), str(e)) from e
    except json.JSONDecodeError as e:
        raise ManifestParseError(str(path), f"invalid JSON: {e}") from e


def in_vendored_dir(project: Project, segment: str) -> bool:
    """True when the project's directory sits under a *segment* directory."""
    return segment in project.relative_dir.parts


def vendored_guard(segment: str) -> Guard:
    """Guard that skips projects living inside a vendored copy."""

    def check(project: Project, ctx: ExtractionContext) -> ExtractionOutcome | None:
        if in_vendored_dir(project, segment):
            return Skipped(f"inside vendored '{segment}' directory")
        return None

    return Guard(name=f"not-in-{segment}", check=check)


def manifest_guard(*names: str) -> Guard:
    """Guard that ends the chain when none of *names* exists in the project dir."""

    def check(project: Project, ctx: ExtractionContext) -> ExtractionOutcome | None:
        if any((project.root_dir / name).is_file() for name in names):
            return None
        return EmptyNoManifest(names[0])

    return Guard(name="manifest-exists", check=check)


class Extractor(ABC):
    """One ecosystem's dependency extractor.

    Subclasses declare their fallback order in :meth:`build_chain`; this
    class runs the chain and shapes the results.
    """

    ecosystem: Ecosystem

    def __init__(self) -> None:
        self.chain = self.build_chain()

    @abstractmethod
    def build_chain(self) -> StrategyChain:
        """Return the ordered guards, preparations and strategies."""
        ...

    def dependency(
        self,
        project: Project,
        name: str,
        version: str | None,
        is_dev: bool = False,
    ) -> Dependency:
        return Dependency(
            ecosystem=self.ecosystem,
            project_path=project.relative_path,
            name=name,
            version=version,
            is_dev=is_dev,
        )

    async def run_chain(
        self, project: Project, ctx: ExtractionContext | None = None
    ) -> ChainResult:
        return await self.chain.run(project, ctx or ExtractionContext())

    async def extract(
        self, project: Project, ctx: ExtractionContext | None = None
    ) -> list[Dependency]:
        """Return the project's dependencies; never raises for extraction problems."""
        return (await self.run_chain(project, ctx)).dependencies

    async def extract_with_timeout(
        self,
        project: Project,
        ctx: ExtractionContext | None = None,
        timeout: float | None = None,
        *,
        grace: float = DEADLINE_GRACE,
    ) -> ChainResult:
        """Like :meth:`run_chain`, with a *timeout* second budget for external tools.

        Commands still running when the budget elapses are killed and count
        as failed strategies, so manifest and lockfile fallbacks still run.
        The chain as a whole gets *grace* extra seconds for that; past it,
        ExtractionTimeoutError is raised.
        """
        if not timeout:
            return await self.run_chain(project, ctx)
        bounded = (ctx or ExtractionContext()).with_budget(timeout)
        try:
            return await asyncio.wait_for(
                self.run_chain(project, bounded), timeout=timeout + grace
            )
        except asyncio.TimeoutError:
            raise ExtractionTimeoutError(project.relative_path, timeout) from None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} ecosystem={self.ecosystem.value!r}>"
