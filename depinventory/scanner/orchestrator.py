"""Orchestrator — detect projects, run their strategy chains, stream to a sink.

Projects are handled as the detector finds them.  Up to
``config.concurrency`` chains run at once; the walk waits for a free slot
before handing out the next project, so memory stays bounded by the
concurrency limit rather than the size of the tree.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

import depinventory.scanner.extractors  # noqa: F401  (registers extractors)
from depinventory.config import ScanConfig
from depinventory.core.process import CommandRunner, run_command
from depinventory.exceptions import ExtractionTimeoutError, InputPathError
from depinventory.scanner.chain import ChainResult, ExtractionContext
from depinventory.scanner.detector import ProjectDetector
from depinventory.scanner.models import Project, ScanSummary, Skipped, outcome_kind
from depinventory.scanner.registry import get_extractor
from depinventory.scanner.sink import DependencySink

log = structlog.get_logger("depinventory.orchestrator")


class DependencyInventory:
    """Scan a directory tree and write every project's dependencies to *sink*."""

    def __init__(
        self,
        sink: DependencySink,
        config: ScanConfig | None = None,
        *,
        runner: CommandRunner | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.sink = sink
        self.config = config or ScanConfig()
        self._log = logger or log
        self._ctx = ExtractionContext(
            config=self.config,
            runner=runner or run_command,
            log=structlog.get_logger("depinventory.extract"),
        )
        self.summary = ScanSummary()

    async def run(self, root: str | Path) -> ScanSummary:
        """Scan *root*.  Raises InputPathError if it is not a directory."""
        base = Path(root)
        if not base.exists():
            raise InputPathError(f"input path does not exist: {base}")
        if not base.is_dir():
            raise InputPathError(f"input path is not a directory: {base}")

        self.summary = ScanSummary()
        detector = ProjectDetector(self._log)
        concurrency = max(1, self.config.concurrency)
        slots = asyncio.Semaphore(concurrency)
        pending: set[asyncio.Task] = set()

        async def on_project(project: Project) -> None:
            await slots.acquire()
            task = asyncio.create_task(self._handle(project))
            pending.add(task)

            def _done(t: asyncio.Task) -> None:
                pending.discard(t)
                slots.release()

            task.add_done_callback(_done)

        self._log.info(
            "orchestrator.started",
            root=str(base.resolve()),
            concurrency=concurrency,
            run_install=self.config.run_install,
        )
        self.sink.initialize()
        try:
            self.summary.projects_found = await detector.detect_streaming(base, on_project)
            if pending:
                await asyncio.gather(*pending)
        finally:
            for task in list(pending):
                task.cancel()
            self.summary.files_walked = detector.files_walked
            self.summary.output = self.sink.finalize()

        self._log.info(
            "orchestrator.finished",
            projects=self.summary.projects_found,
            with_dependencies=self.summary.projects_with_dependencies,
            empty=self.summary.projects_empty,
            skipped=self.summary.projects_skipped,
            failed=self.summary.projects_failed,
            dependencies=self.summary.dependencies_written,
            output=self.summary.output,
        )
        return self.summary

    async def _handle(self, project: Project) -> None:
        """Extract one project; nothing raised here reaches the caller."""
        ctx = self._ctx.bind(ecosystem=project.ecosystem.value, project=project.relative_path)
        timeout = self.config.project_timeout or None

        try:
            extractor = get_extractor(project.ecosystem)
            result = await extractor.extract_with_timeout(project, ctx, timeout=timeout)
        except ExtractionTimeoutError as e:
            ctx.log.warning("orchestrator.project_timeout", timeout=e.timeout)
            self.summary.projects_failed += 1
            return
        except Exception:
            ctx.log.error("orchestrator.project_failed", exc_info=True)
            self.summary.projects_failed += 1
            return

        self._record(project, result, ctx)

    def _record(self, project: Project, result: ChainResult, ctx: ExtractionContext) -> None:
        deps = result.dependencies
        if deps:
            try:
                written = self.sink.append(deps)
            except OSError as e:
                ctx.log.error("orchestrator.sink_failed", error=str(e))
                self.summary.projects_failed += 1
                return
            self.summary.projects_with_dependencies += 1
            self.summary.dependencies_written += written
            key = project.ecosystem.value
            self.summary.by_ecosystem[key] = self.summary.by_ecosystem.get(key, 0) + written
        elif isinstance(result.outcome, Skipped):
            self.summary.projects_skipped += 1
        elif result.failed:
            self.summary.projects_failed += 1
        else:
            self.summary.projects_empty += 1

        ctx.log.info(
            "orchestrator.project_done",
            strategy=result.strategy,
            dependencies=len(deps),
            attempts=result.attempts,
            outcome=outcome_kind(result.outcome),
        )
