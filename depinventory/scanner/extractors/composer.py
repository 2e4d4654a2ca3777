"""Composer: ``composer show``, then composer.lock, then composer.json."""

from __future__ import annotations

import json
from typing import Any

from depinventory.exceptions import ManifestParseError
from depinventory.scanner.chain import ExtractionContext, Preparation, Strategy, StrategyChain
from depinventory.scanner.extractors.base import (
    Extractor,
    manifest_guard,
    read_json,
    vendored_guard,
)
from depinventory.scanner.models import Dependency, Ecosystem, ExtractionOutcome, Project, Success
from depinventory.scanner.registry import register_extractor

MANIFEST = "composer.json"
LOCKFILE = "composer.lock"
VENDORED_DIR = "vendor"

INSTALL_CMD = ["composer", "install", "--no-interaction", "--no-progress", "--ignore-platform-reqs"]
SHOW_CMD = ["composer", "show", "--format=json"]

# Platform requirement, not a package
_PLATFORM_PACKAGE = "php"


class ComposerExtractor(Extractor):
    ecosystem = Ecosystem.COMPOSER

    def build_chain(self) -> StrategyChain:
        return StrategyChain(
            self.ecosystem,
            guards=[vendored_guard(VENDORED_DIR), manifest_guard(MANIFEST)],
            preparations=[Preparation("composer-install", self._install)],
            strategies=[
                Strategy("composer-show", self._from_show),
                Strategy("composer-lock", self._from_lockfile),
                Strategy("composer-json", self._from_manifest),
            ],
        )

    # ── preparation ──────────────────────────────────────────────────────

    async def _install(self, project: Project, ctx: ExtractionContext) -> None:
        ctx.log.info("composer.install", cmd=INSTALL_CMD)
        await ctx.run(INSTALL_CMD, cwd=project.root_dir, timeout=ctx.config.install_timeout)

    # ── strategies ───────────────────────────────────────────────────────

    async def _from_show(self, project: Project, ctx: ExtractionContext) -> ExtractionOutcome:
        result = await ctx.run(SHOW_CMD, cwd=project.root_dir)
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ManifestParseError("composer show", f"invalid JSON: {e}") from e

        deps = self.parse_show(project, data)
        ctx.log.info("composer.show_parsed", dependencies=len(deps))
        return Success(deps)

    async def _from_lockfile(self, project: Project, ctx: ExtractionContext) -> ExtractionOutcome:
        path = project.root_dir / LOCKFILE
        if not path.is_file():
            ctx.log.info("composer.no_lockfile")
            return Success([])

        data = read_json(path)
        if not isinstance(data, dict):
            raise ManifestParseError(str(path), "top level is not an object")

        deps = self.parse_lockfile(project, data)
        ctx.log.info("composer.lockfile_parsed", dependencies=len(deps))
        return Success(deps)

    async def _from_manifest(self, project: Project, ctx: ExtractionContext) -> ExtractionOutcome:
        path = project.root_dir / MANIFEST
        data = read_json(path)
        if not isinstance(data, dict):
            raise ManifestParseError(str(path), "top level is not an object")

        deps = self.parse_manifest(project, data)
        ctx.log.info("composer.manifest_parsed", dependencies=len(deps))
        return Success(deps)

    # ── parsing ──────────────────────────────────────────────────────────

    def parse_show(self, project: Project, data: Any) -> list[Dependency]:
        """``{"installed": [{"name": ..., "version": ...}, ...]}``"""
        if not isinstance(data, dict):
            return []
        installed = data.get("installed")
        if not isinstance(installed, list):
            return []

        deps: list[Dependency] = []
        for pkg in installed:
            if isinstance(pkg, dict) and pkg.get("name"):
                deps.append(self.dependency(project, pkg["name"], pkg.get("version")))
        return deps

    def parse_lockfile(self, project: Project, data: dict[str, Any]) -> list[Dependency]:
        deps: list[Dependency] = []
        for section, is_dev in (("packages", False), ("packages-dev", True)):
            packages = data.get(section)
            if not isinstance(packages, list):
                continue
            for pkg in packages:
                if isinstance(pkg, dict) and pkg.get("name"):
                    deps.append(self.dependency(project, pkg["name"], pkg.get("version"), is_dev))
        return deps

    def parse_manifest(self, project: Project, data: dict[str, Any]) -> list[Dependency]:
        """Declared constraints from ``require``/``require-dev``, verbatim."""
        deps: list[Dependency] = []
        for section, is_dev in (("require", False), ("require-dev", True)):
            entries = data.get(section)
            if not isinstance(entries, dict):
                continue
            for name, constraint in entries.items():
                if name == _PLATFORM_PACKAGE:
                    continue
                version = constraint if isinstance(constraint, str) else None
                deps.append(self.dependency(project, name, version, is_dev))
        return deps


register_extractor(ComposerExtractor())
