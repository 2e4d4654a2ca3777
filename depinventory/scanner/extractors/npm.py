"""NPM extractor — package-lock.json first, package.json as the fallback.

Lockfiles come in two shapes:
  - nested (lockfileVersion 1): ``dependencies`` maps name -> info, where
    info may carry its own nested ``dependencies``
  - flat (lockfileVersion 2/3): ``packages`` maps install path -> info,
    e.g. ``node_modules/@scope/pkg``; the ``""`` key is the root project
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from depinventory.exceptions import ManifestParseError
from depinventory.scanner.chain import (
    ExtractionContext,
    Preparation,
    Strategy,
    StrategyChain,
)
from depinventory.scanner.extractors.base import (
    Extractor,
    manifest_guard,
    read_json,
    vendored_guard,
)
from depinventory.scanner.models import (
    Dependency,
    Ecosystem,
    ExtractionOutcome,
    Project,
    Success,
)
from depinventory.scanner.registry import register_extractor

MANIFEST = "package.json"
# npm-shrinkwrap.json takes precedence over package-lock.json when both exist
LOCKFILES = ("npm-shrinkwrap.json", "package-lock.json")
VENDORED_DIR = "node_modules"

INSTALL_CMD = ["npm", "install", "--package-lock-only", "--ignore-scripts", "--no-audit", "--no-fund"]

_MANIFEST_SECTIONS = (("dependencies", False), ("devDependencies", True))
_NM_PREFIX = "node_modules/"


def _name_from_key(key: str) -> str:
    """``a/node_modules/@s/b`` -> ``@s/b``; ``node_modules/x`` -> ``x``."""
    marker = "/" + _NM_PREFIX
    if marker in key:
        return key[key.rindex(marker) + len(marker) :]
    if key.startswith(_NM_PREFIX):
        return key[len(_NM_PREFIX) :]
    return key


class NpmExtractor(Extractor):
    ecosystem = Ecosystem.NPM

    def build_chain(self) -> StrategyChain:
        return StrategyChain(
            self.ecosystem,
            guards=[vendored_guard(VENDORED_DIR), manifest_guard(MANIFEST)],
            preparations=[Preparation("npm-install", self._materialize_lockfile)],
            strategies=[
                Strategy("package-lock", self._from_lockfile),
                Strategy("package-json", self._from_manifest),
            ],
        )

    # ── helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def find_lockfile(project: Project) -> Path | None:
        for name in LOCKFILES:
            path = project.root_dir / name
            if path.is_file():
                return path
        return None

    # ── preparation ──────────────────────────────────────────────────────

    async def _materialize_lockfile(self, project: Project, ctx: ExtractionContext) -> None:
        """Generate package-lock.json when the project has none."""
        if self.find_lockfile(project) is not None:
            return
        ctx.log.info("npm.install", cmd=INSTALL_CMD)
        await ctx.run(INSTALL_CMD, cwd=project.root_dir, timeout=ctx.config.install_timeout)

    # ── strategies ───────────────────────────────────────────────────────

    async def _from_lockfile(self, project: Project, ctx: ExtractionContext) -> ExtractionOutcome:
        lockfile = self.find_lockfile(project)
        if lockfile is None:
            ctx.log.info("npm.no_lockfile")
            return Success([])

        data = read_json(lockfile)
        if not isinstance(data, dict):
            raise ManifestParseError(str(lockfile), "top level is not an object")

        deps = self.parse_lockfile(project, data)
        ctx.log.info("npm.lockfile_parsed", lockfile=lockfile.name, dependencies=len(deps))
        return Success(deps)

    async def _from_manifest(self, project: Project, ctx: ExtractionContext) -> ExtractionOutcome:
        path = project.root_dir / MANIFEST
        data = read_json(path)
        if not isinstance(data, dict):
            raise ManifestParseError(str(path), "top level is not an object")

        deps = self.parse_manifest(project, data)
        ctx.log.info("npm.manifest_parsed", dependencies=len(deps))
        return Success(deps)

    # ── parsing ──────────────────────────────────────────────────────────

    def parse_lockfile(self, project: Project, data: dict[str, Any]) -> list[Dependency]:
        """Read either lockfile shape; the flat ``packages`` map wins when present."""
        packages = data.get("packages")
        if isinstance(packages, dict) and packages:
            return self._parse_flat(project, packages)
        nested = data.get("dependencies")
        if isinstance(nested, dict):
            deps: list[Dependency] = []
            self._parse_nested(project, nested, deps)
            return deps
        return []

    def _parse_flat(self, project: Project, packages: dict[str, Any]) -> list[Dependency]:
        deps: list[Dependency] = []
        for key, info in packages.items():
            if key == "" or not isinstance(info, dict):
                continue
            # Workspace symlinks; the link target has its own entry
            if info.get("link"):
                continue
            name = info.get("name") or _name_from_key(key)
            deps.append(self.dependency(project, name, info.get("version"), bool(info.get("dev"))))
        return deps

    def _parse_nested(
        self, project: Project, entries: dict[str, Any], out: list[Dependency]
    ) -> None:
        for name, info in entries.items():
            if not isinstance(info, dict):
                continue
            out.append(self.dependency(project, name, info.get("version"), bool(info.get("dev"))))
            children = info.get("dependencies")
            if isinstance(children, dict):
                self._parse_nested(project, children, out)

    def parse_manifest(self, project: Project, data: dict[str, Any]) -> list[Dependency]:
        """Declared ranges from ``dependencies`` and ``devDependencies``, verbatim."""
        deps: list[Dependency] = []
        for section, is_dev in _MANIFEST_SECTIONS:
            entries = data.get(section)
            if not isinstance(entries, dict):
                continue
            for name, spec in entries.items():
                if isinstance(spec, str):
                    version: str | None = spec
                elif isinstance(spec, dict):
                    if spec.get("missing") is True:
                        continue
                    version = spec.get("version") or spec.get("required")
                else:
                    continue
                deps.append(self.dependency(project, name, version, is_dev))
        return deps


register_extractor(NpmExtractor())
