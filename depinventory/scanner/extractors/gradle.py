"""Gradle extractor — ``gradle dependencies`` transcript, then a build-file scan.

Transcript lines look like::

    testCompileClasspath - Compile classpath for source set 'test'.
    +--- org.springframework:spring-core:5.3.21
    |    \\--- org.springframework:spring-jcl:5.3.21 (*)
    \\--- com.google.guava:guava:30.0-jre -> 31.1-jre

The configuration header decides the dev flag for the tree below it.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from depinventory.exceptions import ManifestParseError
from depinventory.scanner.chain import ExtractionContext, Preparation, Strategy, StrategyChain
from depinventory.scanner.extractors.base import Extractor, manifest_guard
from depinventory.scanner.models import Dependency, Ecosystem, ExtractionOutcome, Project, Success
from depinventory.scanner.registry import register_extractor

MANIFESTS = ("build.gradle", "build.gradle.kts")

BUILD_ARGS = ["build", "-x", "test", "--console=plain"]
DEPENDENCIES_ARGS = ["dependencies", "--console=plain"]

# "compileClasspath - Compile classpath for source set 'main'."
_CONFIG_HEADER_RE = re.compile(r"^([A-Za-z][\w-]*)\s+-\s+\S")

# "+--- group:artifact:version ..." (any nesting depth)
_TREE_RE = re.compile(r"[+\\]---\s+([^:\s]+):([^:\s]+):(\S.*)$")

# "+--- group:artifact -> 1.2" (version supplied by a platform / BOM)
_TREE_MANAGED_RE = re.compile(r"[+\\]---\s+([^:\s]+):([^:\s]+)\s+->\s+(\S+)")

_ANNOTATION_RE = re.compile(r"\s*\([^)]*\)")

# implementation 'g:a:v' / testImplementation("g:a:v")
_DECL_RE = re.compile(
    r"(?<![\w.])"
    r"(implementation|api|compile|compileOnly|runtimeOnly|"
    r"testImplementation|testCompile|testCompileOnly|testRuntimeOnly)"
    r"\s*\(?\s*"
    r"""(["'])([^:"'\s]+):([^:"'\s]+):([^"'\s]+)\2"""
)


def _is_test_config(name: str | None) -> bool:
    return name is not None and name.lower().startswith("test")


def clean_version(raw: str) -> str:
    """Drop ``(*)``/``(c)``/``(n)`` annotations and ``*`` markers; keep the
    right-hand side of a ``requested -> selected`` conflict resolution."""
    version = _ANNOTATION_RE.sub("", raw)
    version = version.replace("*", "").strip()
    if "->" in version:
        version = version.rsplit("->", 1)[-1].strip()
    return version


class GradleExtractor(Extractor):
    ecosystem = Ecosystem.GRADLE

    def build_chain(self) -> StrategyChain:
        return StrategyChain(
            self.ecosystem,
            guards=[manifest_guard(*MANIFESTS)],
            preparations=[Preparation("gradle-build", self._build)],
            strategies=[
                Strategy("gradle-dependencies", self._from_transcript),
                Strategy("build-file", self._from_build_file),
            ],
        )

    # ── helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def gradle_command(project: Project, ctx: ExtractionContext) -> str:
        """Prefer the project's own wrapper script when it is executable."""
        if ctx.config.prefer_gradle_wrapper:
            wrapper = project.root_dir / ("gradlew.bat" if os.name == "nt" else "gradlew")
            if wrapper.is_file() and os.access(wrapper, os.X_OK):
                return str(wrapper)
        return "gradle"

    @staticmethod
    def build_file(project: Project) -> Path:
        if project.manifest_file in MANIFESTS and project.manifest_path.is_file():
            return project.manifest_path
        for name in MANIFESTS:
            candidate = project.root_dir / name
            if candidate.is_file():
                return candidate
        return project.manifest_path

    # ── preparation ──────────────────────────────────────────────────────

    async def _build(self, project: Project, ctx: ExtractionContext) -> None:
        cmd = [self.gradle_command(project, ctx), *BUILD_ARGS]
        ctx.log.info("gradle.build", cmd=cmd)
        await ctx.run(cmd, cwd=project.root_dir, timeout=ctx.config.install_timeout)

    # ── strategies ───────────────────────────────────────────────────────

    async def _from_transcript(
        self, project: Project, ctx: ExtractionContext
    ) -> ExtractionOutcome:
        cmd = [self.gradle_command(project, ctx), *DEPENDENCIES_ARGS]
        result = await ctx.run(cmd, cwd=project.root_dir)
        deps = self.parse_transcript(project, result.stdout)
        ctx.log.info("gradle.transcript_parsed", dependencies=len(deps))
        return Success(deps)

    async def _from_build_file(
        self, project: Project, ctx: ExtractionContext
    ) -> ExtractionOutcome:
        path = self.build_file(project)
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise ManifestParseError(str(path), str(e)) from e
        deps = self.parse_build_file(project, content)
        ctx.log.info("gradle.build_file_parsed", file=path.name, dependencies=len(deps))
        return Success(deps)

    # ── parsing ──────────────────────────────────────────────────────────

    def parse_transcript(self, project: Project, output: str) -> list[Dependency]:
        seen: set[tuple[str, str, bool]] = set()
        deps: list[Dependency] = []
        configuration: str | None = None

        for line in output.splitlines():
            header = _CONFIG_HEADER_RE.match(line)
            if header:
                configuration = header.group(1)
                continue

            m = _TREE_RE.search(line) or _TREE_MANAGED_RE.search(line)
            if not m:
                continue

            name = f"{m.group(1)}:{m.group(2)}"
            version = clean_version(m.group(3))
            is_dev = _is_test_config(configuration)

            key = (name, version, is_dev)
            if key in seen:
                continue
            seen.add(key)
            deps.append(self.dependency(project, name, version or None, is_dev))

        return deps

    def parse_build_file(self, project: Project, content: str) -> list[Dependency]:
        seen: set[tuple[str, str, bool]] = set()
        deps: list[Dependency] = []

        for m in _DECL_RE.finditer(content):
            configuration, _, group, artifact, version = m.groups()
            name = f"{group}:{artifact}"
            is_dev = _is_test_config(configuration)

            key = (name, version, is_dev)
            if key in seen:
                continue
            seen.add(key)
            deps.append(self.dependency(project, name, version, is_dev))

        return deps


register_extractor(GradleExtractor())
