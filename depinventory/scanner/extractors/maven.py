"""Maven extractor — effective POM first, the raw pom.xml as the fallback.

``mvn help:effective-pom`` writes the fully merged descriptor to a side
file in the project directory; it is removed after every attempt.  The raw
pom fallback only sees directly declared dependencies.
"""

from __future__ import annotations

import re
import uuid
import xml.etree.ElementTree as ET

from depinventory.exceptions import ManifestParseError
from depinventory.scanner.chain import ExtractionContext, Preparation, Strategy, StrategyChain
from depinventory.scanner.extractors.base import Extractor, manifest_guard
from depinventory.scanner.models import (
    Dependency,
    Ecosystem,
    ExtractionOutcome,
    Failure,
    Project,
    Success,
)
from depinventory.scanner.registry import register_extractor

MANIFEST = "pom.xml"

INSTALL_CMD = ["mvn", "-B", "install", "-DskipTests"]
EFFECTIVE_POM_CMD = ["mvn", "-B", "help:effective-pom"]

_PROP_RE = re.compile(r"\$\{([^}]+)\}")


def _local(tag: str) -> str:
    """Strip the ``{namespace}`` prefix from an element tag."""
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _child(element: ET.Element, name: str) -> ET.Element | None:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _text(element: ET.Element | None, name: str) -> str | None:
    if element is None:
        return None
    node = _child(element, name)
    if node is None or node.text is None:
        return None
    return node.text.strip() or None


def _resolve_props(value: str, props: dict[str, str]) -> str:
    """Replace ${property} placeholders; unknown ones are kept verbatim."""

    def _replace(m: re.Match) -> str:
        return props.get(m.group(1), m.group(0))

    return _PROP_RE.sub(_replace, value)


def _parse_xml(content: str, source: str) -> ET.Element:
    try:
        return ET.fromstring(content)
    except ET.ParseError as e:
        raise ManifestParseError(source, f"invalid XML: {e}") from e


class MavenExtractor(Extractor):
    ecosystem = Ecosystem.MAVEN

    def build_chain(self) -> StrategyChain:
        return StrategyChain(
            self.ecosystem,
            guards=[manifest_guard(MANIFEST)],
            preparations=[Preparation("mvn-install", self._install)],
            strategies=[
                Strategy("effective-pom", self._from_effective_pom),
                Strategy("pom-xml", self._from_pom),
            ],
        )

    # ── preparation ──────────────────────────────────────────────────────

    async def _install(self, project: Project, ctx: ExtractionContext) -> None:
        ctx.log.info("maven.install", cmd=INSTALL_CMD)
        await ctx.run(INSTALL_CMD, cwd=project.root_dir, timeout=ctx.config.install_timeout)

    # ── strategies ───────────────────────────────────────────────────────

    async def _from_effective_pom(
        self, project: Project, ctx: ExtractionContext
    ) -> ExtractionOutcome:
        output = project.root_dir / f".depinventory-effective-pom-{uuid.uuid4().hex[:8]}.xml"
        try:
            await ctx.run([*EFFECTIVE_POM_CMD, f"-Doutput={output}"], cwd=project.root_dir)
            if not output.is_file():
                return Failure("effective POM was not written")
            root = _parse_xml(output.read_text(encoding="utf-8"), str(output))
        finally:
            output.unlink(missing_ok=True)

        deps: list[Dependency] = []
        for proj_el in self._project_elements(root):
            deps.extend(self.parse_project(project, proj_el))
        ctx.log.info("maven.effective_pom_parsed", dependencies=len(deps))
        return Success(deps)

    async def _from_pom(self, project: Project, ctx: ExtractionContext) -> ExtractionOutcome:
        path = project.root_dir / MANIFEST
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestParseError(str(path), str(e)) from e

        root = _parse_xml(content, str(path))
        deps = self.parse_project(project, root, self._properties(root))
        ctx.log.info("maven.pom_parsed", dependencies=len(deps))
        return Success(deps)

    # ── parsing ──────────────────────────────────────────────────────────

    @staticmethod
    def _project_elements(root: ET.Element) -> list[ET.Element]:
        """A multi-module effective POM wraps each module in <projects>."""
        if _local(root.tag) == "projects":
            return _children(root, "project")
        return [root]

    @staticmethod
    def _properties(root: ET.Element) -> dict[str, str]:
        """Collect <properties> plus the project.* coordinates for ${...} substitution."""
        props: dict[str, str] = {}
        props_el = _child(root, "properties")
        if props_el is not None:
            for child in props_el:
                if child.text:
                    props[_local(child.tag)] = child.text.strip()

        parent = _child(root, "parent")
        for key in ("groupId", "artifactId", "version"):
            value = _text(root, key) or (_text(parent, key) if key != "artifactId" else None)
            if value:
                props[f"project.{key}"] = value
                props.setdefault(f"pom.{key}", value)
        return props

    def parse_project(
        self,
        project: Project,
        proj_el: ET.Element,
        props: dict[str, str] | None = None,
    ) -> list[Dependency]:
        """Read ``<project><dependencies><dependency>`` entries.

        ``<dependencyManagement>`` and plugin dependencies are not direct
        children of ``<project><dependencies>`` and are ignored.
        """
        deps_el = _child(proj_el, "dependencies")
        if deps_el is None:
            return []

        deps: list[Dependency] = []
        for dep_el in _children(deps_el, "dependency"):
            artifact_id = _text(dep_el, "artifactId")
            if not artifact_id:
                continue
            group_id = _text(dep_el, "groupId")
            version = _text(dep_el, "version")
            scope = _text(dep_el, "scope")

            if props:
                artifact_id = _resolve_props(artifact_id, props)
                if group_id:
                    group_id = _resolve_props(group_id, props)
                if version:
                    version = _resolve_props(version, props)

            name = f"{group_id}:{artifact_id}" if group_id else artifact_id
            deps.append(self.dependency(project, name, version, scope == "test"))
        return deps


register_extractor(MavenExtractor())
