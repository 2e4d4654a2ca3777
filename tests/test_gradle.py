"""Tests for the Gradle extractor."""

from __future__ import annotations

import os
import sys

import pytest

from depinventory.exceptions import CommandError
from depinventory.scanner.extractors.gradle import GradleExtractor, clean_version
from depinventory.scanner.models import EmptyNoManifest

# ── helpers ──────────────────────────────────────────────────────────────

TRANSCRIPT = """\

> Task :dependencies

------------------------------------------------------------
Root project 'demo'
------------------------------------------------------------

compileClasspath - Compile classpath for source set 'main'.
+--- org.springframework:spring-core:5.3.21
|    \\--- org.springframework:spring-jcl:5.3.21
+--- com.google.guava:guava:30.0-jre -> 31.1-jre
\\--- org.springframework:spring-core:5.3.21 (*)

runtimeClasspath - Runtime classpath of source set 'main'.
+--- org.springframework:spring-core:5.3.21
\\--- org.platform:managed -> 2.4.0 (c)

testCompileClasspath - Compile classpath for source set 'test'.
\\--- junit:junit:4.13.2
     \\--- org.hamcrest:hamcrest-core:1.3

(*) - dependencies omitted (listed previously)

A web-based, searchable dependency report is available by adding the --scan option.

BUILD SUCCESSFUL in 1s
1 actionable task: 1 executed
"""


def _triples(deps):
    return sorted((d.name, d.version, d.is_dev) for d in deps)


@pytest.fixture
def gradle():
    return GradleExtractor()


# ── Chain behaviour ──────────────────────────────────────────────────────


class TestGradleChain:
    @pytest.mark.asyncio
    async def test_transcript_preferred(
        self, gradle, tmp_path, fake_runner, make_ctx, make_project, write_file
    ):
        write_file(tmp_path / "build.gradle", "implementation 'x:y:1.0'\n")
        fake_runner.responses.append((("gradle", "dependencies"), TRANSCRIPT))

        result = await gradle.run_chain(make_project(tmp_path, "build.gradle"), make_ctx(fake_runner))

        assert result.strategy == "gradle-dependencies"
        assert _triples(result.dependencies) == [
            ("com.google.guava:guava", "31.1-jre", False),
            ("junit:junit", "4.13.2", True),
            ("org.hamcrest:hamcrest-core", "1.3", True),
            ("org.platform:managed", "2.4.0", False),
            ("org.springframework:spring-core", "5.3.21", False),
            ("org.springframework:spring-jcl", "5.3.21", False),
        ]
        assert fake_runner.commands == [["gradle", "dependencies", "--console=plain"]]

    @pytest.mark.asyncio
    async def test_build_file_fallback_when_gradle_missing(
        self, gradle, tmp_path, make_ctx, make_project, write_file
    ):
        write_file(tmp_path / "build.gradle", "dependencies {\n    testImplementation 'junit:junit:4.13.2'\n}\n")

        deps = await gradle.extract(make_project(tmp_path, "build.gradle"), make_ctx())

        assert len(deps) == 1
        assert (deps[0].name, deps[0].version, deps[0].is_dev) == ("junit:junit", "4.13.2", True)

    @pytest.mark.asyncio
    async def test_build_file_fallback_when_command_fails(
        self, gradle, tmp_path, fake_runner, make_ctx, make_project, write_file
    ):
        write_file(tmp_path / "build.gradle", "implementation 'com.squareup:okhttp:4.12.0'\n")
        fake_runner.responses.append(
            (("gradle",), CommandError("gradle failed", cmd=["gradle"], returncode=1))
        )

        result = await gradle.run_chain(make_project(tmp_path, "build.gradle"), make_ctx(fake_runner))

        assert result.attempts == [("gradle-dependencies", "failure"), ("build-file", "success")]
        assert _triples(result.dependencies) == [("com.squareup:okhttp", "4.12.0", False)]

    @pytest.mark.asyncio
    async def test_kotlin_dsl(self, gradle, tmp_path, make_ctx, make_project, write_file):
        write_file(
            tmp_path / "build.gradle.kts",
            'dependencies {\n'
            '    implementation("org.jetbrains.kotlin:kotlin-stdlib:1.9.22")\n'
            '    testImplementation("org.junit.jupiter:junit-jupiter:5.10.1")\n'
            '}\n',
        )

        deps = await gradle.extract(make_project(tmp_path, "build.gradle.kts"), make_ctx())
        assert _triples(deps) == [
            ("org.jetbrains.kotlin:kotlin-stdlib", "1.9.22", False),
            ("org.junit.jupiter:junit-jupiter", "5.10.1", True),
        ]

    @pytest.mark.asyncio
    async def test_missing_build_file(self, gradle, tmp_path, make_ctx, make_project):
        result = await gradle.run_chain(make_project(tmp_path, "build.gradle"), make_ctx())
        assert isinstance(result.outcome, EmptyNoManifest)

    @pytest.mark.asyncio
    async def test_build_step_best_effort(
        self, gradle, tmp_path, fake_runner, make_ctx, make_project, write_file
    ):
        write_file(tmp_path / "build.gradle", "api 'a:b:1'\n")
        fake_runner.responses.append(
            (("gradle", "build"), CommandError("compile error", cmd=["gradle"], returncode=1))
        )
        ctx = make_ctx(fake_runner, run_install=True, install_timeout=9)

        deps = await gradle.extract(make_project(tmp_path, "build.gradle"), ctx)

        assert fake_runner.calls[0]["cmd"][:2] == ["gradle", "build"]
        assert fake_runner.calls[0]["timeout"] == 9
        assert _triples(deps) == [("a:b", "1", False)]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX wrapper script")
    @pytest.mark.asyncio
    async def test_wrapper_preferred(
        self, gradle, tmp_path, fake_runner, make_ctx, make_project, write_file
    ):
        write_file(tmp_path / "build.gradle", "")
        wrapper = write_file(tmp_path / "gradlew", "#!/bin/sh\n")
        os.chmod(wrapper, 0o755)
        fake_runner.responses.append(((str(wrapper),), TRANSCRIPT))

        result = await gradle.run_chain(make_project(tmp_path, "build.gradle"), make_ctx(fake_runner))

        assert fake_runner.commands[0][0] == str(wrapper)
        assert result.strategy == "gradle-dependencies"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX wrapper script")
    def test_wrapper_ignored_when_disabled(self, gradle, tmp_path, make_ctx, make_project, write_file):
        write_file(tmp_path / "build.gradle", "")
        os.chmod(write_file(tmp_path / "gradlew", "#!/bin/sh\n"), 0o755)
        project = make_project(tmp_path, "build.gradle")

        assert gradle.gradle_command(project, make_ctx(prefer_gradle_wrapper=False)) == "gradle"


# ── Parsing ──────────────────────────────────────────────────────────────


class TestGradleParsing:
    def test_duplicates_collapsed(self, gradle, tmp_path, make_project):
        deps = gradle.parse_transcript(make_project(tmp_path, "build.gradle"), TRANSCRIPT)
        names = [d.name for d in deps]
        assert names.count("org.springframework:spring-core") == 1

    def test_same_dependency_in_test_and_main(self, gradle, tmp_path, make_project):
        transcript = (
            "compileClasspath - main\n"
            "+--- a:b:1.0\n"
            "testRuntimeClasspath - test\n"
            "+--- a:b:1.0\n"
        )
        deps = gradle.parse_transcript(make_project(tmp_path, "build.gradle"), transcript)
        assert _triples(deps) == [("a:b", "1.0", False), ("a:b", "1.0", True)]

    def test_empty_transcript(self, gradle, tmp_path, make_project):
        out = "compileClasspath - main\nNo dependencies\n"
        assert gradle.parse_transcript(make_project(tmp_path, "build.gradle"), out) == []

    def test_build_file_configurations(self, gradle, tmp_path, make_project):
        content = """
dependencies {
    implementation 'org.a:one:1.0'
    api "org.a:two:2.0"
    compile 'org.a:three:3.0'
    testCompile 'org.a:four:4.0'
    compileOnly 'org.a:five:5.0'
    // project dependencies and version-less notations are not matched
    implementation project(':core')
    implementation 'org.a:noversion'
    implementation platform('org.a:bom:1.0')
    myapi 'org.a:six:6.0'
}
"""
        deps = gradle.parse_build_file(make_project(tmp_path, "build.gradle"), content)
        assert _triples(deps) == [
            ("org.a:five", "5.0", False),
            ("org.a:four", "4.0", True),
            ("org.a:one", "1.0", False),
            ("org.a:three", "3.0", False),
            ("org.a:two", "2.0", False),
        ]

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("5.3.21", "5.3.21"),
            ("5.3.21 (*)", "5.3.21"),
            ("1.0 -> 1.2 (c)", "1.2"),
            ("30.0-jre -> 31.1-jre", "31.1-jre"),
            ("{strictly 1.0} -> 1.0 (n)", "1.0"),
            ("2.0*", "2.0"),
        ],
    )
    def test_clean_version(self, raw, expected):
        assert clean_version(raw) == expected
