"""Shared pytest fixtures for dependency-inventory tests.

No package manager is ever invoked: extractors receive a scripted
:class:`FakeRunner` through ``ExtractionContext.runner``.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from depinventory.config import ScanConfig
from depinventory.core.process import CommandResult
from depinventory.exceptions import CommandNotFoundError
from depinventory.scanner.chain import ExtractionContext
from depinventory.scanner.detector import make_project as _make_project
from depinventory.scanner.detector import match_manifest


class FakeRunner:
    """Scripted stand-in for ``run_command``.

    *responses* maps a command prefix (tuple of argv items) to one of:
      - a string: returned as stdout with exit status 0
      - a CommandResult: returned as-is
      - an exception instance: raised
      - a callable ``(cmd, cwd) -> any of the above``

    Commands matching no prefix raise CommandNotFoundError, as if the tool
    were not installed.
    """

    def __init__(self, responses: dict | None = None):
        self.responses = [(tuple(k), v) for k, v in (responses or {}).items()]
        self.calls: list[dict] = []

    async def __call__(self, cmd, *, cwd, timeout, check=True, env=None):
        self.calls.append({"cmd": list(cmd), "cwd": cwd, "timeout": timeout})
        for prefix, response in self.responses:
            if tuple(cmd[: len(prefix)]) != prefix:
                continue
            if callable(response) and not isinstance(response, BaseException):
                response = response(cmd, cwd)
            if isinstance(response, BaseException):
                raise response
            if isinstance(response, str):
                return CommandResult(cmd=list(cmd), returncode=0, stdout=response, stderr="")
            return response
        raise CommandNotFoundError(f"executable not found: {cmd[0]}", cmd=list(cmd))

    @property
    def commands(self) -> list[list[str]]:
        return [c["cmd"] for c in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def make_ctx():
    """Factory: ``make_ctx(runner, **config_fields) -> ExtractionContext``.

    Install/build steps are off unless ``run_install=True`` is passed.
    """

    def _make(runner=None, **config):
        config.setdefault("run_install", False)
        return ExtractionContext(config=ScanConfig(**config), runner=runner or FakeRunner())

    return _make


@pytest.fixture
def make_project():
    """Factory: ``make_project(root, "sub/package.json")`` for an existing file."""

    def _make(root: Path, relative_path: str):
        ecosystem = match_manifest(relative_path)
        assert ecosystem is not None, relative_path
        return _make_project(root, relative_path, ecosystem)

    return _make


@pytest.fixture
def write_file():
    """Factory: ``write_file(path, content)``; dicts and lists are written as JSON."""

    def _write(path: Path, content) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if not isinstance(content, str):
            content = json.dumps(content)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
