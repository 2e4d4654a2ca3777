"""Enumerate regular files under a root, never following links."""

from __future__ import annotations

import os
import stat
from collections.abc import Callable, Iterator
from pathlib import Path

import structlog

log = structlog.get_logger("depinventory.walker")

OnFile = Callable[[str], None]
OnError = Callable[[OSError], None]


def _log_error(error: OSError) -> None:
    log.warning("walker.read_failed", path=error.filename, error=error.strerror or str(error))


def _relative(path: str, root: str) -> str:
    return os.path.relpath(path, root).replace(os.sep, "/")


def iter_files(root: str | Path, on_error: OnError | None = None) -> Iterator[str]:
    """Yield the root-relative path of every regular file under *root*.

    Depth-first; sibling order follows the filesystem.  Symbolic links are
    skipped entirely: not traversed, not yielded, not reported.  A directory
    that cannot be read or an entry that cannot be stat'ed is passed to
    *on_error* and the walk carries on with the rest of the tree.

    The generator is lazy; each path is yielded as soon as it is found.
    A fresh call re-walks from scratch.
    """
    report = on_error or _log_error
    base = os.fspath(root)
    stack = [base]

    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            report(e)
            continue

        subdirs: list[str] = []
        for entry in entries:
            try:
                mode = entry.stat(follow_symlinks=False).st_mode
            except OSError as e:
                report(e)
                continue

            if stat.S_ISLNK(mode):
                continue
            if stat.S_ISDIR(mode):
                subdirs.append(entry.path)
            elif stat.S_ISREG(mode):
                yield _relative(entry.path, base)

        # Reverse so the first listed subdirectory is visited first
        stack.extend(reversed(subdirs))


def walk(root: str | Path, on_file: OnFile, on_error: OnError | None = None) -> int:
    """Invoke *on_file* for every regular file under *root*.

    Returns the number of files for which *on_file* was invoked.  An
    exception raised by *on_file* is reported like an I/O error and does
    not stop the walk.
    """
    report = on_error or _log_error
    count = 0
    for rel_path in iter_files(root, report):
        count += 1
        try:
            on_file(rel_path)
        except OSError as e:
            report(e)
        except Exception as e:
            log.warning("walker.callback_failed", path=rel_path, error=str(e))
    return count
