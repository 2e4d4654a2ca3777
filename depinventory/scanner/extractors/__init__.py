"""Ecosystem extractors — auto-registered on import."""

from depinventory.scanner.extractors import (
    composer,  # noqa: F401
    gradle,  # noqa: F401
    maven,  # noqa: F401
    npm,  # noqa: F401
)
