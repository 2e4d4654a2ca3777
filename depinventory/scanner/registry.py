"""Static Ecosystem -> extractor dispatch table."""

from __future__ import annotations

from typing import TYPE_CHECKING

from depinventory.scanner.models import Ecosystem

if TYPE_CHECKING:
    from depinventory.scanner.extractors.base import Extractor

EXTRACTOR_REGISTRY: dict[Ecosystem, Extractor] = {}


def register_extractor(extractor: Extractor) -> None:
    """Register an extractor instance under its ecosystem."""
    EXTRACTOR_REGISTRY[extractor.ecosystem] = extractor


def get_extractor(ecosystem: Ecosystem) -> Extractor:
    """Return the extractor for *ecosystem*.

    Raises KeyError if the extractors package was never imported.
    """
    return EXTRACTOR_REGISTRY[ecosystem]
