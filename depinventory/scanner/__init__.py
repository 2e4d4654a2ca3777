"""Project detection and dependency extraction."""

from depinventory.scanner.detector import MANIFEST_FILES, ProjectDetector, match_manifest
from depinventory.scanner.models import (
    Dependency,
    Ecosystem,
    EmptyNoManifest,
    ExtractionOutcome,
    Failure,
    Project,
    ScanSummary,
    Skipped,
    Success,
)
from depinventory.scanner.orchestrator import DependencyInventory
from depinventory.scanner.registry import EXTRACTOR_REGISTRY, get_extractor
from depinventory.scanner.sink import CsvSink, DependencySink
from depinventory.scanner.walker import iter_files, walk

__all__ = [
    "EXTRACTOR_REGISTRY",
    "MANIFEST_FILES",
    "CsvSink",
    "Dependency",
    "DependencyInventory",
    "DependencySink",
    "Ecosystem",
    "EmptyNoManifest",
    "ExtractionOutcome",
    "Failure",
    "Project",
    "ProjectDetector",
    "ScanSummary",
    "Skipped",
    "Success",
    "get_extractor",
    "iter_files",
    "match_manifest",
    "walk",
]
