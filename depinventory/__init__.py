"""Dependency inventory: find NPM, Maven, Gradle and Composer projects and list their dependencies."""

__version__ = "0.1.0"

from depinventory.config import ScanConfig
from depinventory.scanner import (
    CsvSink,
    Dependency,
    DependencyInventory,
    Ecosystem,
    Project,
    ProjectDetector,
    ScanSummary,
)

__all__ = [
    "CsvSink",
    "Dependency",
    "DependencyInventory",
    "Ecosystem",
    "Project",
    "ProjectDetector",
    "ScanConfig",
    "ScanSummary",
]
