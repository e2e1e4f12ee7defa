"""
Orchestration package for coordinating export pipeline phases.

This package provides the orchestration layer that sequences the export
phases: Collect → Convert → Generate (or Print) → Deliver.
"""

from .export_orchestrator import (
    ExportError,
    ExportOrchestrator,
    ProgressReporter,
    UnsupportedFormatError,
)

__all__ = [
    'ExportOrchestrator',
    'ExportError',
    'UnsupportedFormatError',
    'ProgressReporter',
]
