"""
Workflow Orchestration
======================

High-level orchestration of a story run.

Components:
- GenerationOrchestrator: Main entry point for story generation
- ContinuityExtractor: Last-frame chaining between clips
- ProgressAggregator / ProgressChannel: Normalized progress events
"""

from .orchestrator import GenerationOrchestrator, POLICY_ABORT, POLICY_STITCH_AVAILABLE
from .chainer import ContinuityExtractor, FrameExtraction
from .progress import ProgressAggregator, ProgressChannel

__all__ = [
    "GenerationOrchestrator",
    "POLICY_ABORT",
    "POLICY_STITCH_AVAILABLE",
    "ContinuityExtractor",
    "FrameExtraction",
    "ProgressAggregator",
    "ProgressChannel",
]
